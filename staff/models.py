from django.db import models
from django.contrib.auth.models import User


class Librarian(models.Model):
    ROLE_ADMIN = 'admin'
    ROLE_STAFF = 'staff'
    ROLE_STUDENT_ASSISTANT = 'student_assistant'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_STUDENT_ASSISTANT, 'Student Assistant'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='librarian')
    name = models.CharField(max_length=200)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF)
    employee_id = models.CharField(max_length=50, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"

    def has_role(self, *roles):
        return self.is_active and self.role in roles

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['role'], name='staff_librarian_role_idx'),
            models.Index(fields=['is_active'], name='staff_librarian_active_idx'),
        ]
