from django.db import models
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from django.utils import timezone

from .exceptions import InvalidSetting
from .policy import validate_setting_value


class Book(models.Model):
    STATUS_AVAILABLE = 'available'
    STATUS_BORROWED = 'borrowed'
    STATUS_RESERVED = 'reserved'
    STATUS_MISSING = 'missing'
    STATUS_DAMAGED = 'damaged'
    STATUS_WEEDED = 'weeded'

    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_BORROWED, 'Borrowed'),
        (STATUS_RESERVED, 'Reserved'),
        (STATUS_MISSING, 'Missing'),
        (STATUS_DAMAGED, 'Damaged'),
        (STATUS_WEEDED, 'Weeded'),
    ]

    CONDITION_CHOICES = [
        ('new', 'New'),
        ('good', 'Good'),
        ('fair', 'Fair'),
        ('poor', 'Poor'),
        ('damaged', 'Damaged'),
    ]

    accession_number = models.CharField(
        max_length=50,
        unique=True,
        help_text='Barcode identifier of this physical copy'
    )
    isbn = models.CharField(max_length=13, blank=True)
    title = models.CharField(max_length=255)
    author = models.CharField(max_length=255)
    publisher = models.CharField(max_length=200, blank=True)
    publication_year = models.PositiveIntegerField(blank=True, null=True)
    category = models.CharField(max_length=100, blank=True)
    location = models.CharField(max_length=100, blank=True, help_text='Shelf or section')
    condition = models.CharField(max_length=10, choices=CONDITION_CHOICES, default='good')
    replacement_cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)]
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    total_borrows = models.PositiveIntegerField(default=0)
    last_borrowed_at = models.DateTimeField(null=True, blank=True)
    last_inventoried_at = models.DateTimeField(null=True, blank=True)
    inventory_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.title} by {self.author} [{self.accession_number}]"

    def is_available(self):
        return self.status == self.STATUS_AVAILABLE

    def current_loan(self):
        """The open loan for this copy, if any"""
        return self.loans.filter(is_returned=False).first()

    def clean(self):
        super().clean()

        if self.publication_year:
            current_year = timezone.now().year
            if self.publication_year > current_year:
                raise ValidationError({
                    'publication_year': f'Publication year cannot be in the future (current year: {current_year})'
                })

    class Meta:
        ordering = ['-created_at', 'title']
        indexes = [
            models.Index(fields=['status'], name='circ_book_status_idx'),
            models.Index(fields=['category'], name='circ_book_category_idx'),
            models.Index(fields=['last_borrowed_at'], name='circ_book_last_borrowed_idx'),
        ]


class Student(models.Model):
    student_id = models.CharField(
        max_length=50,
        unique=True,
        help_text='Barcode-scannable student ID'
    )
    name = models.CharField(max_length=200)
    grade_level = models.IntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    section = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    guardian = models.CharField(max_length=200, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)
    borrowing_limit = models.PositiveIntegerField()
    is_blocked = models.BooleanField(default=False)
    block_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} [{self.student_id}] - Grade {self.grade_level}"

    def open_loans(self):
        return self.loans.filter(is_returned=False)

    def active_loan_count(self):
        return self.open_loans().count()

    def overdue_loans(self, now=None):
        """Open loans whose due date has already passed"""
        now = now or timezone.now()
        return self.open_loans().filter(due_date__lt=now)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['grade_level'], name='circ_student_grade_idx'),
            models.Index(fields=['is_blocked'], name='circ_student_blocked_idx'),
        ]


class Loan(models.Model):
    DEVICE_ADMIN_DASHBOARD = 'admin_dashboard'
    DEVICE_KIOSK = 'kiosk'

    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='loans')
    book = models.ForeignKey(Book, on_delete=models.PROTECT, related_name='loans')
    librarian = models.ForeignKey(
        'staff.Librarian',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='loans'
    )
    checkout_date = models.DateTimeField()
    due_date = models.DateTimeField()
    return_date = models.DateTimeField(null=True, blank=True)
    is_returned = models.BooleanField(default=False)
    # Sticky: once set it is never cleared, even if the book comes back later
    is_overdue = models.BooleanField(default=False)
    renewal_count = models.PositiveIntegerField(default=0)
    max_renewals = models.PositiveIntegerField()
    device = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.student.name} - {self.book.title}"

    def is_past_due(self, now=None):
        """Open loan whose due date has passed"""
        if self.is_returned:
            return False
        now = now or timezone.now()
        return self.due_date < now

    def days_overdue(self, now=None):
        now = now or self.return_date or timezone.now()
        if self.due_date >= now:
            return 0
        return (now - self.due_date).days

    class Meta:
        ordering = ['-checkout_date']
        verbose_name = "Loan"
        verbose_name_plural = "Loans"
        indexes = [
            models.Index(fields=['student', 'is_returned'], name='circ_loan_student_open_idx'),
            models.Index(fields=['book', 'is_returned'], name='circ_loan_book_open_idx'),
            models.Index(fields=['is_returned', 'due_date'], name='circ_loan_open_due_idx'),
            models.Index(fields=['is_overdue'], name='circ_loan_overdue_idx'),
            models.Index(fields=['checkout_date'], name='circ_loan_checkout_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['book'],
                condition=models.Q(is_returned=False),
                name='one_open_loan_per_book',
            ),
        ]


class Holiday(models.Model):
    TYPE_CHOICES = [
        ('national', 'National'),
        ('school', 'School'),
        ('special', 'Special'),
    ]

    date = models.DateField(db_index=True)
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    is_recurring = models.BooleanField(
        default=False,
        help_text='Recurring holidays fall on the same month and day every year'
    )

    def __str__(self):
        return f"{self.name} ({self.date.isoformat()})"

    class Meta:
        ordering = ['date']


class Setting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField()
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key} = {self.value!r}"

    def clean(self):
        """Reject malformed policy values before they are stored"""
        super().clean()
        try:
            self.value = validate_setting_value(self.key, self.value)
        except InvalidSetting as e:
            raise ValidationError({'value': e.message})

    class Meta:
        ordering = ['key']


class AuditLog(models.Model):
    librarian = models.ForeignKey(
        'staff.Librarian',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=50, blank=True)
    details = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    device = models.CharField(max_length=50, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['action'], name='circ_audit_action_idx'),
            models.Index(fields=['entity_type', 'entity_id'], name='circ_audit_entity_idx'),
            models.Index(fields=['timestamp'], name='circ_audit_timestamp_idx'),
        ]


class ReportSnapshot(models.Model):
    TYPE_WEEKLY = 'weekly'
    TYPE_MONTHLY = 'monthly'

    TYPE_CHOICES = [
        (TYPE_WEEKLY, 'Weekly'),
        (TYPE_MONTHLY, 'Monthly'),
    ]

    report_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    period_start = models.DateTimeField()
    period_end = models.DateTimeField()
    generated_at = models.DateTimeField()
    data = models.JSONField(encoder=DjangoJSONEncoder)

    def __str__(self):
        return f"{self.get_report_type_display()} report ({self.generated_at:%Y-%m-%d})"

    def save(self, *args, **kwargs):
        # Every run produces a new snapshot; existing ones are never rewritten
        if self.pk is not None:
            raise ValidationError("Report snapshots cannot be modified.")
        super().save(*args, **kwargs)

    class Meta:
        ordering = ['-generated_at']
        indexes = [
            models.Index(fields=['report_type', 'generated_at'], name='circ_report_type_gen_idx'),
        ]
