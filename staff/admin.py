from django.contrib import admin
from .models import Librarian


@admin.register(Librarian)
class LibrarianAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'role', 'employee_id', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['name', 'user__username', 'user__email', 'employee_id']
    readonly_fields = ['created_at']
