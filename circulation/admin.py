from django.contrib import admin
from django.utils.html import format_html
from .models import AuditLog, Book, Holiday, Loan, ReportSnapshot, Setting, Student


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ['accession_number', 'title', 'author', 'category', 'status_badge', 'condition', 'total_borrows', 'last_borrowed_at']
    list_filter = ['status', 'condition', 'category']
    search_fields = ['accession_number', 'title', 'author', 'isbn', 'publisher']
    readonly_fields = ['total_borrows', 'last_borrowed_at', 'created_at', 'updated_at']
    list_per_page = 25

    fieldsets = (
        ('Basic Information', {
            'fields': ('accession_number', 'title', 'author', 'isbn', 'category')
        }),
        ('Publication Details', {
            'fields': ('publisher', 'publication_year')
        }),
        ('Inventory', {
            'fields': ('status', 'condition', 'location', 'replacement_cost', 'last_inventoried_at', 'inventory_notes')
        }),
        ('Metadata', {
            'fields': ('total_borrows', 'last_borrowed_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        color = 'green' if obj.is_available() else 'red'
        return format_html('<span style="color: {};">{}</span>', color, obj.get_status_display())
    status_badge.short_description = 'Status'


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['student_id', 'name', 'grade_level', 'section', 'active_books', 'is_blocked']
    list_filter = ['grade_level', 'is_blocked']
    search_fields = ['student_id', 'name', 'email', 'guardian']
    readonly_fields = ['created_at', 'updated_at']
    list_per_page = 25

    fieldsets = (
        ('Student', {
            'fields': ('student_id', 'name', 'grade_level', 'section')
        }),
        ('Contact', {
            'fields': ('email', 'phone', 'guardian', 'guardian_phone')
        }),
        ('Borrowing', {
            'fields': ('borrowing_limit', 'is_blocked', 'block_reason', 'created_at', 'updated_at')
        }),
    )

    def active_books(self, obj):
        count = obj.active_loan_count()
        color = 'red' if count >= obj.borrowing_limit else 'green'
        return format_html('<span style="color: {};">{}/{}</span>', color, count, obj.borrowing_limit)
    active_books.short_description = 'Active Loans'


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    """Loans change only through checkout, check-in and renewal"""
    list_display = ['book', 'student', 'checkout_date', 'due_date', 'return_date', 'status', 'renewal_count', 'device']
    list_filter = ['is_returned', 'is_overdue', 'device', 'checkout_date']
    search_fields = ['book__title', 'book__accession_number', 'student__name', 'student__student_id']
    list_per_page = 25
    date_hierarchy = 'checkout_date'

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def status(self, obj):
        if obj.is_returned:
            if obj.is_overdue:
                return format_html('<span style="color: orange;">Returned late</span>')
            return 'Returned'
        if obj.is_past_due():
            return format_html('<span style="color: red; font-weight: bold;">Overdue ({} days)</span>', obj.days_overdue())
        return format_html('<span style="color: green;">On loan</span>')
    status.short_description = 'Status'


@admin.register(Holiday)
class HolidayAdmin(admin.ModelAdmin):
    list_display = ['date', 'name', 'type', 'is_recurring']
    list_filter = ['type', 'is_recurring']
    search_fields = ['name']
    date_hierarchy = 'date'


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'description', 'updated_at']
    search_fields = ['key']
    readonly_fields = ['updated_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'action', 'entity_type', 'entity_id', 'librarian', 'device']
    list_filter = ['action', 'entity_type', 'device']
    search_fields = ['entity_id', 'librarian__name']
    date_hierarchy = 'timestamp'
    list_per_page = 50

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ReportSnapshot)
class ReportSnapshotAdmin(admin.ModelAdmin):
    list_display = ['report_type', 'period_start', 'period_end', 'generated_at']
    list_filter = ['report_type']
    readonly_fields = ['report_type', 'period_start', 'period_end', 'generated_at', 'data']

    def has_change_permission(self, request, obj=None):
        return False
