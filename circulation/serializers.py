from rest_framework import serializers
from .models import AuditLog, Book, Holiday, Loan, ReportSnapshot, Setting, Student
from .exceptions import InvalidSetting
from .policy import LoanPolicy, validate_setting_value


class BookSerializer(serializers.ModelSerializer):
    """Serializer for Book model"""
    is_available = serializers.SerializerMethodField()

    class Meta:
        model = Book
        fields = [
            'id', 'accession_number', 'isbn', 'title', 'author', 'publisher',
            'publication_year', 'category', 'location', 'condition',
            'replacement_cost', 'status', 'is_available', 'total_borrows',
            'last_borrowed_at', 'last_inventoried_at', 'inventory_notes',
            'created_at', 'updated_at'
        ]
        # Status only changes through circulation or the update-status action
        read_only_fields = [
            'status', 'total_borrows', 'last_borrowed_at', 'last_inventoried_at',
            'created_at', 'updated_at'
        ]

    def get_is_available(self, obj):
        """Check if book is available"""
        return obj.is_available()


class BookDetailSerializer(BookSerializer):
    """Detailed serializer for Book with its open loan"""
    current_loan = serializers.SerializerMethodField()

    class Meta(BookSerializer.Meta):
        fields = BookSerializer.Meta.fields + ['current_loan']

    def get_current_loan(self, obj):
        loan = obj.current_loan()
        return LoanSerializer(loan, context=self.context).data if loan else None


class StudentSerializer(serializers.ModelSerializer):
    """Serializer for Student model"""
    active_loan_count = serializers.SerializerMethodField()
    overdue_count = serializers.SerializerMethodField()

    class Meta:
        model = Student
        fields = [
            'id', 'student_id', 'name', 'grade_level', 'section', 'email',
            'phone', 'guardian', 'guardian_phone', 'borrowing_limit',
            'is_blocked', 'block_reason', 'active_loan_count', 'overdue_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['is_blocked', 'block_reason', 'created_at', 'updated_at']
        extra_kwargs = {'borrowing_limit': {'required': False}}

    def get_active_loan_count(self, obj):
        return obj.active_loan_count()

    def get_overdue_count(self, obj):
        return obj.overdue_loans().count()

    def create(self, validated_data):
        """Derive the borrowing limit from the grade band unless overridden"""
        if validated_data.get('borrowing_limit') is None:
            validated_data['borrowing_limit'] = LoanPolicy.load().borrowing_limit(validated_data['grade_level'])
        return super().create(validated_data)

    def update(self, instance, validated_data):
        """A grade change re-derives the limit unless one is given explicitly"""
        grade = validated_data.get('grade_level')
        if grade is not None and grade != instance.grade_level and 'borrowing_limit' not in validated_data:
            validated_data['borrowing_limit'] = LoanPolicy.load().borrowing_limit(grade)
        return super().update(instance, validated_data)


class LoanSerializer(serializers.ModelSerializer):
    """Serializer for Loan model"""
    student_name = serializers.CharField(source='student.name', read_only=True)
    student_barcode = serializers.CharField(source='student.student_id', read_only=True)
    book_title = serializers.CharField(source='book.title', read_only=True)
    accession_number = serializers.CharField(source='book.accession_number', read_only=True)
    librarian_name = serializers.CharField(source='librarian.name', read_only=True, default=None)
    days_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Loan
        fields = [
            'id', 'student', 'student_name', 'student_barcode', 'book',
            'book_title', 'accession_number', 'librarian', 'librarian_name',
            'checkout_date', 'due_date', 'return_date', 'is_returned',
            'is_overdue', 'days_overdue', 'renewal_count', 'max_renewals',
            'device', 'notes'
        ]
        read_only_fields = fields

    def get_days_overdue(self, obj):
        return obj.days_overdue()


class BorrowRequestSerializer(serializers.Serializer):
    """Student and book for a pre-check or checkout"""
    student_id = serializers.IntegerField()
    book_id = serializers.IntegerField()
    device = serializers.CharField(max_length=50, required=False, allow_blank=True)


class CheckInSerializer(serializers.Serializer):
    """Serializer for returning a book"""
    book_id = serializers.IntegerField()
    device = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class RenewSerializer(serializers.Serializer):
    device = serializers.CharField(max_length=50, required=False, allow_blank=True)


class BlockStudentSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)


class BookStatusSerializer(serializers.Serializer):
    """Manual status changes; borrowed is reserved for circulation"""
    status = serializers.ChoiceField(
        choices=[choice for choice in Book.STATUS_CHOICES if choice[0] != Book.STATUS_BORROWED]
    )


class MarkInventoriedSerializer(serializers.Serializer):
    condition = serializers.ChoiceField(choices=Book.CONDITION_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class StudentImportSerializer(serializers.Serializer):
    """One row of a student bulk import"""
    student_id = serializers.CharField(max_length=50)
    name = serializers.CharField(max_length=200)
    grade_level = serializers.IntegerField(min_value=1, max_value=12)
    section = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    guardian = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    guardian_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')


class BookImportSerializer(serializers.Serializer):
    """One row of a book bulk import"""
    accession_number = serializers.CharField(max_length=50)
    isbn = serializers.CharField(max_length=13, required=False, allow_blank=True, default='')
    title = serializers.CharField(max_length=255)
    author = serializers.CharField(max_length=255)
    publisher = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    publication_year = serializers.IntegerField(required=False, allow_null=True, default=None)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    location = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    condition = serializers.ChoiceField(choices=Book.CONDITION_CHOICES, required=False, default='good')
    replacement_cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, default=0)


class BulkImportSerializer(serializers.Serializer):
    rows = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class DuplicateCheckSerializer(serializers.Serializer):
    identifiers = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class HolidaySerializer(serializers.ModelSerializer):
    class Meta:
        model = Holiday
        fields = ['id', 'date', 'name', 'type', 'is_recurring']


class SettingSerializer(serializers.ModelSerializer):
    """Settings are validated against their key's schema before saving"""

    class Meta:
        model = Setting
        fields = ['key', 'value', 'description', 'updated_at']
        read_only_fields = ['updated_at']

    def validate(self, data):
        key = data.get('key', getattr(self.instance, 'key', None))
        if 'value' in data:
            try:
                data['value'] = validate_setting_value(key, data['value'])
            except InvalidSetting as e:
                raise serializers.ValidationError({'value': e.message})
        return data


class ReportSnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReportSnapshot
        fields = ['id', 'report_type', 'period_start', 'period_end', 'generated_at', 'data']
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    librarian_name = serializers.CharField(source='librarian.name', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'librarian', 'librarian_name', 'action', 'entity_type',
            'entity_id', 'details', 'device', 'timestamp'
        ]
        read_only_fields = fields
