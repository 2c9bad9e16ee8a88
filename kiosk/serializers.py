from django.utils import timezone
from rest_framework import serializers
from circulation.models import Book, Loan, Student


class KioskBookSerializer(serializers.ModelSerializer):
    """Catalog fields safe to show on a public screen"""

    class Meta:
        model = Book
        fields = ['id', 'title', 'author', 'accession_number', 'status']
        read_only_fields = fields


class KioskLoanSerializer(serializers.ModelSerializer):
    book = serializers.SerializerMethodField()
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Loan
        fields = ['id', 'due_date', 'is_overdue', 'book']
        read_only_fields = fields

    def get_book(self, obj):
        return {
            'title': obj.book.title,
            'author': obj.book.author,
            'accession_number': obj.book.accession_number,
        }

    def get_is_overdue(self, obj):
        return obj.is_past_due(self.context.get('now'))


class KioskStudentSerializer(serializers.ModelSerializer):
    """
    Limited student profile for the kiosk.
    Contact and guardian details are never exposed here.
    """
    active_loans = serializers.SerializerMethodField()
    active_loan_count = serializers.SerializerMethodField()
    has_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Student
        fields = [
            'id', 'student_id', 'name', 'grade_level', 'section',
            'borrowing_limit', 'is_blocked', 'block_reason',
            'active_loans', 'active_loan_count', 'has_overdue'
        ]
        read_only_fields = fields

    def _open_loans(self, obj):
        if not hasattr(obj, '_kiosk_open_loans'):
            obj._kiosk_open_loans = list(obj.open_loans().select_related('book'))
        return obj._kiosk_open_loans

    def get_active_loans(self, obj):
        return KioskLoanSerializer(self._open_loans(obj), many=True, context=self.context).data

    def get_active_loan_count(self, obj):
        return len(self._open_loans(obj))

    def get_has_overdue(self, obj):
        now = self.context.get('now') or timezone.now()
        return any(loan.due_date < now for loan in self._open_loans(obj))


class KioskCheckoutSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(help_text='Primary key returned by the student lookup')
    accession_number = serializers.CharField(max_length=50)


class KioskCheckInSerializer(serializers.Serializer):
    accession_number = serializers.CharField(max_length=50)
