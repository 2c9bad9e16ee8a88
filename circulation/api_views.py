from datetime import timedelta

from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django.db import transaction
from django.db import models
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_datetime
import logging

from staff.permissions import IsLibrarian, IsLibraryAdmin, IsLibraryStaff, get_librarian
from . import audit, importers, reports, services, utils
from .eligibility import validate_borrow
from .exceptions import CirculationError
from .holidays import initialize_philippine_holidays
from .models import AuditLog, Book, Holiday, Loan, ReportSnapshot, Setting, Student
from .policy import initialize_default_settings
from .serializers import (
    AuditLogSerializer, BlockStudentSerializer, BookDetailSerializer,
    BookSerializer, BookStatusSerializer, BorrowRequestSerializer,
    BulkImportSerializer, CheckInSerializer, DuplicateCheckSerializer,
    HolidaySerializer, LoanSerializer, MarkInventoriedSerializer,
    RenewSerializer, ReportSnapshotSerializer, SettingSerializer,
    StudentSerializer
)

logger = logging.getLogger(__name__)

DASHBOARD_DEVICE = Loan.DEVICE_ADMIN_DASHBOARD


def error_response(exc):
    """Render a rejected circulation operation"""
    return Response(exc.as_dict(), status=exc.status_code)


def _limit(request, default):
    try:
        return max(1, int(request.query_params.get('limit', default)))
    except (TypeError, ValueError):
        return default


def _datetime_param(request, name):
    try:
        value = parse_datetime(request.query_params.get(name, '') or '')
    except ValueError:
        return None
    if value is not None and timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class StudentViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Student CRUD operations.
    Reads and circulation lookups are open to every librarian role;
    changes are restricted to admin and staff, deletion to admins.
    """
    queryset = Student.objects.all()
    serializer_class = StudentSerializer

    def get_permissions(self):
        if self.action == 'destroy':
            return [IsLibraryAdmin()]
        if self.action in ['create', 'update', 'partial_update', 'block', 'unblock', 'bulk_import']:
            return [IsLibraryStaff()]
        return [IsLibrarian()]

    def get_queryset(self):
        """Filter students based on query parameters"""
        queryset = super().get_queryset()

        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                models.Q(name__icontains=search) |
                models.Q(student_id__icontains=search)
            )

        grade = self.request.query_params.get('grade_level', None)
        if grade:
            queryset = queryset.filter(grade_level=grade)

        blocked = self.request.query_params.get('blocked', None)
        if blocked is not None:
            queryset = queryset.filter(is_blocked=blocked.lower() in ('1', 'true', 'yes'))

        return queryset

    def destroy(self, request, *args, **kwargs):
        """Delete a student with safety checks"""
        student = self.get_object()

        if student.active_loan_count() > 0:
            return Response(
                {'error': "Cannot delete student with active loans", 'code': 'HAS_ACTIVE_LOANS'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if student.loans.exists():
            return Response(
                {'error': "Cannot delete a student with borrowing history. Block the account instead."},
                status=status.HTTP_400_BAD_REQUEST
            )

        return super().destroy(request, *args, **kwargs)

    @action(detail=False, methods=['get'], url_path='by-barcode/(?P<barcode>[^/]+)')
    def by_barcode(self, request, barcode=None):
        """Look up a student by scanned ID"""
        student = get_object_or_404(Student, student_id=barcode)
        data = self.get_serializer(student).data
        data['active_loans'] = LoanSerializer(
            student.open_loans().select_related('book', 'librarian'), many=True
        ).data
        return Response(data)

    @action(detail=True, methods=['post'])
    def block(self, request, pk=None):
        student = self.get_object()
        serializer = BlockStudentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        student.is_blocked = True
        student.block_reason = serializer.validated_data['reason']
        student.save(update_fields=['is_blocked', 'block_reason', 'updated_at'])

        librarian = get_librarian(request.user)
        audit.record('block_student', 'student', student.pk, {'reason': student.block_reason}, librarian, DASHBOARD_DEVICE)
        logger.info(f"Student {student.student_id} blocked: {student.block_reason}")
        return Response(self.get_serializer(student).data)

    @action(detail=True, methods=['post'])
    def unblock(self, request, pk=None):
        student = self.get_object()
        student.is_blocked = False
        student.block_reason = ''
        student.save(update_fields=['is_blocked', 'block_reason', 'updated_at'])

        audit.record('unblock_student', 'student', student.pk, librarian=get_librarian(request.user), device=DASHBOARD_DEVICE)
        logger.info(f"Student {student.student_id} unblocked")
        return Response(self.get_serializer(student).data)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        """Borrowing history, newest first"""
        student = self.get_object()
        loans = utils.get_student_book_history(student, limit=_limit(request, 50))
        return Response(LoanSerializer(loans, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(utils.student_statistics())

    @action(detail=False, methods=['post'], url_path='bulk-import')
    def bulk_import(self, request):
        serializer = BulkImportSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        results = importers.import_students(
            serializer.validated_data['rows'],
            librarian=get_librarian(request.user),
            device=DASHBOARD_DEVICE,
        )
        return Response(results, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'], url_path='check-duplicates')
    def check_duplicates(self, request):
        serializer = DuplicateCheckSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        duplicates = importers.find_duplicates(Student, 'student_id', serializer.validated_data['identifiers'])
        return Response({'duplicates': duplicates})


class BookViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Book CRUD operations.
    List and retrieve are available to every librarian role.
    Create, update and status changes are restricted to admin and staff,
    deletion to admins.
    """
    queryset = Book.objects.all()

    def get_serializer_class(self):
        """Use detailed serializer for retrieve action"""
        if self.action in ['retrieve', 'by_accession']:
            return BookDetailSerializer
        return BookSerializer

    def get_permissions(self):
        if self.action == 'destroy':
            return [IsLibraryAdmin()]
        if self.action in ['create', 'update', 'partial_update', 'update_status', 'bulk_import']:
            return [IsLibraryStaff()]
        return [IsLibrarian()]

    def get_queryset(self):
        """Filter books based on query parameters"""
        queryset = super().get_queryset()

        # Search by title, author, accession number or ISBN
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                models.Q(title__icontains=search) |
                models.Q(author__icontains=search) |
                models.Q(accession_number__icontains=search) |
                models.Q(isbn__icontains=search)
            )

        book_status = self.request.query_params.get('status', None)
        if book_status:
            queryset = queryset.filter(status=book_status)

        category = self.request.query_params.get('category', None)
        if category:
            queryset = queryset.filter(category=category)

        return queryset

    def destroy(self, request, *args, **kwargs):
        """Delete a book with safety checks"""
        book = self.get_object()

        if book.status == Book.STATUS_BORROWED or book.current_loan() is not None:
            return Response(
                {'error': f"Cannot delete '{book.title}'. It is currently borrowed."},
                status=status.HTTP_400_BAD_REQUEST
            )
        if book.loans.exists():
            return Response(
                {'error': f"Cannot delete '{book.title}'. Mark it as weeded to keep its loan history."},
                status=status.HTTP_400_BAD_REQUEST
            )

        return super().destroy(request, *args, **kwargs)

    @action(detail=False, methods=['get'], url_path='by-accession/(?P<accession_number>[^/]+)')
    def by_accession(self, request, accession_number=None):
        book = get_object_or_404(Book, accession_number=accession_number)
        return Response(self.get_serializer(book).data)

    @action(detail=True, methods=['post'], url_path='update-status')
    def update_status(self, request, pk=None):
        """Manual status change for inventory (missing, damaged, weeded, ...)"""
        serializer = BookStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        new_status = serializer.validated_data['status']
        with transaction.atomic():
            book = get_object_or_404(Book.objects.select_for_update(), pk=pk)
            if book.status == Book.STATUS_BORROWED:
                return Response(
                    {
                        'error': f"'{book.title}' is on loan. Check it in before changing its status.",
                        'code': 'INVALID_STATUS',
                    },
                    status=status.HTTP_409_CONFLICT
                )
            previous = book.status
            book.status = new_status
            book.save(update_fields=['status', 'updated_at'])
            audit.record(
                'update_book_status', 'book', book.pk,
                {'from': previous, 'to': new_status},
                get_librarian(request.user), DASHBOARD_DEVICE,
            )

        logger.info(f"Book {book.accession_number} status {previous} -> {new_status}")
        return Response(BookSerializer(book).data)

    @action(detail=True, methods=['post'], url_path='mark-inventoried')
    def mark_inventoried(self, request, pk=None):
        book = self.get_object()
        serializer = MarkInventoriedSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        book.last_inventoried_at = timezone.now()
        update_fields = ['last_inventoried_at', 'updated_at']
        if serializer.validated_data.get('condition'):
            book.condition = serializer.validated_data['condition']
            update_fields.append('condition')
        if serializer.validated_data.get('notes'):
            book.inventory_notes = serializer.validated_data['notes']
            update_fields.append('inventory_notes')
        book.save(update_fields=update_fields)

        return Response(BookSerializer(book).data)

    @action(detail=False, methods=['get'], url_path='weeding-candidates')
    def weeding_candidates(self, request):
        """Copies not borrowed for `days` days (default two years)"""
        try:
            days = int(request.query_params.get('days', 730))
        except ValueError:
            days = 730
        books = reports.weeding_candidates(days=days).exclude(status=Book.STATUS_WEEDED)
        return Response(BookSerializer(books, many=True).data)

    @action(detail=False, methods=['get'])
    def popular(self, request):
        books = utils.get_popular_books(limit=_limit(request, 10))
        return Response(BookSerializer(books, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(utils.book_statistics())

    @action(detail=False, methods=['get'], url_path='inventory-status')
    def inventory_status(self, request):
        """Inventoried versus potentially missing copies since ?since="""
        result = utils.inventory_status(
            since=_datetime_param(request, 'since'),
            location=request.query_params.get('location'),
            category=request.query_params.get('category'),
        )
        result['inventoried_books'] = BookSerializer(result['inventoried_books'], many=True).data
        result['missing_books'] = BookSerializer(result['missing_books'], many=True).data
        return Response(result)

    @action(detail=False, methods=['get'])
    def locations(self, request):
        return Response(utils.get_locations())

    @action(detail=False, methods=['get'])
    def categories(self, request):
        return Response(utils.get_categories())

    @action(detail=False, methods=['get'], url_path='next-accession')
    def next_accession(self, request):
        prefix = request.query_params.get('prefix')
        if not prefix:
            setting = Setting.objects.filter(key='accessionPrefix').first()
            prefix = setting.value if setting and isinstance(setting.value, str) else 'B'
        return Response({'accession_number': utils.next_accession_number(prefix)})

    @action(detail=False, methods=['post'], url_path='bulk-import')
    def bulk_import(self, request):
        serializer = BulkImportSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        results = importers.import_books(
            serializer.validated_data['rows'],
            librarian=get_librarian(request.user),
            device=DASHBOARD_DEVICE,
        )
        return Response(results, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'], url_path='check-duplicates')
    def check_duplicates(self, request):
        serializer = DuplicateCheckSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        duplicates = importers.find_duplicates(Book, 'accession_number', serializer.validated_data['identifiers'])
        return Response({'duplicates': duplicates})


class LoanViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for loan (transaction) operations.
    Provides read-only access to loans plus the circulation actions:
    validate, checkout, checkin and renew.
    """
    queryset = Loan.objects.all().select_related('book', 'student', 'librarian')
    serializer_class = LoanSerializer
    permission_classes = [IsLibrarian]
    lookup_value_regex = r'\d+'

    @action(detail=False, methods=['post'])
    def validate(self, request):
        """Pre-check a checkout without changing anything"""
        serializer = BorrowRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        eligibility = validate_borrow(
            serializer.validated_data['student_id'],
            serializer.validated_data['book_id'],
        )
        return Response(eligibility.as_dict())

    @action(detail=False, methods=['post'])
    def checkout(self, request):
        """Lend a book to a student"""
        serializer = BorrowRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = services.checkout(
                serializer.validated_data['student_id'],
                serializer.validated_data['book_id'],
                device=serializer.validated_data.get('device') or DASHBOARD_DEVICE,
                librarian=get_librarian(request.user),
            )
        except CirculationError as e:
            return error_response(e)

        return Response(
            {
                'message': f"Book checked out. Due date: {timezone.localtime(result.due_date):%Y-%m-%d}",
                'transaction_id': result.transaction_id,
                'due_date': result.due_date,
            },
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['post'])
    def checkin(self, request):
        """Return a book"""
        serializer = CheckInSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = services.check_in(
                serializer.validated_data['book_id'],
                device=serializer.validated_data.get('device') or DASHBOARD_DEVICE,
                notes=serializer.validated_data.get('notes'),
                librarian=get_librarian(request.user),
            )
        except CirculationError as e:
            return error_response(e)

        if result.was_overdue:
            message = f"Book returned. Note: it was {result.days_overdue} day(s) overdue."
        else:
            message = "Book returned successfully."

        return Response(
            {
                'message': message,
                'transaction_id': result.transaction_id,
                'was_overdue': result.was_overdue,
                'days_overdue': result.days_overdue,
            },
            status=status.HTTP_200_OK
        )

    @action(detail=True, methods=['post'])
    def renew(self, request, pk=None):
        serializer = RenewSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = services.renew(
                pk,
                device=serializer.validated_data.get('device') or DASHBOARD_DEVICE,
                librarian=get_librarian(request.user),
            )
        except CirculationError as e:
            return error_response(e)

        return Response(
            {
                'transaction_id': result.transaction_id,
                'new_due_date': result.new_due_date,
                'renewal_count': result.renewal_count,
            },
            status=status.HTTP_200_OK
        )

    @action(detail=False, methods=['get'])
    def active(self, request):
        """All open loans, newest first"""
        loans = self.get_queryset().filter(is_returned=False)[:_limit(request, 100)]
        return Response(self.get_serializer(loans, many=True).data)

    @action(detail=False, methods=['get'])
    def overdue(self, request):
        """Open loans past their due date, most overdue first"""
        loans = self.get_queryset().filter(
            is_returned=False,
            due_date__lt=timezone.now()
        ).order_by('due_date')
        return Response(self.get_serializer(loans, many=True).data)

    @action(detail=False, methods=['get'])
    def recent(self, request):
        loans = self.get_queryset()[:_limit(request, 20)]
        return Response(self.get_serializer(loans, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(utils.circulation_statistics(
            _datetime_param(request, 'start'), _datetime_param(request, 'end')
        ))

    @action(detail=False, methods=['get'], url_path='overdue-report')
    def overdue_report(self, request):
        return Response(utils.overdue_report())

    @action(detail=False, methods=['get'], url_path='financial-summary')
    def financial_summary(self, request):
        return Response(utils.financial_summary())

    @action(detail=False, methods=['get'], url_path='by-period')
    def by_period(self, request):
        """Circulation grouped by ?period=daily|weekly|monthly"""
        period = request.query_params.get('period', 'daily')
        if period not in utils.PERIODS:
            return Response(
                {'error': f"period must be one of: {', '.join(utils.PERIODS)}"},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(utils.circulation_by_period(
            period, _datetime_param(request, 'start'), _datetime_param(request, 'end')
        ))

    @action(detail=False, methods=['get'], url_path='by-grade')
    def by_grade(self, request):
        return Response(utils.circulation_by_grade(
            _datetime_param(request, 'start'), _datetime_param(request, 'end')
        ))

    @action(detail=False, methods=['get'], url_path='peak-usage')
    def peak_usage(self, request):
        return Response(utils.peak_usage(
            _datetime_param(request, 'start'), _datetime_param(request, 'end')
        ))


class HolidayViewSet(mixins.ListModelMixin,
                     mixins.CreateModelMixin,
                     mixins.DestroyModelMixin,
                     viewsets.GenericViewSet):
    """Non-lending days; anyone on staff can read them, admins manage them"""
    queryset = Holiday.objects.all()
    serializer_class = HolidaySerializer

    def get_permissions(self):
        if self.action in ['create', 'destroy', 'initialize']:
            return [IsLibraryAdmin()]
        return [IsLibrarian()]

    def get_queryset(self):
        queryset = super().get_queryset()
        year = self.request.query_params.get('year', None)
        if year:
            queryset = queryset.filter(date__year=year)
        return queryset

    @action(detail=False, methods=['post'])
    def initialize(self, request):
        """Seed the Philippine school-year holidays for a year"""
        try:
            year = int(request.data.get('year', timezone.localdate().year))
        except (TypeError, ValueError):
            return Response({'error': 'year must be a number.'}, status=status.HTTP_400_BAD_REQUEST)

        created = initialize_philippine_holidays(year)
        return Response({'initialized': True, 'year': year, 'created': created})


class SettingsAPIView(APIView):
    """
    Library policy settings.
    Every librarian can read them; only admins can change them.
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsLibrarian()]
        return [IsLibraryAdmin()]

    def get(self, request):
        """All settings as a key -> value mapping"""
        return Response({setting.key: setting.value for setting in Setting.objects.all()})

    def put(self, request):
        """Create or replace one setting"""
        instance = Setting.objects.filter(key=request.data.get('key')).first()
        serializer = SettingSerializer(instance, data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Rejected setting {request.data.get('key')!r}: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        setting = serializer.save()
        audit.record(
            'update_setting', 'setting', setting.key, {'value': setting.value},
            get_librarian(request.user), DASHBOARD_DEVICE,
        )
        logger.info(f"Setting {setting.key} set to {setting.value!r}")
        return Response(SettingSerializer(setting).data)

    def delete(self, request):
        """Remove a setting so its default applies again"""
        key = request.query_params.get('key') or request.data.get('key')
        deleted, _ = Setting.objects.filter(key=key).delete()
        if not deleted:
            return Response({'error': f"Setting '{key}' not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class InitializeSettingsAPIView(APIView):
    permission_classes = [IsLibraryAdmin]

    def post(self, request):
        created = initialize_default_settings()
        return Response({'initialized': True, 'created': created})


class ReportViewSet(viewsets.ViewSet):
    """
    Scheduled report jobs, runnable on demand by admins, and their history.
    """

    def get_permissions(self):
        if self.action == 'history':
            return [IsLibrarian()]
        return [IsLibraryAdmin()]

    @action(detail=False, methods=['post'], url_path='overdue-sweep')
    def overdue_sweep(self, request):
        return Response(reports.overdue_sweep())

    @action(detail=False, methods=['post'], url_path='weekly-summary')
    def weekly_summary(self, request):
        snapshot = reports.weekly_summary()
        return Response(ReportSnapshotSerializer(snapshot).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='monthly-summary')
    def monthly_summary(self, request):
        snapshot = reports.monthly_summary()
        return Response(ReportSnapshotSerializer(snapshot).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def history(self, request):
        """Stored summaries, newest first, optionally filtered by type"""
        snapshots = ReportSnapshot.objects.all()
        report_type = request.query_params.get('type', None)
        if report_type:
            snapshots = snapshots.filter(report_type=report_type)
        return Response(ReportSnapshotSerializer(snapshots[:_limit(request, 20)], many=True).data)


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.all().select_related('librarian')
    serializer_class = AuditLogSerializer
    permission_classes = [IsLibraryAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        action_name = self.request.query_params.get('action', None)
        if action_name:
            queryset = queryset.filter(action=action_name)
        since = self.request.query_params.get('days', None)
        if since and since.isdigit():
            queryset = queryset.filter(timestamp__gte=timezone.now() - timedelta(days=int(since)))
        return queryset
