from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from django.utils import timezone
import logging

from circulation import services
from circulation.exceptions import CirculationError, NotFound, ReasonCode
from circulation.models import Book, Loan, Student
from .serializers import (
    KioskBookSerializer, KioskCheckInSerializer, KioskCheckoutSerializer,
    KioskStudentSerializer
)

logger = logging.getLogger(__name__)

KIOSK_DEVICE = Loan.DEVICE_KIOSK


def _book_by_accession(accession_number):
    book = Book.objects.filter(accession_number=accession_number).first()
    if book is None:
        raise NotFound(ReasonCode.BOOK_NOT_FOUND, "Book not found. Please check the accession number.")
    return book


class KioskStudentAPIView(APIView):
    """Student lookup by scanned ID card"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, barcode):
        student = Student.objects.filter(student_id=barcode).first()
        if student is None:
            return Response(
                {'error': 'Student not found', 'code': ReasonCode.STUDENT_NOT_FOUND},
                status=status.HTTP_404_NOT_FOUND
            )
        serializer = KioskStudentSerializer(student, context={'now': timezone.now()})
        return Response(serializer.data)


class KioskBookAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, accession_number):
        try:
            book = _book_by_accession(accession_number)
        except CirculationError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(KioskBookSerializer(book).data)


class KioskCheckoutAPIView(APIView):
    """Self-service checkout; no librarian is recorded"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = KioskCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        # Student-side failures take precedence over an unknown accession number
        book = Book.objects.filter(
            accession_number=serializer.validated_data['accession_number']
        ).first()
        try:
            result = services.checkout(
                serializer.validated_data['student_id'],
                book.pk if book else None,
                device=KIOSK_DEVICE,
            )
        except CirculationError as e:
            logger.info(f"Kiosk checkout rejected: {e.code}")
            return Response(e.as_dict(), status=e.status_code)

        loan = Loan.objects.select_related('student', 'book').get(pk=result.transaction_id)
        return Response(
            {
                'transaction_id': result.transaction_id,
                'due_date': result.due_date,
                'book_title': loan.book.title,
                'student_name': loan.student.name,
            },
            status=status.HTTP_201_CREATED
        )


class KioskCheckInAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = KioskCheckInSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            book = _book_by_accession(serializer.validated_data['accession_number'])
            result = services.check_in(book.pk, device=KIOSK_DEVICE)
        except CirculationError as e:
            logger.info(f"Kiosk check-in rejected: {e.code}")
            return Response(e.as_dict(), status=e.status_code)

        loan = Loan.objects.select_related('student', 'book').get(pk=result.transaction_id)
        return Response(
            {
                'transaction_id': result.transaction_id,
                'was_overdue': result.was_overdue,
                'days_overdue': result.days_overdue,
                'book_title': loan.book.title,
                'student_name': loan.student.name,
            },
            status=status.HTTP_200_OK
        )
