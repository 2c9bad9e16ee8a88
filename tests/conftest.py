import itertools
from datetime import datetime
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.utils import timezone
from rest_framework.test import APIClient

from circulation.models import Book, Loan, Student
from staff.models import Librarian


@pytest.fixture
def now():
    """Monday 3 March 2025, 10:00 library time"""
    return timezone.make_aware(datetime(2025, 3, 3, 10, 0))


@pytest.fixture
def make_student(db):
    counter = itertools.count(1)

    def _make(**kwargs):
        n = next(counter)
        defaults = {
            'student_id': f'S-{n:04d}',
            'name': f'Student {n}',
            'grade_level': 7,
            'section': 'Rizal',
            'email': f'student{n}@school.test',
            'guardian': f'Guardian {n}',
            'guardian_phone': '09170000000',
            'borrowing_limit': 5,
        }
        defaults.update(kwargs)
        return Student.objects.create(**defaults)

    return _make


@pytest.fixture
def make_book(db):
    counter = itertools.count(1)

    def _make(**kwargs):
        n = next(counter)
        defaults = {
            'accession_number': f'B-2025-{n:04d}',
            'title': f'Book {n}',
            'author': 'Jose Rizal',
            'category': 'Fiction',
            'replacement_cost': Decimal('100.00'),
        }
        defaults.update(kwargs)
        return Book.objects.create(**defaults)

    return _make


@pytest.fixture
def make_loan(db):
    """Open loan written directly, for setting up past or overdue states"""

    def _make(student, book, checkout_date, due_date, **kwargs):
        defaults = {'max_renewals': 2, 'device': Loan.DEVICE_ADMIN_DASHBOARD}
        defaults.update(kwargs)
        loan = Loan.objects.create(
            student=student,
            book=book,
            checkout_date=checkout_date,
            due_date=due_date,
            **defaults
        )
        if not loan.is_returned:
            Book.objects.filter(pk=book.pk).update(status=Book.STATUS_BORROWED)
            book.refresh_from_db()
        return loan

    return _make


@pytest.fixture
def make_librarian(db):
    counter = itertools.count(1)

    def _make(role=Librarian.ROLE_STAFF, password='s3cret-pass', **kwargs):
        n = next(counter)
        user = User.objects.create_user(username=f'{role}{n}', password=password)
        return Librarian.objects.create(user=user, name=f'{role.title()} {n}', role=role, **kwargs)

    return _make


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(make_librarian):
    """APIClient signed in as a new librarian with the given role"""

    def _client(role):
        librarian = make_librarian(role=role)
        client = APIClient()
        client.force_authenticate(user=librarian.user)
        client.librarian = librarian
        return client

    return _client


@pytest.fixture
def admin_client(client_for):
    return client_for(Librarian.ROLE_ADMIN)


@pytest.fixture
def staff_client(client_for):
    return client_for(Librarian.ROLE_STAFF)


@pytest.fixture
def assistant_client(client_for):
    return client_for(Librarian.ROLE_STUDENT_ASSISTANT)
