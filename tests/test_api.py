from datetime import timedelta

import pytest
from django.utils import timezone

from circulation.models import AuditLog, Book, Loan, ReportSnapshot, Setting, Student

pytestmark = pytest.mark.django_db


def test_circulation_requires_a_librarian(api_client, make_librarian):
    assert api_client.get('/api/loans/').status_code in (401, 403)

    # A signed-in user without an active librarian profile is refused too
    librarian = make_librarian(is_active=False)
    api_client.force_authenticate(user=librarian.user)
    response = api_client.get('/api/loans/')
    assert response.status_code == 403


def test_validate_then_checkout(staff_client, make_student, make_book):
    student, book = make_student(), make_book()
    payload = {'student_id': student.pk, 'book_id': book.pk}

    response = staff_client.post('/api/loans/validate/', payload, format='json')
    assert response.status_code == 200
    assert response.data == {'ok': True}

    response = staff_client.post('/api/loans/checkout/', payload, format='json')
    assert response.status_code == 201
    loan = Loan.objects.get(pk=response.data['transaction_id'])
    assert loan.librarian == staff_client.librarian
    assert loan.device == 'admin_dashboard'
    assert response.data['due_date'] == loan.due_date


def test_checkout_rejection_carries_reason(assistant_client, make_student, make_book, make_loan):
    now = timezone.now()
    student = make_student(borrowing_limit=1)
    make_loan(student, make_book(), now - timedelta(days=1), now + timedelta(days=5))

    response = assistant_client.post(
        '/api/loans/checkout/', {'student_id': student.pk, 'book_id': make_book().pk}, format='json'
    )

    assert response.status_code == 409
    assert response.data['code'] == 'LIMIT_REACHED'
    assert '1/1' in response.data['error']
    assert response.data['limit'] == 1


def test_validate_reports_without_raising(staff_client, make_book):
    response = staff_client.post('/api/loans/validate/', {'student_id': 999999, 'book_id': make_book().pk}, format='json')
    assert response.status_code == 200
    assert response.data['ok'] is False
    assert response.data['reason'] == 'STUDENT_NOT_FOUND'


def test_checkin_and_renew(staff_client, make_student, make_book):
    book = make_book()
    checkout = staff_client.post(
        '/api/loans/checkout/', {'student_id': make_student().pk, 'book_id': book.pk}, format='json'
    )
    loan_id = checkout.data['transaction_id']

    response = staff_client.post(f'/api/loans/{loan_id}/renew/', {}, format='json')
    assert response.status_code == 200
    assert response.data['renewal_count'] == 1

    response = staff_client.post('/api/loans/checkin/', {'book_id': book.pk, 'notes': 'Torn cover'}, format='json')
    assert response.status_code == 200
    assert response.data['was_overdue'] is False
    assert response.data['days_overdue'] == 0
    assert Loan.objects.get(pk=loan_id).notes == 'Torn cover'

    response = staff_client.post(f'/api/loans/{loan_id}/renew/', {}, format='json')
    assert response.status_code == 409
    assert response.data['code'] == 'ALREADY_RETURNED'


def test_renew_with_non_numeric_id(staff_client):
    response = staff_client.post('/api/loans/abc/renew/', {}, format='json')
    assert response.status_code == 404

    response = staff_client.post('/api/loans/999999/renew/', {}, format='json')
    assert response.status_code == 404
    assert response.data['code'] == 'NOT_FOUND'


def test_checkin_without_open_loan(staff_client, make_book):
    response = staff_client.post('/api/loans/checkin/', {'book_id': make_book().pk}, format='json')
    assert response.status_code == 409
    assert response.data['code'] == 'NO_ACTIVE_LOAN'


def test_overdue_listing(staff_client, make_student, make_book, make_loan):
    now = timezone.now()
    student = make_student()
    late = make_loan(student, make_book(), now - timedelta(days=20), now - timedelta(days=4))
    make_loan(student, make_book(), now - timedelta(days=1), now + timedelta(days=9))

    response = staff_client.get('/api/loans/overdue/')
    assert response.status_code == 200
    assert [row['id'] for row in response.data] == [late.pk]
    assert response.data[0]['days_overdue'] >= 3

    report = staff_client.get('/api/loans/overdue-report/')
    assert report.data[0]['transaction_id'] == late.pk


def test_student_creation_derives_limit(staff_client):
    response = staff_client.post(
        '/api/students/', {'student_id': '2025-100', 'name': 'Lea Tan', 'grade_level': 5}, format='json'
    )
    assert response.status_code == 201
    assert response.data['borrowing_limit'] == 2

    student_pk = response.data['id']
    response = staff_client.patch(f'/api/students/{student_pk}/', {'grade_level': 11}, format='json')
    assert response.data['borrowing_limit'] == 7


def test_lookup_student_by_barcode(assistant_client, make_student):
    make_student(student_id='2025-777', name='Mara Go')
    response = assistant_client.get('/api/students/by-barcode/2025-777/')
    assert response.status_code == 200
    assert response.data['name'] == 'Mara Go'
    assert response.data['active_loans'] == []


def test_blocking_requires_staff_role(assistant_client, staff_client, make_student):
    student = make_student()

    response = assistant_client.post(f'/api/students/{student.pk}/block/', {'reason': 'Lost book'}, format='json')
    assert response.status_code == 403

    response = staff_client.post(f'/api/students/{student.pk}/block/', {'reason': 'Lost book'}, format='json')
    assert response.status_code == 200
    student.refresh_from_db()
    assert student.is_blocked
    assert student.block_reason == 'Lost book'

    response = staff_client.post(f'/api/students/{student.pk}/unblock/')
    student.refresh_from_db()
    assert not student.is_blocked
    assert AuditLog.objects.filter(action__in=['block_student', 'unblock_student']).count() == 2


def test_student_with_active_loans_cannot_be_deleted(admin_client, make_student, make_book, make_loan):
    now = timezone.now()
    student = make_student()
    make_loan(student, make_book(), now, now + timedelta(days=5))

    response = admin_client.delete(f'/api/students/{student.pk}/')
    assert response.status_code == 400
    assert response.data['code'] == 'HAS_ACTIVE_LOANS'
    assert Student.objects.filter(pk=student.pk).exists()


def test_borrowed_book_cannot_be_deleted_or_restatused(admin_client, make_student, make_book, make_loan):
    now = timezone.now()
    book = make_book()
    make_loan(make_student(), book, now, now + timedelta(days=5))

    assert admin_client.delete(f'/api/books/{book.pk}/').status_code == 400
    response = admin_client.post(f'/api/books/{book.pk}/update-status/', {'status': 'missing'}, format='json')
    assert response.status_code == 409
    assert response.data['code'] == 'INVALID_STATUS'
    book.refresh_from_db()
    assert book.status == Book.STATUS_BORROWED


def test_update_status_never_sets_borrowed(staff_client, make_book):
    book = make_book()

    response = staff_client.post(f'/api/books/{book.pk}/update-status/', {'status': 'borrowed'}, format='json')
    assert response.status_code == 400

    response = staff_client.post(f'/api/books/{book.pk}/update-status/', {'status': 'damaged'}, format='json')
    assert response.status_code == 200
    assert response.data['status'] == 'damaged'


def test_book_status_is_read_only_through_crud(staff_client, make_book):
    book = make_book()
    response = staff_client.patch(f'/api/books/{book.pk}/', {'status': 'borrowed', 'location': 'Shelf A'}, format='json')
    assert response.status_code == 200
    book.refresh_from_db()
    assert book.status == Book.STATUS_AVAILABLE
    assert book.location == 'Shelf A'


def test_weeding_candidates_exclude_weeded(staff_client, make_book):
    never = make_book()
    make_book(status=Book.STATUS_WEEDED)
    make_book(last_borrowed_at=timezone.now() - timedelta(days=10))

    response = staff_client.get('/api/books/weeding-candidates/')
    assert [row['id'] for row in response.data] == [never.pk]


def test_next_accession_number(staff_client, make_book):
    year = timezone.localtime().year
    make_book(accession_number=f'B-{year}-0007')
    response = staff_client.get('/api/books/next-accession/')
    assert response.data == {'accession_number': f'B-{year}-0008'}


def test_bulk_import_and_duplicate_check(staff_client, make_book):
    make_book(accession_number='B-2025-0001')

    response = staff_client.post('/api/books/check-duplicates/', {'identifiers': ['B-2025-0001', 'B-2025-0009']}, format='json')
    assert response.data == {'duplicates': ['B-2025-0001']}

    rows = [
        {'accession_number': 'B-2025-0001', 'title': 'Dup', 'author': 'X'},
        {'accession_number': 'B-2025-0002', 'title': 'Florante at Laura', 'author': 'Francisco Balagtas'},
    ]
    response = staff_client.post('/api/books/bulk-import/', {'rows': rows}, format='json')
    assert response.status_code == 200
    assert response.data['created'] == 1
    assert response.data['skipped'] == 1


def test_settings_are_validated_on_write(admin_client, staff_client):
    response = staff_client.put('/api/settings/', {'key': 'borrowingDays', 'value': 7}, format='json')
    assert response.status_code == 403

    response = admin_client.put('/api/settings/', {'key': 'borrowingDays', 'value': 0}, format='json')
    assert response.status_code == 400
    assert not Setting.objects.exists()

    response = admin_client.put('/api/settings/', {'key': 'borrowingDays', 'value': 7}, format='json')
    assert response.status_code == 200
    response = admin_client.put('/api/settings/', {'key': 'borrowingDays', 'value': 10}, format='json')
    assert response.status_code == 200
    assert Setting.objects.get(key='borrowingDays').value == 10

    response = staff_client.get('/api/settings/')
    assert response.data == {'borrowingDays': 10}

    response = admin_client.delete('/api/settings/?key=borrowingDays')
    assert response.status_code == 204
    assert not Setting.objects.exists()


def test_initialize_settings_and_holidays(admin_client):
    response = admin_client.post('/api/settings/initialize/')
    assert response.status_code == 200
    assert Setting.objects.filter(key='borrowingLimits').exists()

    response = admin_client.post('/api/holidays/initialize/', {'year': 2025}, format='json')
    assert response.data['created'] > 0
    again = admin_client.post('/api/holidays/initialize/', {'year': 2025}, format='json')
    assert again.data['created'] == 0

    listing = admin_client.get('/api/holidays/?year=2025')
    assert len(listing.data) == response.data['created']


def test_report_jobs(admin_client, staff_client, make_student, make_book, make_loan):
    now = timezone.now()
    make_loan(make_student(), make_book(), now - timedelta(days=20), now - timedelta(days=3))

    assert staff_client.post('/api/reports/overdue-sweep/').status_code == 403

    response = admin_client.post('/api/reports/overdue-sweep/')
    assert response.status_code == 200
    assert response.data['overdue_count'] == 1

    response = admin_client.post('/api/reports/weekly-summary/')
    assert response.status_code == 201
    assert response.data['data']['currently_overdue'] == 1
    admin_client.post('/api/reports/monthly-summary/')

    response = staff_client.get('/api/reports/history/?type=weekly')
    assert len(response.data) == 1
    assert ReportSnapshot.objects.count() == 2


def test_inventory_status_endpoint(assistant_client, make_book):
    now = timezone.now()
    scanned = make_book(location='Shelf A', last_inventoried_at=now)
    unseen = make_book(location='Shelf A')
    make_book(location='Shelf B')

    response = assistant_client.get(
        '/api/books/inventory-status/', {'location': 'Shelf A', 'since': (now - timedelta(hours=1)).isoformat()}
    )

    assert response.status_code == 200
    assert response.data['total'] == 2
    assert response.data['potentially_missing'] == 1
    assert [row['id'] for row in response.data['inventoried_books']] == [scanned.pk]
    assert [row['id'] for row in response.data['missing_books']] == [unseen.pk]

    assert assistant_client.get('/api/books/locations/').data == ['Shelf A', 'Shelf B']
    assert assistant_client.get('/api/books/categories/').data == ['Fiction']


def test_circulation_breakdowns(staff_client, make_student, make_book):
    student = make_student(grade_level=4)
    staff_client.post('/api/loans/checkout/', {'student_id': student.pk, 'book_id': make_book().pk}, format='json')

    response = staff_client.get('/api/loans/by-period/', {'period': 'monthly'})
    assert response.status_code == 200
    assert sum(row['checkouts'] for row in response.data) == 1

    assert staff_client.get('/api/loans/by-period/', {'period': 'hourly'}).status_code == 400

    response = staff_client.get('/api/loans/by-grade/')
    assert response.data == [{'grade': 4, 'checkouts': 1, 'unique_students': 1}]

    response = staff_client.get('/api/loans/peak-usage/')
    assert sum(row['count'] for row in response.data['by_hour']) == 1
    assert len(response.data['by_day_of_week']) == 7
