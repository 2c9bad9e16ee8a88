import pytest
from rest_framework.authtoken.models import Token

from staff.models import Librarian

pytestmark = pytest.mark.django_db


def test_login_returns_token_and_role(api_client, make_librarian):
    librarian = make_librarian(role=Librarian.ROLE_ADMIN, password='library-pass-1')

    response = api_client.post(
        '/api/auth/login/', {'username': librarian.user.username, 'password': 'library-pass-1'}, format='json'
    )

    assert response.status_code == 200
    assert response.data['token'] == Token.objects.get(user=librarian.user).key
    assert response.data['librarian']['role'] == 'admin'


def test_login_rejects_bad_password(api_client, make_librarian):
    librarian = make_librarian()
    response = api_client.post(
        '/api/auth/login/', {'username': librarian.user.username, 'password': 'wrong'}, format='json'
    )
    assert response.status_code == 400


def test_token_authenticates_requests(api_client, make_librarian):
    librarian = make_librarian(role=Librarian.ROLE_STUDENT_ASSISTANT)
    token = Token.objects.create(user=librarian.user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    response = api_client.get('/api/auth/profile/')
    assert response.status_code == 200
    assert response.data['librarian']['role'] == 'student_assistant'


def test_only_admins_manage_members(admin_client, staff_client):
    assert staff_client.get('/api/librarians/').status_code == 403

    response = admin_client.post('/api/librarians/', {
        'username': 'newhelper',
        'password': 'helper-pass-123',
        'name': 'New Helper',
        'role': 'student_assistant',
    }, format='json')
    assert response.status_code == 201
    assert Librarian.objects.get(user__username='newhelper').role == 'student_assistant'


def test_deactivation(admin_client, make_librarian):
    own = admin_client.post(f'/api/librarians/{admin_client.librarian.pk}/deactivate/')
    assert own.status_code == 400

    other = make_librarian()
    response = admin_client.post(f'/api/librarians/{other.pk}/deactivate/')
    assert response.status_code == 200
    other.refresh_from_db()
    assert not other.is_active


def test_first_admin_setup(api_client):
    response = api_client.post('/api/auth/setup/', {
        'username': 'headlibrarian',
        'password': 'first-admin-pass',
        'name': 'Head Librarian',
        'role': 'student_assistant',
    }, format='json')

    assert response.status_code == 201
    librarian = Librarian.objects.get(user__username='headlibrarian')
    assert librarian.role == Librarian.ROLE_ADMIN
    assert response.data['token'] == Token.objects.get(user=librarian.user).key

    api_client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
    assert api_client.get('/api/librarians/').status_code == 200


def test_first_admin_setup_only_once(api_client, make_librarian):
    make_librarian(role=Librarian.ROLE_STUDENT_ASSISTANT)

    response = api_client.post('/api/auth/setup/', {
        'username': 'intruder',
        'password': 'intruder-pass-1',
        'name': 'Intruder',
    }, format='json')

    assert response.status_code == 409
    assert not Librarian.objects.filter(user__username='intruder').exists()


def test_roles_require_an_active_member(make_librarian, client_for):
    librarian = make_librarian(role=Librarian.ROLE_STAFF)
    assert librarian.has_role(Librarian.ROLE_ADMIN, Librarian.ROLE_STAFF)
    assert not librarian.has_role(Librarian.ROLE_ADMIN)

    librarian.is_active = False
    assert not librarian.has_role(Librarian.ROLE_STAFF)

    assistant = client_for(Librarian.ROLE_STUDENT_ASSISTANT)
    response = assistant.post('/api/students/1/block/', {'reason': 'Lost book'}, format='json')
    assert response.status_code == 403
    assert 'admin or staff' in response.data['detail']
