from rest_framework.permissions import BasePermission

from .models import Librarian

ALL_ROLES = (Librarian.ROLE_ADMIN, Librarian.ROLE_STAFF, Librarian.ROLE_STUDENT_ASSISTANT)


def get_librarian(user):
    """Active librarian profile for a user, or None"""
    if not user or not user.is_authenticated:
        return None
    try:
        librarian = user.librarian
    except Librarian.DoesNotExist:
        return None
    return librarian if librarian.is_active else None


class HasLibrarianRole(BasePermission):
    """Grants access to active librarians holding one of `roles`"""
    roles = ALL_ROLES
    message = "Unauthorized: Librarian access required"

    def has_permission(self, request, view):
        librarian = get_librarian(request.user)
        if librarian is None:
            return False
        if not librarian.has_role(*self.roles):
            self.message = f"Unauthorized: Requires {' or '.join(self.roles)} role"
            return False
        return True


class IsLibrarian(HasLibrarianRole):
    roles = ALL_ROLES


class IsLibraryStaff(HasLibrarianRole):
    roles = (Librarian.ROLE_ADMIN, Librarian.ROLE_STAFF)


class IsLibraryAdmin(HasLibrarianRole):
    roles = (Librarian.ROLE_ADMIN,)
