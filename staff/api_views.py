from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.authtoken.models import Token
from django.contrib.auth import login, logout
from .models import Librarian
from .permissions import IsLibraryAdmin, get_librarian
from .serializers import (
    FirstAdminSerializer, LibrarianCreateSerializer, LibrarianSerializer, LoginSerializer,
    UserSerializer
)
import logging

logger = logging.getLogger(__name__)


class LoginAPIView(APIView):
    """API view for staff login"""
    permission_classes = [AllowAny]

    def post(self, request):
        """Login user and return token"""
        serializer = LoginSerializer(data=request.data)

        if serializer.is_valid():
            user = serializer.validated_data['user']

            # Get or create auth token
            token, created = Token.objects.get_or_create(user=user)

            login(request, user)
            logger.info(f"Login: {user.username}")

            librarian = get_librarian(user)
            return Response(
                {
                    'message': f'Welcome back, {user.username}!',
                    'token': token.key,
                    'user': UserSerializer(user).data,
                    'librarian': LibrarianSerializer(librarian).data if librarian else None,
                },
                status=status.HTTP_200_OK
            )

        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class SetupFirstAdminAPIView(APIView):
    """
    Bootstrap the first administrator account.

    Only works while no librarian exists at all; later members are added by
    an administrator through the librarians endpoint.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        if Librarian.objects.exists():
            return Response(
                {'error': 'Admin already exists. Ask an administrator to add you.'},
                status=status.HTTP_409_CONFLICT
            )

        serializer = FirstAdminSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        librarian = serializer.save()
        token = Token.objects.create(user=librarian.user)
        logger.info(f"First administrator {librarian.name} set up")

        return Response(
            {
                'token': token.key,
                'librarian': LibrarianSerializer(librarian).data,
            },
            status=status.HTTP_201_CREATED
        )


class LogoutAPIView(APIView):
    """API view for staff logout"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        """Logout user and delete token"""
        Token.objects.filter(user=request.user).delete()

        username = request.user.username
        logout(request)

        return Response(
            {'message': f'Goodbye, {username}! You have been logged out successfully.'},
            status=status.HTTP_200_OK
        )


class ProfileAPIView(APIView):
    """API view for the signed-in user's profile"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        """Get current user's profile, including the librarian role"""
        data = UserSerializer(request.user).data
        librarian = get_librarian(request.user)
        data['librarian'] = LibrarianSerializer(librarian).data if librarian else None
        return Response(data)

    def patch(self, request):
        """Partially update current user's profile"""
        serializer = UserSerializer(request.user, data=request.data, partial=True)

        if serializer.is_valid():
            serializer.save()
            return Response(
                {
                    'message': 'Profile updated successfully.',
                    'user': serializer.data
                },
                status=status.HTTP_200_OK
            )

        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class LibrarianViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.CreateModelMixin,
                       mixins.UpdateModelMixin,
                       viewsets.GenericViewSet):
    """
    Staff membership management (admin only).
    Members are deactivated rather than deleted so their history stays intact.
    """
    queryset = Librarian.objects.all().select_related('user')
    permission_classes = [IsLibraryAdmin]

    def get_serializer_class(self):
        if self.action == 'create':
            return LibrarianCreateSerializer
        return LibrarianSerializer

    def perform_create(self, serializer):
        librarian = serializer.save()
        logger.info(f"Librarian {librarian.name} added with role {librarian.role}")

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        """Revoke a member's access"""
        librarian = self.get_object()

        if librarian == get_librarian(request.user):
            return Response(
                {'error': 'You cannot deactivate your own account.'},
                status=status.HTTP_400_BAD_REQUEST
            )

        librarian.is_active = False
        librarian.save(update_fields=['is_active'])
        Token.objects.filter(user=librarian.user).delete()
        logger.info(f"Librarian {librarian.name} deactivated")
        return Response(LibrarianSerializer(librarian).data)

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        librarian = self.get_object()
        librarian.is_active = True
        librarian.save(update_fields=['is_active'])
        return Response(LibrarianSerializer(librarian).data)
