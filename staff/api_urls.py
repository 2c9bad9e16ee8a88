from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import api_views

router = SimpleRouter()
router.register(r'librarians', api_views.LibrarianViewSet, basename='librarian')

urlpatterns = [
    path('auth/login/', api_views.LoginAPIView.as_view(), name='api-login'),
    path('auth/logout/', api_views.LogoutAPIView.as_view(), name='api-logout'),
    path('auth/profile/', api_views.ProfileAPIView.as_view(), name='api-profile'),
    path('auth/setup/', api_views.SetupFirstAdminAPIView.as_view(), name='api-setup'),
    path('', include(router.urls)),
]
