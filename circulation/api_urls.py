from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import api_views

# Create router and register viewsets
router = DefaultRouter()
router.register(r'students', api_views.StudentViewSet, basename='student')
router.register(r'books', api_views.BookViewSet, basename='book')
router.register(r'loans', api_views.LoanViewSet, basename='loan')
router.register(r'holidays', api_views.HolidayViewSet, basename='holiday')
router.register(r'reports', api_views.ReportViewSet, basename='report')
router.register(r'audit-logs', api_views.AuditLogViewSet, basename='audit-log')

urlpatterns = [
    path('settings/', api_views.SettingsAPIView.as_view(), name='api-settings'),
    path('settings/initialize/', api_views.InitializeSettingsAPIView.as_view(), name='api-settings-initialize'),
    path('', include(router.urls)),
]
