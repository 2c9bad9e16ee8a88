from django.urls import path
from . import api_views

urlpatterns = [
    path('students/<str:barcode>/', api_views.KioskStudentAPIView.as_view(), name='kiosk-student'),
    path('books/<str:accession_number>/', api_views.KioskBookAPIView.as_view(), name='kiosk-book'),
    path('checkout/', api_views.KioskCheckoutAPIView.as_view(), name='kiosk-checkout'),
    path('checkin/', api_views.KioskCheckInAPIView.as_view(), name='kiosk-checkin'),
]
