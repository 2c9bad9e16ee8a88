from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),

    # Unauthenticated self-service endpoints
    path('api/kiosk/', include('kiosk.api_urls')),

    # Staff auth and librarian management
    path('api/', include('staff.api_urls')),

    # Circulation dashboard API
    path('api/', include('circulation.api_urls')),
]
