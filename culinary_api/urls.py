"""
URL configuration for culinary_api project.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include

from .views import health_view

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', health_view, name='health'),
    path('api/auth/', include('accounts.urls')),
    path('api/users/', include('accounts.user_urls')),
    path('api/', include('recipes.urls')),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

handler404 = 'culinary_api.views.not_found_view'
handler500 = 'culinary_api.views.server_error_view'
