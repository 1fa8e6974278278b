"""
Zeno Store URL Configuration
"""
from django.conf import settings
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),

    # REST API (back-office, storefront and platform)
    path('api/v1/', include('zeno_store.api_urls')),
]
