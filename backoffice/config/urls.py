"""
URL configuration for the back-office project.

Every app mounts its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Back Office Admin Panel"
admin.site.site_title = "Back Office Admin Portal"
admin.site.index_title = "Orders, quotes, invoices and purchasing"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backoffice.core.urls')),
    path('api/v1/', include('backoffice.parties.urls')),
    path('api/v1/', include('backoffice.catalog.urls')),
    path('api/v1/', include('backoffice.sales.urls')),
    path('api/v1/', include('backoffice.billing.urls')),
    path('api/v1/', include('backoffice.purchasing.urls')),
    path('api/v1/', include('backoffice.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
