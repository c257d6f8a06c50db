"""
URL configuration for the liver manager backend.

Every app mounts its function views under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Liver Manager Admin Panel"
admin.site.site_title = "Liver Manager Admin Portal"
admin.site.index_title = "Liver Manager Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.agencies.urls')),
    path('api/v1/', include('backend.livers.urls')),
    path('api/v1/', include('backend.applications.urls')),
    path('api/v1/', include('backend.reports.urls')),
    path('api/v1/', include('backend.invoices.urls')),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
