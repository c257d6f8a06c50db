from django.contrib import admin
from .models import Application


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ['id', 'form_tab', 'status', 'name', 'tiktok_username', 'agency', 'liver', 'created_at']
    list_filter = ['form_tab', 'status', 'id_verified']
    search_fields = ['name', 'email', 'tiktok_username']
    ordering = ['-created_at']
    readonly_fields = ['liver', 'submitted_by', 'created_at', 'updated_at']
