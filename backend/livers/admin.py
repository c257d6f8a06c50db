from django.contrib import admin
from .models import Liver


@admin.register(Liver)
class LiverAdmin(admin.ModelAdmin):
    list_display = ['name', 'account_name', 'liver_id', 'tiktok_username', 'status', 'agency', 'created_at']
    list_filter = ['status', 'agency']
    search_fields = ['name', 'account_name', 'liver_id', 'tiktok_username', 'email']
    ordering = ['-created_at']
