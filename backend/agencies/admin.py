from django.contrib import admin
from .models import Agency, AgencyHierarchy


class AgencyHierarchyInline(admin.TabularInline):
    model = AgencyHierarchy
    fk_name = 'agency'
    extra = 0


@admin.register(Agency)
class AgencyAdmin(admin.ModelAdmin):
    list_display = ['name', 'commission_rate', 'rank', 'user', 'invoice_registration_number', 'created_at']
    list_filter = ['rank']
    search_fields = ['name', 'user__email', 'invoice_registration_number']
    ordering = ['-created_at']
    inlines = [AgencyHierarchyInline]
