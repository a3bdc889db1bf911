from django.contrib import admin

from .models import Prospect


@admin.register(Prospect)
class ProspectAdmin(admin.ModelAdmin):
    list_display = ("email", "name", "company", "status", "invitation_expires_at", "account", "created_at")
    list_filter = ("status",)
    search_fields = ("email", "name", "company", "phone")
    readonly_fields = ("invitation_token", "invitation_expires_at", "account", "converted_at", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False
