from django.contrib import admin

from .models import PickupRequest


@admin.register(PickupRequest)
class PickupRequestAdmin(admin.ModelAdmin):
    list_display = ("tracking_number", "status", "pickup_country", "requested_date", "contact_email", "account")
    list_filter = ("status", "pickup_country", "is_attached_to_account")
    search_fields = ("tracking_number", "contact_email", "account__username")
    readonly_fields = ("account", "is_attached_to_account", "created_at")
