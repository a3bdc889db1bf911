from django.contrib import admin

from .models import Package, Quote, QuoteLog


class PackageInline(admin.TabularInline):
    model = Package
    extra = 0
    fields = ("description", "quantity", "cargo_type", "weight_kg", "length_cm", "width_cm", "height_cm", "unit_price")

    def has_change_permission(self, request, obj=None):
        return obj is None or not obj.is_terminal


class QuoteLogInline(admin.TabularInline):
    model = QuoteLog
    extra = 0
    can_delete = False
    fields = ("created_at", "event_type", "old_status", "new_status", "actor", "notes")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = (
        "quote_number", "status", "origin_country", "destination_country", "selected_mode",
        "estimated_cost", "currency", "account", "contact_email", "valid_until", "created_at",
    )
    list_filter = ("status", "selected_mode", "priority", "cargo_type", "is_attached_to_account")
    search_fields = ("quote_number", "contact_email", "account__username", "account__email")
    date_hierarchy = "created_at"
    inlines = [PackageInline, QuoteLogInline]

    def get_readonly_fields(self, request, obj=None):
        # Status and the audit fields only move through the lifecycle service
        ro = [
            "quote_number", "status", "created_at", "valid_until", "tracking_token", "token_expires_at",
            "account", "is_attached_to_account", "submitted_at", "sent_at", "accepted_at",
            "treatment_started_at", "validated_at", "rejected_at", "cancelled_at", "expired_at",
            "treatment_agent", "estimated_cost", "chargeable_weight_kg", "selected_mode", "pricing_snapshot",
        ]
        if obj and obj.is_terminal:
            for f in obj._meta.fields:
                if f.name not in ro:
                    ro.append(f.name)
        return ro

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(QuoteLog)
class QuoteLogAdmin(admin.ModelAdmin):
    list_display = ("quote", "event_type", "old_status", "new_status", "actor", "created_at")
    list_filter = ("event_type",)
    search_fields = ("quote__quote_number", "actor")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
