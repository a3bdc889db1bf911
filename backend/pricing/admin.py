from django.contrib import admin, messages

from pricing.models import CountryDistance, PricingConfig
from pricing.services.config_provider import get_config_provider


@admin.register(PricingConfig)
class PricingConfigAdmin(admin.ModelAdmin):
    list_display = ("version", "default_rate_per_kg", "default_rate_per_m3", "currency", "updated_by", "created_at")
    readonly_fields = ("version", "updated_by", "created_at")
    ordering = ("-version",)

    def has_change_permission(self, request, obj=None):
        # Versions are append-only; edit through the pricing config API
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        latest = PricingConfig.objects.order_by("-version").first()
        obj.version = (latest.version + 1) if latest else 1
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
        get_config_provider().invalidate()


@admin.register(CountryDistance)
class CountryDistanceAdmin(admin.ModelAdmin):
    list_display = ("origin_country", "destination_country", "distance_km", "updated_at")
    list_filter = ("origin_country",)
    search_fields = ("origin_country", "destination_country")
    actions = ["clear_pricing_cache"]

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        get_config_provider().invalidate()

    def delete_model(self, request, obj):
        super().delete_model(request, obj)
        get_config_provider().invalidate()

    @admin.action(description="Clear cached pricing config and distances")
    def clear_pricing_cache(self, request, queryset):
        get_config_provider().invalidate()
        self.message_user(request, "Pricing cache cleared.", level=messages.SUCCESS)
