from django.conf import settings
from django.db import models


class PricingConfig(models.Model):
    """
    Administrator-managed pricing parameters. Every update writes a new row
    with the next version number; the newest row is the live configuration.
    """
    id = models.BigAutoField(primary_key=True)
    version = models.PositiveIntegerField(unique=True)
    default_rate_per_kg = models.DecimalField(max_digits=10, decimal_places=4)
    default_rate_per_m3 = models.DecimalField(max_digits=10, decimal_places=4)
    transport_multipliers = models.JSONField(default=dict)
    cargo_type_surcharges = models.JSONField(default=dict)
    priority_surcharges = models.JSONField(default=dict)
    # kg per m3, e.g. AIR 167
    volumetric_weight_ratios = models.JSONField(default=dict)
    use_volumetric_weight_per_mode = models.JSONField(default=dict)
    # {"ROAD": {"min": 3, "max": 7}, ...}
    delivery_speeds_per_mode = models.JSONField(default=dict)
    currency = models.CharField(max_length=3, default="EUR")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pricing_config_versions",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-version"]

    def __str__(self):
        return f"PricingConfig v{self.version}"


class CountryDistance(models.Model):
    id = models.BigAutoField(primary_key=True)
    origin_country = models.CharField(max_length=2)
    destination_country = models.CharField(max_length=2)
    distance_km = models.PositiveIntegerField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = (("origin_country", "destination_country"),)
        ordering = ["origin_country", "destination_country"]

    def save(self, *args, **kwargs):
        self.origin_country = (self.origin_country or "").upper()
        self.destination_country = (self.destination_country or "").upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.origin_country}->{self.destination_country}: {self.distance_km} km"
