import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CountryDistance",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("origin_country", models.CharField(max_length=2)),
                ("destination_country", models.CharField(max_length=2)),
                ("distance_km", models.PositiveIntegerField()),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["origin_country", "destination_country"],
                "unique_together": {("origin_country", "destination_country")},
            },
        ),
        migrations.CreateModel(
            name="PricingConfig",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("version", models.PositiveIntegerField(unique=True)),
                ("default_rate_per_kg", models.DecimalField(decimal_places=4, max_digits=10)),
                ("default_rate_per_m3", models.DecimalField(decimal_places=4, max_digits=10)),
                ("transport_multipliers", models.JSONField(default=dict)),
                ("cargo_type_surcharges", models.JSONField(default=dict)),
                ("priority_surcharges", models.JSONField(default=dict)),
                ("volumetric_weight_ratios", models.JSONField(default=dict)),
                ("use_volumetric_weight_per_mode", models.JSONField(default=dict)),
                ("delivery_speeds_per_mode", models.JSONField(default=dict)),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pricing_config_versions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-version"],
            },
        ),
    ]
