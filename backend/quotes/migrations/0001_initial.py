import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

CARGO_TYPES = [
    ("GENERAL", "General"),
    ("DANGEROUS", "Dangerous"),
    ("PERISHABLE", "Perishable"),
    ("FRAGILE", "Fragile"),
    ("BULK", "Bulk"),
    ("CONTAINER", "Container"),
    ("PALLETIZED", "Palletized"),
    ("OTHER", "Other"),
]
PRIORITIES = [("STANDARD", "Standard"), ("NORMAL", "Normal"), ("EXPRESS", "Express"), ("URGENT", "Urgent")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("prospects", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="QuoteSequence",
            fields=[
                ("day", models.DateField(primary_key=True, serialize=False)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="Quote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quote_number", models.CharField(max_length=32, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("SUBMITTED", "Submitted"),
                            ("SENT", "Sent"),
                            ("ACCEPTED", "Accepted"),
                            ("IN_TREATMENT", "In treatment"),
                            ("VALIDATED", "Validated"),
                            ("REJECTED", "Rejected"),
                            ("CANCELLED", "Cancelled"),
                            ("EXPIRED", "Expired"),
                        ],
                        default="DRAFT",
                        max_length=20,
                    ),
                ),
                ("origin_country", models.CharField(max_length=2)),
                ("destination_country", models.CharField(max_length=2)),
                ("cargo_type", models.CharField(choices=CARGO_TYPES, default="GENERAL", max_length=20)),
                ("transport_modes", models.JSONField(default=list)),
                ("priority", models.CharField(choices=PRIORITIES, default="STANDARD", max_length=20)),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("weight_kg", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("length_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("width_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("height_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("chargeable_weight_kg", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("estimated_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("estimated_delivery_days", models.PositiveIntegerField(blank=True, null=True)),
                ("selected_mode", models.CharField(blank=True, max_length=8, null=True)),
                (
                    "pricing_snapshot",
                    models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("valid_until", models.DateTimeField()),
                ("tracking_token", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("token_expires_at", models.DateTimeField(blank=True, null=True)),
                ("is_attached_to_account", models.BooleanField(default=False)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("contact_phone", models.CharField(blank=True, max_length=32, null=True)),
                ("contact_name", models.CharField(blank=True, max_length=255, null=True)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("accepted_at", models.DateTimeField(blank=True, null=True)),
                ("treatment_started_at", models.DateTimeField(blank=True, null=True)),
                ("validated_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, null=True)),
                (
                    "account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="quotes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "prospect",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="quotes",
                        to="prospects.prospect",
                    ),
                ),
                (
                    "treatment_agent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="treated_quotes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "valid_until"], name="quotes_quot_status_valid_idx"),
                    models.Index(fields=["account", "-created_at"], name="quotes_quot_account_idx"),
                    models.Index(fields=["contact_email"], name="quotes_quot_contact_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Package",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, max_length=255, null=True)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("cargo_type", models.CharField(choices=CARGO_TYPES, default="GENERAL", max_length=20)),
                ("weight_kg", models.DecimalField(decimal_places=3, max_digits=12)),
                ("length_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("width_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("height_cm", models.DecimalField(blank=True, decimal_places=1, max_digits=10, null=True)),
                ("unit_price", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                (
                    "quote",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="packages",
                        to="quotes.quote",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="QuoteLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("CREATED", "Created"),
                            ("STATUS_CHANGED", "Status changed"),
                            ("SENT_TO_CLIENT", "Sent to client"),
                            ("ACCEPTED_BY_CLIENT", "Accepted by client"),
                            ("REJECTED_BY_CLIENT", "Rejected by client"),
                            ("TREATMENT_STARTED", "Treatment started"),
                            ("TREATMENT_VALIDATED", "Treatment validated"),
                            ("CANCELLED", "Cancelled"),
                            ("EXPIRED", "Expired"),
                            ("ATTACHED_TO_ACCOUNT", "Attached to account"),
                            ("TOKEN_REFRESHED", "Tracking token refreshed"),
                        ],
                        max_length=32,
                    ),
                ),
                ("old_status", models.CharField(blank=True, max_length=20, null=True)),
                ("new_status", models.CharField(blank=True, max_length=20, null=True)),
                ("actor", models.CharField(default="system", max_length=150)),
                ("created_at", models.DateTimeField()),
                ("notes", models.TextField(blank=True, null=True)),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
                ),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "quote",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="logs",
                        to="quotes.quote",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["quote", "created_at"], name="quotes_log_quote_created_idx")],
            },
        ),
    ]
