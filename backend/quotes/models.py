from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from pricing.constants import CARGO_TYPE_CHOICES, PRIORITY_CHOICES


class Quote(models.Model):
    DRAFT = 'DRAFT'
    SUBMITTED = 'SUBMITTED'
    SENT = 'SENT'
    ACCEPTED = 'ACCEPTED'
    IN_TREATMENT = 'IN_TREATMENT'
    VALIDATED = 'VALIDATED'
    REJECTED = 'REJECTED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'

    STATUS_CHOICES = [
        (DRAFT, 'Draft'),
        (SUBMITTED, 'Submitted'),
        (SENT, 'Sent'),
        (ACCEPTED, 'Accepted'),
        (IN_TREATMENT, 'In treatment'),
        (VALIDATED, 'Validated'),
        (REJECTED, 'Rejected'),
        (CANCELLED, 'Cancelled'),
        (EXPIRED, 'Expired'),
    ]
    TERMINAL_STATUSES = (VALIDATED, REJECTED, CANCELLED, EXPIRED)

    quote_number = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DRAFT)

    origin_country = models.CharField(max_length=2)
    destination_country = models.CharField(max_length=2)
    cargo_type = models.CharField(max_length=20, choices=CARGO_TYPE_CHOICES, default='GENERAL')
    transport_modes = models.JSONField(default=list)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='STANDARD')
    currency = models.CharField(max_length=3, default='EUR')

    weight_kg = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    length_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    width_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    height_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    chargeable_weight_kg = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    estimated_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    estimated_delivery_days = models.PositiveIntegerField(null=True, blank=True)
    selected_mode = models.CharField(max_length=8, blank=True, null=True)
    pricing_snapshot = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)
    valid_until = models.DateTimeField()

    tracking_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    token_expires_at = models.DateTimeField(null=True, blank=True)

    # Null exactly while the quote is an orphan (guest request not yet reconciled)
    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='quotes',
    )
    is_attached_to_account = models.BooleanField(default=False)
    contact_email = models.EmailField(blank=True, null=True)
    contact_phone = models.CharField(max_length=32, blank=True, null=True)
    contact_name = models.CharField(max_length=255, blank=True, null=True)
    prospect = models.ForeignKey(
        'prospects.Prospect',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='quotes',
    )

    submitted_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    treatment_started_at = models.DateTimeField(null=True, blank=True)
    validated_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    treatment_agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='treated_quotes',
    )
    rejection_reason = models.TextField(blank=True, null=True)
    cancellation_reason = models.TextField(blank=True, null=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'valid_until'], name='quotes_quot_status_valid_idx'),
            models.Index(fields=['account', '-created_at'], name='quotes_quot_account_idx'),
            models.Index(fields=['contact_email'], name='quotes_quot_contact_idx'),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def clean(self):
        if self.created_at and self.valid_until and self.valid_until <= self.created_at:
            raise ValidationError({'valid_until': 'Must be later than the creation time.'})
        if (self.account_id is None) == self.is_attached_to_account:
            raise ValidationError({'is_attached_to_account': 'Must match whether an account is set.'})

    def __str__(self):
        return self.quote_number


class Package(models.Model):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='packages')
    description = models.CharField(max_length=255, blank=True, null=True)
    quantity = models.PositiveIntegerField(default=1)
    cargo_type = models.CharField(max_length=20, choices=CARGO_TYPE_CHOICES, default='GENERAL')
    weight_kg = models.DecimalField(max_digits=12, decimal_places=3)
    length_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    width_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    height_cm = models.DecimalField(max_digits=10, decimal_places=1, null=True, blank=True)
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    class Meta:
        ordering = ['id']

    @property
    def total_weight_kg(self):
        return self.weight_kg * self.quantity

    def save(self, *args, **kwargs):
        if self.quote.is_terminal:
            raise ValidationError("This quote is closed and its packages cannot be modified.")
        return super().save(*args, **kwargs)


class QuoteLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValidationError("Quote log entries are immutable.")

    def delete(self):
        raise ValidationError("Quote log entries cannot be deleted.")


class QuoteLog(models.Model):
    """Append-only audit trail of everything that happened to a quote."""

    CREATED = 'CREATED'
    STATUS_CHANGED = 'STATUS_CHANGED'
    SENT_TO_CLIENT = 'SENT_TO_CLIENT'
    ACCEPTED_BY_CLIENT = 'ACCEPTED_BY_CLIENT'
    REJECTED_BY_CLIENT = 'REJECTED_BY_CLIENT'
    TREATMENT_STARTED = 'TREATMENT_STARTED'
    TREATMENT_VALIDATED = 'TREATMENT_VALIDATED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'
    ATTACHED_TO_ACCOUNT = 'ATTACHED_TO_ACCOUNT'
    TOKEN_REFRESHED = 'TOKEN_REFRESHED'

    EVENT_CHOICES = [
        (CREATED, 'Created'),
        (STATUS_CHANGED, 'Status changed'),
        (SENT_TO_CLIENT, 'Sent to client'),
        (ACCEPTED_BY_CLIENT, 'Accepted by client'),
        (REJECTED_BY_CLIENT, 'Rejected by client'),
        (TREATMENT_STARTED, 'Treatment started'),
        (TREATMENT_VALIDATED, 'Treatment validated'),
        (CANCELLED, 'Cancelled'),
        (EXPIRED, 'Expired'),
        (ATTACHED_TO_ACCOUNT, 'Attached to account'),
        (TOKEN_REFRESHED, 'Tracking token refreshed'),
    ]

    quote = models.ForeignKey(Quote, on_delete=models.PROTECT, related_name='logs')
    event_type = models.CharField(max_length=32, choices=EVENT_CHOICES)
    old_status = models.CharField(max_length=20, blank=True, null=True)
    new_status = models.CharField(max_length=20, blank=True, null=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    actor = models.CharField(max_length=150, default='system')
    created_at = models.DateTimeField()
    notes = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    objects = QuoteLogQuerySet.as_manager()

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['quote', 'created_at'], name='quotes_log_quote_created_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Quote log entries are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Quote log entries cannot be deleted.")

    def __str__(self):
        return f"{self.quote_id} {self.event_type} @ {self.created_at:%Y-%m-%d %H:%M}"


class QuoteSequence(models.Model):
    """Per-day counter behind quote numbers; the row is locked while a number is taken."""

    day = models.DateField(primary_key=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.day:%Y%m%d}: {self.last_value}"
