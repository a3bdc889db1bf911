from django.conf import settings
from django.db import models


class PickupRequest(models.Model):
    """Collection request; may be filed by a guest and attached to an account later."""

    REQUESTED = 'REQUESTED'
    SCHEDULED = 'SCHEDULED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (REQUESTED, 'Requested'),
        (SCHEDULED, 'Scheduled'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    tracking_number = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=REQUESTED)
    pickup_country = models.CharField(max_length=2)
    pickup_address = models.TextField(blank=True, null=True)
    requested_date = models.DateField()
    contact_email = models.EmailField(blank=True, null=True)
    contact_phone = models.CharField(max_length=32, blank=True, null=True)
    contact_name = models.CharField(max_length=255, blank=True, null=True)
    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='pickup_requests',
    )
    is_attached_to_account = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [models.Index(fields=['contact_email'], name='pickups_pic_contact_3c9d2a_idx')]

    def __str__(self):
        return self.tracking_number
