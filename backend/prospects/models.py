from django.conf import settings
from django.db import models


class Prospect(models.Model):
    """
    A visitor who asked for a quote without an account. Kept after
    conversion or expiry; rows are never deleted.
    """
    PENDING = 'PENDING'
    CONVERTED = 'CONVERTED'
    EXPIRED = 'EXPIRED'
    STATUS_CHOICES = [(PENDING, 'Pending'), (CONVERTED, 'Converted'), (EXPIRED, 'Expired')]

    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    name = models.CharField(max_length=255, blank=True, null=True)
    company = models.CharField(max_length=255, blank=True, null=True)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=PENDING)
    invitation_token = models.CharField(max_length=64, unique=True)
    invitation_expires_at = models.DateTimeField()
    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prospects',
    )
    converted_at = models.DateTimeField(null=True, blank=True)
    last_request_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'invitation_expires_at'], name='prospects_p_status_5b1f0e_idx'),
        ]

    def delete(self, *args, **kwargs):
        raise models.ProtectedError("Prospects are kept for audit; mark them EXPIRED instead.", {self})

    def __str__(self):
        return f"{self.email} ({self.status})"
