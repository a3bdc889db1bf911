from rest_framework import serializers

from pricing.serializers import ShipmentSerializer
from .models import Prospect


class QuoteRequestSerializer(ShipmentSerializer):
    """Guest quote request: a shipment plus who to get back to."""

    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    company = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class InvitationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Prospect
        fields = ('email', 'phone', 'name', 'company', 'invitation_expires_at')
        read_only_fields = fields
