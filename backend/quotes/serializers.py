from rest_framework import serializers

from pricing.serializers import ShipmentSerializer
from .models import Package, Quote, QuoteLog
from .services.lifecycle import ACTIONS


class PackageSerializer(serializers.ModelSerializer):
    total_weight_kg = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)

    class Meta:
        model = Package
        fields = (
            'id', 'description', 'quantity', 'cargo_type', 'weight_kg',
            'length_cm', 'width_cm', 'height_cm', 'unit_price', 'total_weight_kg',
        )


class QuoteSerializer(serializers.ModelSerializer):
    packages = PackageSerializer(many=True, read_only=True)
    account = serializers.SlugRelatedField(slug_field='username', read_only=True)
    treatment_agent = serializers.SlugRelatedField(slug_field='username', read_only=True)

    class Meta:
        model = Quote
        fields = (
            'id', 'quote_number', 'status',
            'origin_country', 'destination_country', 'cargo_type', 'transport_modes', 'priority',
            'currency', 'weight_kg', 'length_cm', 'width_cm', 'height_cm',
            'chargeable_weight_kg', 'estimated_cost', 'estimated_delivery_days', 'selected_mode',
            'pricing_snapshot', 'created_at', 'valid_until',
            'account', 'is_attached_to_account', 'contact_email', 'contact_phone', 'contact_name',
            'submitted_at', 'sent_at', 'accepted_at', 'treatment_started_at', 'validated_at',
            'rejected_at', 'cancelled_at', 'expired_at', 'treatment_agent',
            'rejection_reason', 'cancellation_reason', 'packages',
        )
        read_only_fields = fields


class QuoteCreateSerializer(ShipmentSerializer):
    contact_email = serializers.EmailField(required=False, allow_null=True)
    contact_phone = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=32)
    contact_name = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=255)


class TransitionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=[(a, a) for a in ACTIONS if a != 'expire'])
    reason = serializers.CharField(required=False, allow_blank=True)
    note = serializers.CharField(required=False, allow_blank=True)
    metadata = serializers.DictField(required=False)

    def to_payload(self):
        data = self.validated_data
        payload = dict(data.get('metadata') or {})
        for key in ('reason', 'note'):
            if data.get(key):
                payload[key] = data[key]
        return payload


class QuoteLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteLog
        fields = ('id', 'event_type', 'old_status', 'new_status', 'actor', 'created_at', 'notes', 'metadata')
        read_only_fields = fields


class TrackingSerializer(serializers.ModelSerializer):
    """What an anonymous token holder may see."""

    class Meta:
        model = Quote
        fields = (
            'quote_number', 'status', 'origin_country', 'destination_country', 'cargo_type',
            'transport_modes', 'priority', 'selected_mode', 'estimated_cost', 'currency',
            'estimated_delivery_days', 'created_at', 'valid_until', 'sent_at', 'accepted_at',
        )
        read_only_fields = fields
