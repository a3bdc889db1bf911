from __future__ import annotations

from rest_framework import serializers

from .constants import (
    CARGO_TYPE_CHOICES,
    MAX_TRANSPORT_MODES,
    PRIORITY_CHOICES,
    TRANSPORT_MODE_CHOICES,
    TRANSPORT_MODES,
)
from .dataclasses import PackageInput, ShipmentInput
from .models import CountryDistance


class PackageSerializer(serializers.Serializer):
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    cargo_type = serializers.ChoiceField(choices=CARGO_TYPE_CHOICES, required=False, allow_null=True)
    weight_kg = serializers.DecimalField(max_digits=12, decimal_places=3)
    length_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    width_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    height_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)

    def validate_weight_kg(self, value):
        if value <= 0:
            raise serializers.ValidationError("Weight must be greater than 0.")
        return value


class ShipmentSerializer(serializers.Serializer):
    """Shipment description accepted by the estimate and quote endpoints."""

    origin_country = serializers.CharField(min_length=2, max_length=2)
    destination_country = serializers.CharField(min_length=2, max_length=2)
    cargo_type = serializers.ChoiceField(choices=CARGO_TYPE_CHOICES, default="GENERAL")
    transport_modes = serializers.ListField(
        child=serializers.ChoiceField(choices=TRANSPORT_MODE_CHOICES),
        allow_empty=False,
    )
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, default="STANDARD")
    weight_kg = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, allow_null=True)
    length_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    width_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    height_cm = serializers.DecimalField(max_digits=10, decimal_places=1, required=False, allow_null=True)
    packages = PackageSerializer(many=True, required=False)
    currency = serializers.CharField(required=False, allow_null=True, min_length=3, max_length=3)

    def validate_origin_country(self, value: str) -> str:
        return value.strip().upper()

    def validate_destination_country(self, value: str) -> str:
        return value.strip().upper()

    def validate_currency(self, value):
        return value.strip().upper() if value else value

    def validate_transport_modes(self, value):
        """Deduplicate while keeping the stable mode order."""
        unique = [m for m in TRANSPORT_MODES if m in set(value)]
        if len(unique) > MAX_TRANSPORT_MODES:
            raise serializers.ValidationError(f"At most {MAX_TRANSPORT_MODES} distinct modes are allowed.")
        return unique

    def validate(self, attrs):
        packages = attrs.get("packages") or []
        weight = attrs.get("weight_kg")
        if not packages:
            if weight is not None and weight <= 0:
                raise serializers.ValidationError({"weight_kg": ["Weight must be greater than 0."]})
            dims = [attrs.get(k) for k in ("length_cm", "width_cm", "height_cm")]
            if weight is None and not all(v is not None and v > 0 for v in dims):
                raise serializers.ValidationError(
                    {"weight_kg": ["Weight is required when dimensions are not given."]}
                )
        return attrs

    def to_shipment_input(self) -> ShipmentInput:
        data = self.validated_data
        return ShipmentInput(
            origin_country=data["origin_country"],
            destination_country=data["destination_country"],
            transport_modes=list(data["transport_modes"]),
            cargo_type=data.get("cargo_type", "GENERAL"),
            priority=data.get("priority", "STANDARD"),
            weight_kg=data.get("weight_kg"),
            length_cm=data.get("length_cm"),
            width_cm=data.get("width_cm"),
            height_cm=data.get("height_cm"),
            packages=[
                PackageInput(
                    weight_kg=p["weight_kg"],
                    quantity=p.get("quantity", 1),
                    cargo_type=p.get("cargo_type") or data.get("cargo_type", "GENERAL"),
                    description=p.get("description"),
                    length_cm=p.get("length_cm"),
                    width_cm=p.get("width_cm"),
                    height_cm=p.get("height_cm"),
                    unit_price=p.get("unit_price"),
                )
                for p in data.get("packages") or []
            ],
            currency=data.get("currency"),
        )


class PricingConfigUpdateSerializer(serializers.Serializer):
    """Partial update; omitted keys keep their current value."""

    default_rate_per_kg = serializers.DecimalField(max_digits=10, decimal_places=4, min_value=0, required=False)
    default_rate_per_m3 = serializers.DecimalField(max_digits=10, decimal_places=4, min_value=0, required=False)
    transport_multipliers = serializers.DictField(
        child=serializers.DecimalField(max_digits=8, decimal_places=4, min_value=0), required=False
    )
    cargo_type_surcharges = serializers.DictField(
        child=serializers.DecimalField(max_digits=8, decimal_places=4), required=False
    )
    priority_surcharges = serializers.DictField(
        child=serializers.DecimalField(max_digits=8, decimal_places=4), required=False
    )
    volumetric_weight_ratios = serializers.DictField(
        child=serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0), required=False
    )
    use_volumetric_weight_per_mode = serializers.DictField(child=serializers.BooleanField(), required=False)
    delivery_speeds_per_mode = serializers.DictField(
        child=serializers.DictField(child=serializers.IntegerField(min_value=0)), required=False
    )
    currency = serializers.CharField(min_length=3, max_length=3, required=False)

    def _check_keys(self, value, allowed, label):
        unknown = sorted(set(value) - set(allowed))
        if unknown:
            raise serializers.ValidationError(f"Unknown {label}: {', '.join(unknown)}.")
        return value

    def validate_transport_multipliers(self, value):
        return self._check_keys(value, TRANSPORT_MODES, "transport mode")

    def validate_volumetric_weight_ratios(self, value):
        return self._check_keys(value, TRANSPORT_MODES, "transport mode")

    def validate_use_volumetric_weight_per_mode(self, value):
        return self._check_keys(value, TRANSPORT_MODES, "transport mode")

    def validate_cargo_type_surcharges(self, value):
        return self._check_keys(value, [c for c, _ in CARGO_TYPE_CHOICES], "cargo type")

    def validate_priority_surcharges(self, value):
        return self._check_keys(value, [p for p, _ in PRIORITY_CHOICES], "priority")

    def validate_delivery_speeds_per_mode(self, value):
        self._check_keys(value, TRANSPORT_MODES, "transport mode")
        for mode, speed in value.items():
            if set(speed) != {"min", "max"} or speed["min"] > speed["max"]:
                raise serializers.ValidationError(f"{mode}: expected min <= max.")
        return value

    def to_config_data(self):
        """Validated payload with Decimals as strings, ready for JSON columns."""
        out = {}
        for key, value in self.validated_data.items():
            if isinstance(value, dict):
                out[key] = {
                    k: (str(v) if not isinstance(v, (bool, dict)) else v) for k, v in value.items()
                }
            else:
                out[key] = value
        return out


class CountryDistanceSerializer(serializers.ModelSerializer):
    class Meta:
        model = CountryDistance
        fields = ("id", "origin_country", "destination_country", "distance_km", "updated_at")
        read_only_fields = ("id", "updated_at")

    def validate_origin_country(self, value: str) -> str:
        return value.strip().upper()

    def validate_destination_country(self, value: str) -> str:
        return value.strip().upper()
