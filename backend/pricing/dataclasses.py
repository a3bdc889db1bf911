from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .services.utils import CM3_PER_M3, ZERO, d


@dataclass
class PackageInput:
    """One package line. Weight and dimensions are per unit."""
    weight_kg: Optional[Decimal]
    quantity: int = 1
    cargo_type: Optional[str] = None
    description: Optional[str] = None
    length_cm: Optional[Decimal] = None
    width_cm: Optional[Decimal] = None
    height_cm: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None

    @property
    def has_dimensions(self) -> bool:
        dims = (self.length_cm, self.width_cm, self.height_cm)
        return all(v is not None and d(v) > 0 for v in dims)

    def unit_volume_m3(self) -> Decimal:
        if not self.has_dimensions:
            return ZERO
        return (d(self.length_cm) * d(self.width_cm) * d(self.height_cm)) / CM3_PER_M3

    @property
    def total_weight_kg(self) -> Decimal:
        if self.weight_kg is None:
            return ZERO
        return d(self.weight_kg) * self.quantity

    @property
    def total_volume_m3(self) -> Decimal:
        return self.unit_volume_m3() * self.quantity


@dataclass
class ShipmentInput:
    origin_country: str
    destination_country: str
    transport_modes: List[str]
    cargo_type: str = "GENERAL"
    priority: str = "STANDARD"
    # Single-line form; ignored when ``packages`` is given
    weight_kg: Optional[Decimal] = None
    length_cm: Optional[Decimal] = None
    width_cm: Optional[Decimal] = None
    height_cm: Optional[Decimal] = None
    packages: List[PackageInput] = field(default_factory=list)
    currency: Optional[str] = None

    def lines(self) -> List[PackageInput]:
        """Package lines to price; a shipment without packages is one line of quantity 1."""
        if self.packages:
            return list(self.packages)
        return [
            PackageInput(
                weight_kg=self.weight_kg,
                quantity=1,
                cargo_type=self.cargo_type,
                length_cm=self.length_cm,
                width_cm=self.width_cm,
                height_cm=self.height_cm,
            )
        ]

    @property
    def actual_weight(self) -> Decimal:
        return sum((p.total_weight_kg for p in self.lines()), ZERO)

    @property
    def volume_m3(self) -> Decimal:
        return sum((p.total_volume_m3 for p in self.lines()), ZERO)


@dataclass(frozen=True)
class PricingConfigData:
    default_rate_per_kg: Decimal
    default_rate_per_m3: Decimal
    transport_multipliers: Dict[str, Decimal]
    cargo_type_surcharges: Dict[str, Decimal]
    priority_surcharges: Dict[str, Decimal]
    volumetric_weight_ratios: Dict[str, Decimal]
    use_volumetric_weight_per_mode: Dict[str, bool]
    delivery_speeds_per_mode: Dict[str, Dict[str, int]]
    currency: str = "EUR"
    version: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingConfigData":
        return cls(
            default_rate_per_kg=d(data["default_rate_per_kg"]),
            default_rate_per_m3=d(data["default_rate_per_m3"]),
            transport_multipliers={k: d(v) for k, v in data["transport_multipliers"].items()},
            cargo_type_surcharges={k: d(v) for k, v in data["cargo_type_surcharges"].items()},
            priority_surcharges={k: d(v) for k, v in data["priority_surcharges"].items()},
            volumetric_weight_ratios={k: d(v) for k, v in data["volumetric_weight_ratios"].items()},
            use_volumetric_weight_per_mode={k: bool(v) for k, v in data["use_volumetric_weight_per_mode"].items()},
            delivery_speeds_per_mode={
                k: {"min": int(v["min"]), "max": int(v["max"])}
                for k, v in data["delivery_speeds_per_mode"].items()
            },
            currency=data.get("currency") or "EUR",
            version=data.get("version"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_rate_per_kg": str(self.default_rate_per_kg),
            "default_rate_per_m3": str(self.default_rate_per_m3),
            "transport_multipliers": {k: str(v) for k, v in self.transport_multipliers.items()},
            "cargo_type_surcharges": {k: str(v) for k, v in self.cargo_type_surcharges.items()},
            "priority_surcharges": {k: str(v) for k, v in self.priority_surcharges.items()},
            "volumetric_weight_ratios": {k: str(v) for k, v in self.volumetric_weight_ratios.items()},
            "use_volumetric_weight_per_mode": dict(self.use_volumetric_weight_per_mode),
            "delivery_speeds_per_mode": {k: dict(v) for k, v in self.delivery_speeds_per_mode.items()},
            "currency": self.currency,
            "version": self.version,
        }


@dataclass
class ModeCost:
    mode: str
    chargeable_weight_kg: Optional[Decimal]
    base_cost: Decimal
    multiplier: Decimal
    cost: Decimal  # unrounded, after mode/cargo/priority modifiers
    billed_on_volume: bool = False


@dataclass
class PackagePrice:
    index: int
    quantity: int
    total_weight_kg: Decimal
    unit_price: Decimal
    line_total: Decimal
    from_stored_price: bool = False


@dataclass
class EstimateResult:
    chargeable_weight_kg: Optional[Decimal]
    estimated_cost: Decimal
    currency: str
    selected_mode: str
    actual_weight_kg: Decimal
    volume_m3: Decimal
    billing_basis: str  # "kg" or "m3"
    breakdown: Dict[str, Decimal]
    per_mode: Dict[str, ModeCost] = field(default_factory=dict)
    package_prices: List[PackagePrice] = field(default_factory=list)
    estimated_delivery_days: Optional[int] = None
    degraded: List[str] = field(default_factory=list)

    @property
    def billed_on_volume(self) -> bool:
        return self.per_mode[self.selected_mode].billed_on_volume

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chargeable_weight_kg": str(self.chargeable_weight_kg) if self.chargeable_weight_kg is not None else None,
            "estimated_cost": str(self.estimated_cost),
            "currency": self.currency,
            "selected_mode": self.selected_mode,
            "actual_weight_kg": str(self.actual_weight_kg),
            "volume_m3": str(self.volume_m3),
            "billing_basis": self.billing_basis,
            "billed_on_volume": self.billed_on_volume,
            "breakdown": {k: str(v) for k, v in self.breakdown.items()},
            "package_prices": [
                {
                    "index": p.index,
                    "quantity": p.quantity,
                    "total_weight_kg": str(p.total_weight_kg),
                    "unit_price": str(p.unit_price),
                    "line_total": str(p.line_total),
                }
                for p in self.package_prices
            ],
            "estimated_delivery_days": self.estimated_delivery_days,
            "degraded": list(self.degraded),
        }
