"""
Deterministic freight cost estimation.

Given a shipment description and a pricing configuration, compute the
chargeable weight, the cheapest requested transport mode and the final cost.
Nothing here touches the database; callers load the configuration (and the
distance, for delivery-time estimates) through ``ConfigProvider``.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from core.errors import InvalidShipmentError
from ..constants import (
    CARGO_TYPES,
    MAX_TRANSPORT_MODES,
    PRIORITIES,
    PRIORITY_DELIVERY_FACTORS,
    TRANSPORT_MODES,
)
from ..dataclasses import (
    EstimateResult,
    ModeCost,
    PackageInput,
    PackagePrice,
    PricingConfigData,
    ShipmentInput,
)
from .utils import ONE, ZERO, ceil_int, d, money

logger = logging.getLogger(__name__)

# Distance at which the slow end of a mode's delivery range is reached
FULL_RANGE_DISTANCE_KM = Decimal("10000")


# --------------------- Validation ---------------------

def _positive(value) -> bool:
    try:
        return value is not None and d(value) > 0
    except ArithmeticError:
        return False


def validate_shipment(shipment: ShipmentInput, config: Optional[PricingConfigData] = None) -> None:
    """Raise InvalidShipmentError listing every offending field."""
    errors: Dict[str, List[str]] = {}

    def add(field_name: str, message: str) -> None:
        errors.setdefault(field_name, []).append(message)

    modes = list(shipment.transport_modes or [])
    if not modes:
        add("transport_modes", "At least one transport mode is required.")
    else:
        unknown = [m for m in modes if m not in TRANSPORT_MODES]
        if unknown:
            add("transport_modes", f"Unknown transport mode(s): {', '.join(map(str, unknown))}.")
        if len(set(modes)) > MAX_TRANSPORT_MODES:
            add("transport_modes", f"At most {MAX_TRANSPORT_MODES} distinct modes are allowed.")

    if shipment.cargo_type not in CARGO_TYPES:
        add("cargo_type", f"Unknown cargo type: {shipment.cargo_type}.")
    if shipment.priority not in PRIORITIES:
        add("priority", f"Unknown priority: {shipment.priority}.")

    if shipment.packages:
        for i, pkg in enumerate(shipment.packages):
            if not isinstance(pkg.quantity, int) or pkg.quantity < 1:
                add(f"packages[{i}].quantity", "Quantity must be at least 1.")
            if not _positive(pkg.weight_kg):
                add(f"packages[{i}].weight_kg", "Weight must be greater than 0.")
            if pkg.cargo_type is not None and pkg.cargo_type not in CARGO_TYPES:
                add(f"packages[{i}].cargo_type", f"Unknown cargo type: {pkg.cargo_type}.")
    elif shipment.weight_kg is None:
        # Weight may be omitted only when the volume is known (per-m3 billing)
        if not shipment.lines()[0].has_dimensions:
            add("weight_kg", "Weight is required when dimensions are not given.")
    elif not _positive(shipment.weight_kg):
        add("weight_kg", "Weight must be greater than 0.")

    # Amounts are priced in the configured currency; there is no conversion
    if config is not None and shipment.currency and shipment.currency.upper() != config.currency:
        add("currency", f"Quotes are priced in {config.currency} only.")

    if errors:
        raise InvalidShipmentError(errors)


# --------------------- Core computations ---------------------

def volumetric_weight(pkg: PackageInput, ratio_kg_per_m3: Decimal) -> Decimal:
    """Volumetric weight of a package line; lines without dimensions count at actual weight."""
    if not pkg.has_dimensions:
        return pkg.total_weight_kg
    return pkg.total_volume_m3 * ratio_kg_per_m3


def chargeable_weight_for_mode(
    shipment: ShipmentInput,
    mode: str,
    config: PricingConfigData,
    degraded: Optional[List[str]] = None,
) -> Decimal:
    """
    max(actual, volumetric) when volumetric weight applies to the mode, else actual.
    Volumetric weight is computed per package line and summed.
    """
    actual = shipment.actual_weight
    if not config.use_volumetric_weight_per_mode.get(mode, False):
        return actual
    ratio = config.volumetric_weight_ratios.get(mode)
    if ratio is None:
        _flag(degraded, f"volumetric_ratio_missing:{mode}")
        return actual
    volumetric = sum((volumetric_weight(p, ratio) for p in shipment.lines()), ZERO)
    return max(actual, volumetric)


def _flag(degraded: Optional[List[str]], key: str) -> None:
    if degraded is not None and key not in degraded:
        logger.warning("Pricing config incomplete (%s); neutral value used", key)
        degraded.append(key)


def _lookup(table: Dict[str, Decimal], key: str, neutral: Decimal, label: str, degraded: List[str]) -> Decimal:
    value = table.get(key)
    if value is None:
        _flag(degraded, f"{label}_missing:{key}")
        return neutral
    return value


def cost_for_mode(
    shipment: ShipmentInput,
    mode: str,
    config: PricingConfigData,
    degraded: List[str],
) -> ModeCost:
    multiplier = _lookup(config.transport_multipliers, mode, ONE, "multiplier", degraded)
    cargo = _lookup(config.cargo_type_surcharges, shipment.cargo_type, ZERO, "cargo_surcharge", degraded)
    priority = _lookup(config.priority_surcharges, shipment.priority, ZERO, "priority_surcharge", degraded)

    if shipment.packages or shipment.weight_kg is not None:
        chargeable = chargeable_weight_for_mode(shipment, mode, config, degraded)
        base = chargeable * config.default_rate_per_kg
        billed_on_volume = chargeable > shipment.actual_weight
    else:
        # No weight: bill on measured volume
        chargeable = None
        base = shipment.volume_m3 * config.default_rate_per_m3
        billed_on_volume = True

    cost = base * multiplier * (ONE + cargo) * (ONE + priority)
    return ModeCost(
        mode=mode,
        chargeable_weight_kg=chargeable,
        base_cost=base,
        multiplier=multiplier,
        cost=cost,
        billed_on_volume=billed_on_volume,
    )


def select_mode(per_mode: Dict[str, ModeCost]) -> str:
    """Cheapest mode wins; equal costs resolve in ROAD, SEA, AIR, RAIL order."""
    ordered = [m for m in TRANSPORT_MODES if m in per_mode]
    return min(ordered, key=lambda m: (per_mode[m].cost, TRANSPORT_MODES.index(m)))


def distribute_package_prices(packages: List[PackageInput], total: Decimal) -> List[PackagePrice]:
    """
    Presentation-only split of the total across package lines.

    Lines with a stored unit price keep it; the remainder of the total is
    shared by the other lines in proportion to their weight. The last share
    absorbs rounding so the shares add up to what was distributed.
    """
    prices: List[PackagePrice] = []
    stored_total = ZERO
    for i, pkg in enumerate(packages):
        if pkg.unit_price is not None:
            unit = money(pkg.unit_price)
            line = money(unit * pkg.quantity)
            stored_total += line
            prices.append(PackagePrice(i, pkg.quantity, pkg.total_weight_kg, unit, line, from_stored_price=True))

    shared = [(i, p) for i, p in enumerate(packages) if p.unit_price is None]
    if not shared:
        return prices

    pool = max(total - stored_total, ZERO)
    pool_weight = sum((p.total_weight_kg for _, p in shared), ZERO)
    allocated = ZERO
    for n, (i, pkg) in enumerate(shared):
        if n == len(shared) - 1:
            line = money(pool - allocated)
        elif pool_weight > 0:
            line = money(pool * pkg.total_weight_kg / pool_weight)
        else:
            line = money(pool / len(shared))
        allocated += line
        unit = money(line / pkg.quantity)
        prices.append(PackagePrice(i, pkg.quantity, pkg.total_weight_kg, unit, line))

    return sorted(prices, key=lambda p: p.index)


def estimate_delivery_days(
    config: PricingConfigData,
    mode: str,
    priority: str,
    distance_km: int,
) -> Optional[int]:
    """
    Position within the mode's [min, max] day range grows with distance and
    saturates at FULL_RANGE_DISTANCE_KM; priority then shortens it.
    """
    speed = config.delivery_speeds_per_mode.get(mode)
    if not speed:
        return None
    lo, hi = d(speed["min"]), d(speed["max"])
    factor = min(d(distance_km) / FULL_RANGE_DISTANCE_KM, ONE)
    days = lo + (hi - lo) * factor
    days = days * PRIORITY_DELIVERY_FACTORS.get(priority, ONE)
    return max(ceil_int(days), 1)


def compute_estimate(
    shipment: ShipmentInput,
    config: PricingConfigData,
    distance_km: Optional[int] = None,
) -> EstimateResult:
    """
    Price a shipment.

    Args:
        shipment: validated or raw shipment description
        config: pricing parameters (from ConfigProvider)
        distance_km: optional origin/destination distance; enables the
            delivery-time estimate

    Returns:
        EstimateResult with money rounded half-up to cents

    Raises:
        InvalidShipmentError: before any arithmetic, if the input is unusable
    """
    validate_shipment(shipment, config)
    degraded: List[str] = []

    modes = [m for m in TRANSPORT_MODES if m in set(shipment.transport_modes)]
    per_mode = {m: cost_for_mode(shipment, m, config, degraded) for m in modes}
    selected = select_mode(per_mode)
    chosen = per_mode[selected]

    cargo = config.cargo_type_surcharges.get(shipment.cargo_type, ZERO)
    priority = config.priority_surcharges.get(shipment.priority, ZERO)
    after_mode = chosen.base_cost * chosen.multiplier
    cargo_amount = after_mode * cargo
    priority_amount = after_mode * (ONE + cargo) * priority

    total = money(chosen.cost)
    breakdown = {
        "base_cost": money(chosen.base_cost),
        "mode_multiplier": chosen.multiplier,
        "mode_adjusted_cost": money(after_mode),
        "cargo_surcharge_rate": cargo,
        "cargo_surcharge_amount": money(cargo_amount),
        "priority_surcharge_rate": priority,
        "priority_surcharge_amount": money(priority_amount),
        "total": total,
    }

    days = None
    if distance_km is not None:
        days = estimate_delivery_days(config, selected, shipment.priority, distance_km)

    result = EstimateResult(
        chargeable_weight_kg=chosen.chargeable_weight_kg,
        estimated_cost=total,
        currency=config.currency,
        selected_mode=selected,
        actual_weight_kg=shipment.actual_weight,
        volume_m3=shipment.volume_m3,
        billing_basis="m3" if chosen.chargeable_weight_kg is None else "kg",
        breakdown=breakdown,
        per_mode=per_mode,
        package_prices=distribute_package_prices(shipment.lines(), total),
        estimated_delivery_days=days,
        degraded=degraded,
    )
    logger.debug(
        "Estimate %s->%s mode=%s chargeable=%s cost=%s",
        shipment.origin_country,
        shipment.destination_country,
        selected,
        result.chargeable_weight_kg,
        total,
    )
    return result
