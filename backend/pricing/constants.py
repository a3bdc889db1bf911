"""Closed enumerations used by pricing and quotes."""

from decimal import Decimal

# Stable enumeration order; also the tie-break order when modes share a multiplier.
TRANSPORT_MODES = ("ROAD", "SEA", "AIR", "RAIL")
TRANSPORT_MODE_CHOICES = [("ROAD", "Road"), ("SEA", "Sea"), ("AIR", "Air"), ("RAIL", "Rail")]

CARGO_TYPES = (
    "GENERAL",
    "DANGEROUS",
    "PERISHABLE",
    "FRAGILE",
    "BULK",
    "CONTAINER",
    "PALLETIZED",
    "OTHER",
)
CARGO_TYPE_CHOICES = [(c, c.capitalize()) for c in CARGO_TYPES]

PRIORITIES = ("STANDARD", "NORMAL", "EXPRESS", "URGENT")
PRIORITY_CHOICES = [(p, p.capitalize()) for p in PRIORITIES]

# Delivery-time reduction per priority (fraction of the base days kept)
PRIORITY_DELIVERY_FACTORS = {
    "STANDARD": Decimal("1"),
    "NORMAL": Decimal("0.8"),
    "EXPRESS": Decimal("0.6"),
    "URGENT": Decimal("0.4"),
}

MAX_TRANSPORT_MODES = len(TRANSPORT_MODES)
