from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.cache import cache as default_cache
from django.db import DatabaseError, transaction

from core.errors import ConfigUnavailableError
from ..dataclasses import PricingConfigData
from ..models import CountryDistance, PricingConfig

logger = logging.getLogger(__name__)

CONFIG_CACHE_KEY = "pricing:config"
DISTANCES_CACHE_KEY = "pricing:distances"
DEFAULT_DISTANCE_KM = 1000

DEFAULT_PRICING_CONFIG: Dict[str, Any] = {
    "default_rate_per_kg": "0.5",
    "default_rate_per_m3": "150",
    "transport_multipliers": {"ROAD": "1.0", "SEA": "0.6", "AIR": "3.0", "RAIL": "0.8"},
    "cargo_type_surcharges": {
        "GENERAL": "0",
        "DANGEROUS": "0.5",
        "PERISHABLE": "0.4",
        "FRAGILE": "0.3",
        "BULK": "-0.1",
        "CONTAINER": "0.2",
        "PALLETIZED": "0.15",
        "OTHER": "0.1",
    },
    "priority_surcharges": {"STANDARD": "0", "NORMAL": "0.1", "EXPRESS": "0.5", "URGENT": "1.0"},
    "volumetric_weight_ratios": {"AIR": "167", "ROAD": "333", "SEA": "1", "RAIL": "250"},
    "use_volumetric_weight_per_mode": {"AIR": True, "ROAD": True, "SEA": False, "RAIL": True},
    "delivery_speeds_per_mode": {
        "ROAD": {"min": 3, "max": 7},
        "SEA": {"min": 20, "max": 45},
        "AIR": {"min": 1, "max": 3},
        "RAIL": {"min": 7, "max": 14},
    },
    "currency": "EUR",
    "version": None,
}

# Used when no CountryDistance row exists for a pair
DEFAULT_COUNTRY_DISTANCES: Dict[str, Dict[str, int]] = {
    "FR": {"DE": 800, "ES": 1000, "IT": 1100, "BE": 300, "NL": 500, "GB": 450, "PL": 1500, "CN": 8200, "US": 6200, "IN": 7000},
    "DE": {"FR": 800, "ES": 1800, "IT": 1200, "BE": 700, "NL": 600, "GB": 900, "PL": 600, "CN": 7500, "US": 6500, "IN": 6500},
    "ES": {"FR": 1000, "DE": 1800, "IT": 1400, "BE": 1300, "NL": 1500, "GB": 1300, "PL": 2500, "CN": 10500, "US": 6500, "IN": 8500},
    "IT": {"FR": 1100, "DE": 1200, "ES": 1400, "BE": 1200, "NL": 1300, "GB": 1600, "PL": 1300, "CN": 8000, "US": 7000, "IN": 6000},
    "BE": {"FR": 300, "DE": 700, "ES": 1300, "IT": 1200, "NL": 200, "GB": 400, "PL": 1200, "CN": 8000, "US": 6200, "IN": 7200},
    "NL": {"FR": 500, "DE": 600, "ES": 1500, "IT": 1300, "BE": 200, "GB": 500, "PL": 1100, "CN": 7800, "US": 6000, "IN": 7000},
    "GB": {"FR": 450, "DE": 900, "ES": 1300, "IT": 1600, "BE": 400, "NL": 500, "PL": 1700, "CN": 8500, "US": 5500, "IN": 7500},
    "PL": {"FR": 1500, "DE": 600, "ES": 2500, "IT": 1300, "BE": 1200, "NL": 1100, "GB": 1700, "CN": 7000, "US": 7500, "IN": 6000},
    "CN": {"FR": 8200, "DE": 7500, "ES": 10500, "IT": 8000, "BE": 8000, "NL": 7800, "GB": 8500, "PL": 7000, "US": 11000, "IN": 3800},
    "US": {"FR": 6200, "DE": 6500, "ES": 6500, "IT": 7000, "BE": 6200, "NL": 6000, "GB": 5500, "PL": 7500, "CN": 11000, "IN": 13000},
    "IN": {"FR": 7000, "DE": 6500, "ES": 8500, "IT": 6000, "BE": 7200, "NL": 7000, "GB": 7500, "PL": 6000, "CN": 3800, "US": 13000},
}

CONFIG_MAP_FIELDS = (
    "transport_multipliers",
    "cargo_type_surcharges",
    "priority_surcharges",
    "volumetric_weight_ratios",
    "use_volumetric_weight_per_mode",
    "delivery_speeds_per_mode",
)


def default_config() -> PricingConfigData:
    return PricingConfigData.from_dict(DEFAULT_PRICING_CONFIG)


def _merge_over_defaults(row: PricingConfig) -> Dict[str, Any]:
    """Row values win; keys the row does not carry keep their default."""
    data = {
        "default_rate_per_kg": row.default_rate_per_kg,
        "default_rate_per_m3": row.default_rate_per_m3,
        "currency": row.currency,
        "version": row.version,
    }
    for name in CONFIG_MAP_FIELDS:
        merged = dict(DEFAULT_PRICING_CONFIG[name])
        merged.update(getattr(row, name) or {})
        data[name] = merged
    return data


class ConfigProvider:
    """
    Read-through cache over the PricingConfig and CountryDistance tables.

    Both lookups degrade to the hard-coded defaults when storage is empty or
    unreadable; callers always get a usable value.
    """

    def __init__(self, cache=None, timeout: Optional[int] = None):
        self.cache = cache if cache is not None else default_cache
        self.timeout = timeout if timeout is not None else getattr(settings, "PRICING_CACHE_TIMEOUT", 3600)

    # ---- pricing config -------------------------------------------------

    def _load_config(self) -> Dict[str, Any]:
        try:
            row = PricingConfig.objects.order_by("-version").first()
        except DatabaseError as exc:
            err = ConfigUnavailableError(f"pricing config unreadable: {exc}")
            logger.error("%s; using built-in defaults", err)
            return dict(DEFAULT_PRICING_CONFIG)
        if row is None:
            logger.warning("%s; using built-in defaults", ConfigUnavailableError("no pricing config stored"))
            return dict(DEFAULT_PRICING_CONFIG)
        return _merge_over_defaults(row)

    def get_pricing_config(self) -> PricingConfigData:
        data = self.cache.get(CONFIG_CACHE_KEY)
        if data is None:
            data = self._load_config()
            # Decimal values are stored as strings so any cache backend can hold them
            data = PricingConfigData.from_dict(data).to_dict()
            self.cache.set(CONFIG_CACHE_KEY, data, self.timeout)
        return PricingConfigData.from_dict(data)

    def update_pricing_config(self, data: Dict[str, Any], user=None) -> PricingConfig:
        """Write a new configuration version and drop the cached one."""
        current = self.get_pricing_config().to_dict()
        with transaction.atomic():
            latest = PricingConfig.objects.select_for_update().order_by("-version").first()
            version = (latest.version + 1) if latest else 1
            fields = {
                "default_rate_per_kg": data.get("default_rate_per_kg", current["default_rate_per_kg"]),
                "default_rate_per_m3": data.get("default_rate_per_m3", current["default_rate_per_m3"]),
                "currency": data.get("currency", current["currency"]),
            }
            for name in CONFIG_MAP_FIELDS:
                merged = dict(current[name])
                merged.update(data.get(name) or {})
                fields[name] = merged
            row = PricingConfig.objects.create(version=version, updated_by=user, **fields)
        logger.info(
            "Pricing config v%s saved by %s",
            row.version,
            getattr(user, "username", None) or "system",
        )
        self.invalidate()
        return row

    # ---- distances ------------------------------------------------------

    def _distance_map(self) -> Dict[str, int]:
        distances = self.cache.get(DISTANCES_CACHE_KEY)
        if distances is None:
            try:
                distances = {
                    f"{o}:{dst}": km
                    for o, dst, km in CountryDistance.objects.values_list(
                        "origin_country", "destination_country", "distance_km"
                    )
                }
            except DatabaseError:
                logger.exception("Country distances unreadable; using static table")
                return {}
            self.cache.set(DISTANCES_CACHE_KEY, distances, self.timeout)
        return distances

    def get_distance(self, origin: str, destination: str) -> int:
        origin = (origin or "").upper()
        destination = (destination or "").upper()
        km = self._distance_map().get(f"{origin}:{destination}")
        if km:
            return km
        km = DEFAULT_COUNTRY_DISTANCES.get(origin, {}).get(destination)
        if km:
            logger.info("No stored distance for %s->%s, using static table (%s km)", origin, destination, km)
            return km
        logger.warning(
            "No distance known for %s->%s, assuming %s km", origin, destination, DEFAULT_DISTANCE_KM
        )
        return DEFAULT_DISTANCE_KM

    def upsert_distance(self, origin: str, destination: str, km: int) -> CountryDistance:
        row, _ = CountryDistance.objects.update_or_create(
            origin_country=origin.upper(),
            destination_country=destination.upper(),
            defaults={"distance_km": km},
        )
        self.invalidate()
        return row

    def invalidate(self) -> None:
        self.cache.delete_many([CONFIG_CACHE_KEY, DISTANCES_CACHE_KEY])
        logger.debug("Pricing cache cleared")


def get_config_provider() -> ConfigProvider:
    return ConfigProvider()
