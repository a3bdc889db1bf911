from decimal import Decimal
from io import StringIO
from unittest import mock

import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.db import DatabaseError

from pricing.models import CountryDistance, PricingConfig
from pricing.services.config_provider import (
    DEFAULT_DISTANCE_KM,
    ConfigProvider,
)

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


def _mk_user(username="fin", role="finance"):
    from django.contrib.auth import get_user_model
    return get_user_model().objects.create_user(username=username, password="pass", role=role)


def test_defaults_when_nothing_stored():
    config = ConfigProvider().get_pricing_config()
    assert config.version is None
    assert config.default_rate_per_kg == Decimal("0.5")
    assert config.transport_multipliers["AIR"] == Decimal("3.0")
    assert config.use_volumetric_weight_per_mode["SEA"] is False
    assert config.delivery_speeds_per_mode["RAIL"] == {"min": 7, "max": 14}


def test_newest_version_wins_and_merges_over_defaults():
    PricingConfig.objects.create(version=1, default_rate_per_kg="0.7", default_rate_per_m3="150")
    PricingConfig.objects.create(
        version=2,
        default_rate_per_kg="0.9",
        default_rate_per_m3="150",
        transport_multipliers={"AIR": "2.5"},
    )
    config = ConfigProvider().get_pricing_config()
    assert config.version == 2
    assert config.default_rate_per_kg == Decimal("0.9")
    assert config.transport_multipliers["AIR"] == Decimal("2.5")
    # keys the row does not carry keep their default
    assert config.transport_multipliers["ROAD"] == Decimal("1.0")


def test_config_is_cached_until_invalidated():
    provider = ConfigProvider()
    assert provider.get_pricing_config().version is None
    PricingConfig.objects.create(version=1, default_rate_per_kg="2", default_rate_per_m3="150")
    assert provider.get_pricing_config().version is None
    provider.invalidate()
    assert provider.get_pricing_config().version == 1


def test_update_writes_new_version_and_invalidates():
    user = _mk_user()
    provider = ConfigProvider()
    provider.get_pricing_config()

    first = provider.update_pricing_config({"default_rate_per_kg": "1.0"}, user=user)
    second = provider.update_pricing_config({"priority_surcharges": {"URGENT": "2.0"}}, user=user)

    assert (first.version, second.version) == (1, 2)
    assert second.updated_by == user
    config = provider.get_pricing_config()
    assert config.version == 2
    assert config.default_rate_per_kg == Decimal("1.0")
    assert config.priority_surcharges["URGENT"] == Decimal("2.0")
    assert config.priority_surcharges["EXPRESS"] == Decimal("0.5")


def test_unreadable_storage_falls_back_to_defaults():
    with mock.patch.object(PricingConfig.objects, "order_by", side_effect=DatabaseError("down")):
        config = ConfigProvider().get_pricing_config()
    assert config.default_rate_per_kg == Decimal("0.5")


class TestDistances:
    def test_database_row_first(self):
        CountryDistance.objects.create(origin_country="FR", destination_country="DE", distance_km=777)
        assert ConfigProvider().get_distance("fr", "de") == 777

    def test_static_table_second(self):
        assert ConfigProvider().get_distance("FR", "DE") == 800
        assert ConfigProvider().get_distance("CN", "IN") == 3800

    def test_unknown_pair_uses_default(self):
        assert ConfigProvider().get_distance("FR", "ZZ") == DEFAULT_DISTANCE_KM

    def test_upsert_invalidates(self):
        provider = ConfigProvider()
        assert provider.get_distance("FR", "DE") == 800
        provider.upsert_distance("fr", "de", 810)
        assert provider.get_distance("FR", "DE") == 810
        provider.upsert_distance("FR", "DE", 820)
        assert CountryDistance.objects.filter(origin_country="FR", destination_country="DE").count() == 1
        assert provider.get_distance("FR", "DE") == 820


def test_seed_command_is_idempotent_without_force():
    out = StringIO()
    call_command("seed_pricing_config", stdout=out)
    call_command("seed_pricing_config", stdout=out)
    assert PricingConfig.objects.count() == 1
    assert CountryDistance.objects.filter(origin_country="FR", destination_country="DE").get().distance_km == 800
    assert "already present" in out.getvalue()

    call_command("seed_pricing_config", "--force", "--skip-distances", stdout=out)
    assert list(PricingConfig.objects.values_list("version", flat=True)) == [2, 1]
