import copy
from decimal import Decimal

import pytest

from core.errors import InvalidShipmentError
from pricing.dataclasses import PackageInput, PricingConfigData, ShipmentInput
from pricing.services.config_provider import DEFAULT_PRICING_CONFIG
from pricing.services.pricing_engine import (
    compute_estimate,
    distribute_package_prices,
    estimate_delivery_days,
)


def _config(**overrides) -> PricingConfigData:
    data = copy.deepcopy(DEFAULT_PRICING_CONFIG)
    data.update(overrides)
    return PricingConfigData.from_dict(data)


def _flat_config() -> PricingConfigData:
    """Rate 1.0/kg, ROAD multiplier 1.0 and no cargo surcharge."""
    return _config(default_rate_per_kg="1.0")


def _shipment(**kwargs) -> ShipmentInput:
    params = dict(
        origin_country="FR",
        destination_country="DE",
        transport_modes=["ROAD"],
        cargo_type="GENERAL",
        priority="STANDARD",
        weight_kg=Decimal("500"),
    )
    params.update(kwargs)
    return ShipmentInput(**params)


class TestScenarios:
    def test_road_general_standard(self):
        result = compute_estimate(_shipment(), _flat_config())
        assert result.estimated_cost == Decimal("500.00")
        assert result.chargeable_weight_kg == Decimal("500")
        assert result.selected_mode == "ROAD"
        assert result.currency == "EUR"

    def test_express_priority_adds_half(self):
        result = compute_estimate(_shipment(priority="EXPRESS"), _flat_config())
        assert result.estimated_cost == Decimal("750.00")
        assert result.breakdown["base_cost"] == Decimal("500.00")
        assert result.breakdown["priority_surcharge_amount"] == Decimal("250.00")

    def test_two_package_lines_aggregate_weight(self):
        shipment = _shipment(
            weight_kg=None,
            packages=[
                PackageInput(weight_kg=Decimal("100"), quantity=2),
                PackageInput(weight_kg=Decimal("50"), quantity=3),
            ],
        )
        result = compute_estimate(shipment, _flat_config())
        assert result.actual_weight_kg == Decimal("350")
        assert result.chargeable_weight_kg == Decimal("350")
        assert result.estimated_cost == Decimal("350.00")

    def test_cargo_surcharge_applied_after_mode(self):
        result = compute_estimate(_shipment(weight_kg=Decimal("100"), cargo_type="DANGEROUS"), _config())
        # 100 kg * 0.5 * ROAD 1.0 * (1 + 0.5)
        assert result.estimated_cost == Decimal("75.00")
        assert result.breakdown["cargo_surcharge_amount"] == Decimal("25.00")


class TestValidation:
    def test_zero_weight_rejected(self):
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(_shipment(weight_kg=Decimal("0")), _config())
        assert "weight_kg" in exc.value.field_errors

    def test_negative_package_weight_rejected(self):
        shipment = _shipment(packages=[PackageInput(weight_kg=Decimal("-1"))])
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(shipment, _config())
        assert "packages[0].weight_kg" in exc.value.field_errors

    def test_package_quantity_must_be_positive(self):
        shipment = _shipment(packages=[PackageInput(weight_kg=Decimal("5"), quantity=0)])
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(shipment, _config())
        assert "packages[0].quantity" in exc.value.field_errors

    def test_modes_required_and_known(self):
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(_shipment(transport_modes=[]), _config())
        assert "transport_modes" in exc.value.field_errors

        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(_shipment(transport_modes=["ROAD", "SPACE"]), _config())
        assert "transport_modes" in exc.value.field_errors

    def test_closed_enumerations(self):
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(_shipment(cargo_type="LIVESTOCK", priority="ASAP"), _config())
        assert set(exc.value.field_errors) == {"cargo_type", "priority"}

    def test_missing_weight_without_dimensions(self):
        with pytest.raises(InvalidShipmentError):
            compute_estimate(_shipment(weight_kg=None), _config())

    def test_requested_currency_must_match_config(self):
        with pytest.raises(InvalidShipmentError) as exc:
            compute_estimate(_shipment(currency="JPY"), _config())
        assert set(exc.value.field_errors) == {"currency"}

        result = compute_estimate(_shipment(currency="eur"), _config())
        assert result.currency == "EUR"

    def test_result_currency_follows_config(self):
        result = compute_estimate(_shipment(currency="USD"), _config(currency="USD"))
        assert result.currency == "USD"
        assert compute_estimate(_shipment(), _config(currency="USD")).currency == "USD"


class TestModeSelection:
    def test_cheapest_mode_selected(self):
        config = _config()
        both = compute_estimate(_shipment(weight_kg=Decimal("100"), transport_modes=["AIR", "ROAD"]), config)
        air = compute_estimate(_shipment(weight_kg=Decimal("100"), transport_modes=["AIR"]), config)
        assert both.selected_mode == "ROAD"
        assert both.estimated_cost == Decimal("50.00")
        assert air.estimated_cost == Decimal("150.00")
        assert both.estimated_cost <= air.estimated_cost

    def test_tie_breaks_in_enumeration_order(self):
        config = _config(transport_multipliers={"ROAD": "1.0", "SEA": "0.6", "AIR": "3.0", "RAIL": "1.0"})
        result = compute_estimate(_shipment(transport_modes=["RAIL", "ROAD"]), config)
        assert result.selected_mode == "ROAD"

    def test_volumetric_weight_can_change_winner(self):
        # 1 m3 at 10 kg: ROAD bills 333 kg, SEA bills the actual 10 kg
        shipment = _shipment(
            weight_kg=Decimal("10"),
            length_cm=Decimal("100"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
            transport_modes=["ROAD", "SEA"],
        )
        result = compute_estimate(shipment, _config())
        assert result.selected_mode == "SEA"
        assert result.chargeable_weight_kg == Decimal("10")
        assert result.estimated_cost == Decimal("3.00")


class TestVolumetric:
    def test_air_bills_on_volume(self):
        shipment = _shipment(
            weight_kg=Decimal("10"),
            length_cm=Decimal("100"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
            transport_modes=["AIR"],
        )
        result = compute_estimate(shipment, _config())
        assert result.chargeable_weight_kg == Decimal("167")
        assert result.billed_on_volume is True
        # 167 * 0.5 * 3.0
        assert result.estimated_cost == Decimal("250.50")

    def test_no_dimensions_no_inflation(self):
        result = compute_estimate(_shipment(weight_kg=Decimal("10"), transport_modes=["AIR"]), _config())
        assert result.chargeable_weight_kg == Decimal("10")
        assert result.billed_on_volume is False

    def test_volume_only_uses_rate_per_m3(self):
        shipment = _shipment(
            weight_kg=None,
            length_cm=Decimal("200"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
        )
        result = compute_estimate(shipment, _config())
        assert result.billing_basis == "m3"
        assert result.chargeable_weight_kg is None
        assert result.estimated_cost == Decimal("300.00")

    def test_splitting_a_line_keeps_the_cost(self):
        dims = dict(length_cm=Decimal("100"), width_cm=Decimal("100"), height_cm=Decimal("100"))
        whole = _shipment(
            transport_modes=["AIR"],
            packages=[PackageInput(weight_kg=Decimal("10"), quantity=4, **dims)],
        )
        split = _shipment(
            transport_modes=["AIR"],
            packages=[
                PackageInput(weight_kg=Decimal("10"), quantity=2, **dims),
                PackageInput(weight_kg=Decimal("10"), quantity=2, **dims),
            ],
        )
        config = _config()
        assert compute_estimate(whole, config).estimated_cost == compute_estimate(split, config).estimated_cost


class TestProperties:
    def test_cost_never_negative_and_monotonic_in_weight(self):
        config = _config()
        previous = Decimal("0")
        for kg in ("0.1", "1", "12.5", "100", "999.999", "5000"):
            cost = compute_estimate(
                _shipment(weight_kg=Decimal(kg), transport_modes=["ROAD", "AIR", "RAIL"]), config
            ).estimated_cost
            assert cost >= 0
            assert cost >= previous
            previous = cost

    def test_same_input_same_output(self):
        config = _config()
        shipment = _shipment(priority="URGENT", cargo_type="FRAGILE", transport_modes=["SEA", "RAIL"])
        assert compute_estimate(shipment, config).to_dict() == compute_estimate(shipment, config).to_dict()

    def test_rounds_half_up_once(self):
        config = _config(default_rate_per_kg="0.333")
        result = compute_estimate(_shipment(weight_kg=Decimal("1.5")), config)
        assert result.estimated_cost == Decimal("0.50")

    def test_missing_multiplier_is_flagged(self):
        config = _config(transport_multipliers={"ROAD": "1.0"})
        result = compute_estimate(_shipment(weight_kg=Decimal("100"), transport_modes=["RAIL"]), config)
        assert result.estimated_cost == Decimal("50.00")
        assert "multiplier_missing:RAIL" in result.degraded


class TestPackagePrices:
    def test_total_distributed_by_weight(self):
        packages = [
            PackageInput(weight_kg=Decimal("100"), quantity=2),
            PackageInput(weight_kg=Decimal("50"), quantity=3),
        ]
        prices = distribute_package_prices(packages, Decimal("350.00"))
        assert [p.line_total for p in prices] == [Decimal("200.00"), Decimal("150.00")]
        assert prices[0].unit_price == Decimal("100.00")
        assert prices[1].unit_price == Decimal("50.00")

    def test_stored_unit_price_is_kept(self):
        packages = [
            PackageInput(weight_kg=Decimal("100"), quantity=2, unit_price=Decimal("10")),
            PackageInput(weight_kg=Decimal("50"), quantity=3),
        ]
        prices = distribute_package_prices(packages, Decimal("350.00"))
        assert prices[0].line_total == Decimal("20.00")
        assert prices[0].from_stored_price is True
        assert prices[1].line_total == Decimal("330.00")

    def test_presentation_does_not_change_total(self):
        shipment = _shipment(
            weight_kg=None,
            packages=[
                PackageInput(weight_kg=Decimal("1"), quantity=3, unit_price=Decimal("999")),
                PackageInput(weight_kg=Decimal("2"), quantity=1),
            ],
        )
        result = compute_estimate(shipment, _flat_config())
        assert result.estimated_cost == Decimal("5.00")


class TestDeliveryDays:
    @pytest.mark.parametrize(
        "mode,priority,distance,expected",
        [
            ("ROAD", "STANDARD", 5000, 5),
            ("ROAD", "STANDARD", 20000, 7),
            ("ROAD", "EXPRESS", 5000, 3),
            ("ROAD", "URGENT", 5000, 2),
            ("AIR", "URGENT", 0, 1),
            ("SEA", "NORMAL", 10000, 36),
        ],
    )
    def test_estimate(self, mode, priority, distance, expected):
        assert estimate_delivery_days(_config(), mode, priority, distance) == expected

    def test_included_when_distance_known(self):
        result = compute_estimate(_shipment(), _config(), distance_km=800)
        # ROAD: 3 + 4 * 0.08 = 3.32 -> 4
        assert result.estimated_delivery_days == 4
