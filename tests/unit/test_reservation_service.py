# tests/unit/test_reservation_service.py
"""
Unit Test per ReservationService
Autosalone - Gestione Stock e Prezzi

Ciclo di vita: available -> reserved -> ordered -> delivered | sold.
"""

import asyncio

import pytest

from autosalone.core.errors import InvalidStateError, NotFoundError, ValidationError
from autosalone.models.records import ActorRole, VehicleStatus
from autosalone.models.requests import VirtualConfigRequest
from autosalone.services.reservation_service import (
    NOT_AVAILABLE_MESSAGE, NOT_RESERVED_MESSAGE, ReservationService
)


def dr5_config(**overrides) -> VirtualConfigRequest:
    data = {
        "trim_id": "trim-base",
        "fuel_type_id": "fuel-gpl",
        "color_id": "col-grigio",
        "transmission_id": "tr-auto",
        "accessory_ids": ["acc-gancio"],
    }
    data.update(overrides)
    return VirtualConfigRequest(**data)


class TestReserve:

    @pytest.mark.asyncio
    async def test_reserve_available_vehicle(self, reservation_service, cmc_vehicle, clock):
        vehicle = await reservation_service.reserve(
            cmc_vehicle.id, "Dealer Roma", accessories=["Tappetini"], destination="Roma"
        )

        assert vehicle.status == VehicleStatus.RESERVED
        assert vehicle.reserved_by == "Dealer Roma"
        assert vehicle.reserved_accessories == ["Tappetini"]
        assert vehicle.reservation_destination == "Roma"
        assert vehicle.reservation_timestamp == clock()
        assert vehicle.virtual_config is None

    @pytest.mark.asyncio
    async def test_reserve_twice_fails(self, reservation_service, cmc_vehicle):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        with pytest.raises(InvalidStateError) as exc_info:
            await reservation_service.reserve(cmc_vehicle.id, "Dealer Milano")

        assert exc_info.value.message == NOT_AVAILABLE_MESSAGE
        vehicle = await reservation_service.vehicle_service.get_vehicle(cmc_vehicle.id)
        assert vehicle.reserved_by == "Dealer Roma"

    @pytest.mark.asyncio
    async def test_concurrent_reservations_have_one_winner(self, reservation_service, cmc_vehicle):
        results = await asyncio.gather(
            reservation_service.reserve(cmc_vehicle.id, "Dealer Roma"),
            reservation_service.reserve(cmc_vehicle.id, "Dealer Milano"),
            return_exceptions=True
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(winners) == 1
        assert len(losers) == 1

        stored = await reservation_service.vehicle_service.get_vehicle(cmc_vehicle.id)
        assert stored.reserved_by == winners[0].reserved_by

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, reservation_service):
        with pytest.raises(NotFoundError):
            await reservation_service.reserve("missing", "Dealer Roma")

    @pytest.mark.asyncio
    async def test_physical_vehicle_rejects_virtual_config(self, reservation_service, cmc_vehicle):
        with pytest.raises(ValidationError):
            await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma", virtual_config=dr5_config())


class TestVirtualReservation:

    @pytest.mark.asyncio
    async def test_config_required(self, reservation_service, virtual_vehicle):
        with pytest.raises(ValidationError) as exc_info:
            await reservation_service.reserve(virtual_vehicle.id, "Dealer Roma")

        assert exc_info.value.field == "virtual_config"

    @pytest.mark.asyncio
    async def test_price_is_computed_and_frozen(self, reservation_service, virtual_vehicle, catalog_service):
        vehicle = await reservation_service.reserve(virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config())

        config = vehicle.virtual_config
        assert config.price == 22000 + 0 + 1500 + 800 + 1500 + 1500
        assert config.trim == "Base"
        assert config.exterior_color == "Grigio (metallizzato)"
        assert config.accessories == ["Gancio traino"]
        assert vehicle.effective_price == config.price

        # Il prezzo congelato non segue le modifiche di catalogo
        await catalog_service.update_entry("models", "mod-dr5", {"base_price": 30000})
        stored = await reservation_service.vehicle_service.get_vehicle(virtual_vehicle.id)
        assert stored.virtual_config.price == config.price

    @pytest.mark.asyncio
    async def test_estimated_arrival_days_from_origin(self, reservation_service, virtual_vehicle):
        vehicle = await reservation_service.reserve(virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config())
        assert 90 <= vehicle.estimated_arrival_days <= 120

    @pytest.mark.asyncio
    async def test_incompatible_choice_rejected(self, reservation_service, virtual_vehicle):
        # trim-plus è riservato al DR 3.0
        with pytest.raises(ValidationError) as exc_info:
            await reservation_service.reserve(
                virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config(trim_id="trim-plus")
            )

        assert exc_info.value.field == "trims"

    @pytest.mark.asyncio
    async def test_lenient_unknown_reference_contributes_zero(self, reservation_service, virtual_vehicle):
        vehicle = await reservation_service.reserve(
            virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config(color_id="col-sconosciuto")
        )

        assert vehicle.virtual_config.price == 22000 + 1500 + 1500 + 1500
        assert vehicle.virtual_config.exterior_color == "col-sconosciuto"

    @pytest.mark.asyncio
    async def test_strict_unknown_reference_raises(
        self, storage, vehicle_service, catalog_service, clock, virtual_vehicle
    ):
        strict_service = ReservationService(
            storage, vehicle_service, catalog_service, strict_pricing=True, clock=clock
        )

        with pytest.raises(NotFoundError):
            await strict_service.reserve(
                virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config(color_id="col-sconosciuto")
            )

        vehicle = await vehicle_service.get_vehicle(virtual_vehicle.id)
        assert vehicle.status == VehicleStatus.AVAILABLE


class TestCancelReservation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_dealer_requires_reason(self, reservation_service, cmc_vehicle, reason):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        with pytest.raises(ValidationError):
            await reservation_service.cancel_reservation(cmc_vehicle.id, ActorRole.DEALER, reason)

        vehicle = await reservation_service.vehicle_service.get_vehicle(cmc_vehicle.id)
        assert vehicle.status == VehicleStatus.RESERVED

    @pytest.mark.asyncio
    async def test_dealer_with_reason(self, reservation_service, cmc_vehicle):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma", accessories=["Tappetini"])

        vehicle = await reservation_service.cancel_reservation(cmc_vehicle.id, "dealer", "Cliente rinuncia")

        assert vehicle.status == VehicleStatus.AVAILABLE
        assert vehicle.reserved_by is None
        assert vehicle.reserved_accessories == []
        assert vehicle.reservation_timestamp is None
        assert vehicle.reservation_destination is None

    @pytest.mark.asyncio
    async def test_admin_reason_optional(self, reservation_service, cmc_vehicle):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        vehicle = await reservation_service.cancel_reservation(cmc_vehicle.id, ActorRole.ADMIN)

        assert vehicle.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_virtual_snapshot_cleared(self, reservation_service, virtual_vehicle):
        await reservation_service.reserve(virtual_vehicle.id, "Dealer Roma", virtual_config=dr5_config())

        vehicle = await reservation_service.cancel_reservation(virtual_vehicle.id, ActorRole.ADMIN)

        assert vehicle.virtual_config is None
        assert vehicle.effective_price == 0

    @pytest.mark.asyncio
    async def test_cancel_not_reserved(self, reservation_service, cmc_vehicle):
        with pytest.raises(InvalidStateError):
            await reservation_service.cancel_reservation(cmc_vehicle.id, ActorRole.ADMIN)


class TestOrderTransitions:

    @pytest.mark.asyncio
    async def test_transform_requires_reservation(self, reservation_service, cmc_vehicle):
        with pytest.raises(InvalidStateError) as exc_info:
            await reservation_service.transform_to_order(cmc_vehicle.id)

        assert exc_info.value.message == NOT_RESERVED_MESSAGE

    @pytest.mark.asyncio
    async def test_transform_keeps_reservation_fields(self, reservation_service, cmc_vehicle, clock):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        vehicle = await reservation_service.transform_to_order(cmc_vehicle.id)

        assert vehicle.status == VehicleStatus.ORDERED
        assert vehicle.reserved_by == "Dealer Roma"
        assert vehicle.reservation_timestamp == clock()

    @pytest.mark.asyncio
    async def test_delivered_and_sold_only_from_ordered(self, reservation_service, cmc_vehicle):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        with pytest.raises(InvalidStateError):
            await reservation_service.mark_delivered(cmc_vehicle.id)
        with pytest.raises(InvalidStateError):
            await reservation_service.mark_sold(cmc_vehicle.id)

        await reservation_service.transform_to_order(cmc_vehicle.id)
        vehicle = await reservation_service.mark_sold(cmc_vehicle.id)

        assert vehicle.status == VehicleStatus.SOLD


class TestExpiration:

    @pytest.mark.asyncio
    async def test_get_expiration_follows_clock(self, reservation_service, cmc_vehicle, clock):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")
        clock.advance(hours=36)

        expiration = await reservation_service.get_expiration(cmc_vehicle.id)

        assert expiration.time_remaining.hours == 12
        assert expiration.percent_remaining == 25
        assert not expiration.expired

    @pytest.mark.asyncio
    async def test_get_expiration_requires_reservation(self, reservation_service, cmc_vehicle):
        with pytest.raises(InvalidStateError):
            await reservation_service.get_expiration(cmc_vehicle.id)

    @pytest.mark.asyncio
    async def test_list_expired_reservations(self, reservation_service, cmc_vehicle, clock):
        await reservation_service.reserve(cmc_vehicle.id, "Dealer Roma")

        assert await reservation_service.list_expired_reservations() == []

        clock.advance(hours=49)
        expired = await reservation_service.list_expired_reservations()

        assert [v.id for v in expired] == [cmc_vehicle.id]

# Pytest-Marks
pytestmark = [
    pytest.mark.unit
]
