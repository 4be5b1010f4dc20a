"""
Reservation Service - Ciclo di vita della prenotazione
Autosalone - Gestione Stock e Prezzi

Transizioni di stato del veicolo:

    available ──reserve──▶ reserved ──transform_to_order──▶ ordered ──▶ delivered | sold
        ▲                     │
        └─cancel_reservation──┘

Ogni transizione è un compare-and-set sullo storage: due prenotazioni
concorrenti dello stesso veicolo producono esattamente un vincitore.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from autosalone.core.errors import InvalidStateError, NotFoundError, ValidationError
from autosalone.models.records import ActorRole, Vehicle, VehicleStatus, VirtualConfig
from autosalone.models.requests import VirtualConfigRequest, cancellation_schema_for
from autosalone.services.catalog_service import CatalogService
from autosalone.services.compatibility import is_compatible
from autosalone.services.pricing import resolve_configured_price
from autosalone.services.storage import (
    ACCESSORIES, COLORS, FUEL_TYPES, TRANSMISSIONS, TRIMS, VEHICLES, Storage
)
from autosalone.services.vehicle_service import VehicleService, estimate_arrival_days

logger = structlog.get_logger(__name__)

DEFAULT_RESERVATION_WINDOW_HOURS = 48

NOT_AVAILABLE_MESSAGE = "Il veicolo non è disponibile per la prenotazione"
NOT_RESERVED_MESSAGE = "Il veicolo non è prenotato e non può essere trasformato in ordine"
NOT_RESERVED_CANCEL_MESSAGE = "Il veicolo non è prenotato e la prenotazione non può essere annullata"
NOT_ORDERED_MESSAGE = "Il veicolo non è in ordine e non può essere chiuso"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Scadenza della prenotazione
class TimeRemaining(BaseModel):
    hours: int
    minutes: int
    seconds: int


class ReservationExpiration(BaseModel):
    time_remaining: TimeRemaining
    percent_remaining: float
    expired: bool
    expires_at: datetime


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_reservation_expiration(
    reservation_timestamp: Union[datetime, str],
    window_hours: float = DEFAULT_RESERVATION_WINDOW_HOURS,
    now: Optional[datetime] = None
) -> ReservationExpiration:
    """
    Tempo residuo della prenotazione.

    Timestamp senza fuso orario sono interpretati come UTC. Un timestamp nel
    futuro (orologi disallineati) viene trattato come prenotazione appena fatta.
    """
    if window_hours <= 0:
        raise ValidationError("La finestra di prenotazione deve essere positiva", field="window_hours")

    if isinstance(reservation_timestamp, str):
        reservation_timestamp = datetime.fromisoformat(reservation_timestamp)
    start = _as_utc(reservation_timestamp)
    now = _as_utc(now or utcnow())

    window = timedelta(hours=window_hours)
    remaining = min(window, max(timedelta(0), window - (now - start)))
    total_seconds = int(remaining.total_seconds())

    return ReservationExpiration(
        time_remaining=TimeRemaining(
            hours=total_seconds // 3600,
            minutes=(total_seconds % 3600) // 60,
            seconds=total_seconds % 60
        ),
        percent_remaining=remaining / window * 100,
        expired=remaining <= timedelta(0),
        expires_at=start + window
    )


async def watch_reservation_expiration(
    reservation_timestamp: Union[datetime, str],
    window_hours: float = DEFAULT_RESERVATION_WINDOW_HOURS,
    interval: float = 1.0,
    clock: Clock = utcnow
) -> AsyncIterator[ReservationExpiration]:
    """Emette il countdown a ogni intervallo; termina dopo la prima emissione scaduta."""
    while True:
        expiration = compute_reservation_expiration(reservation_timestamp, window_hours, now=clock())
        yield expiration
        if expiration.expired:
            return
        await asyncio.sleep(interval)


class ReservationService:
    """
    Prenotazione, annullamento e avanzamento a ordine dei veicoli.

    Il prezzo della configurazione virtuale viene calcolato e congelato
    al momento della prenotazione.
    """

    def __init__(
        self,
        storage: Storage,
        vehicle_service: VehicleService,
        catalog_service: CatalogService,
        window_hours: float = DEFAULT_RESERVATION_WINDOW_HOURS,
        strict_pricing: bool = False,
        clock: Clock = utcnow
    ):
        self.storage = storage
        self.vehicle_service = vehicle_service
        self.catalog_service = catalog_service
        self.window_hours = window_hours
        self.strict_pricing = strict_pricing
        self.clock = clock
        self.logger = logger.bind(service="ReservationService")

    async def reserve(
        self,
        vehicle_id: str,
        dealer_ref: str,
        accessories: Optional[List[str]] = None,
        virtual_config: Optional[VirtualConfigRequest] = None,
        destination: Optional[str] = None
    ) -> Vehicle:
        vehicle = await self.vehicle_service.get_vehicle(vehicle_id)
        if vehicle.status != VehicleStatus.AVAILABLE:
            raise InvalidStateError(NOT_AVAILABLE_MESSAGE, vehicle_id=vehicle_id, status=vehicle.status)

        updates = {
            "status": VehicleStatus.RESERVED.value,
            "reserved_by": dealer_ref,
            "reserved_accessories": list(accessories or []),
            "reservation_timestamp": self.clock().isoformat(),
            "reservation_destination": destination,
        }

        if vehicle.is_virtual:
            if virtual_config is None:
                raise ValidationError(
                    "La configurazione è obbligatoria per i veicoli dello Stock Virtuale",
                    field="virtual_config"
                )
            snapshot = await self._build_virtual_config(vehicle, virtual_config)
            updates["virtual_config"] = snapshot.model_dump(mode="json")
            if not vehicle.estimated_arrival_days:
                updates["estimated_arrival_days"] = estimate_arrival_days(
                    vehicle.original_stock, self.vehicle_service.rng
                )
        elif virtual_config is not None:
            raise ValidationError(
                "La configurazione è ammessa solo per i veicoli dello Stock Virtuale",
                field="virtual_config"
            )

        result = await self.storage.compare_and_set(
            VEHICLES, vehicle_id, "status", VehicleStatus.AVAILABLE.value, updates
        )
        if result is None:
            raise InvalidStateError(NOT_AVAILABLE_MESSAGE, vehicle_id=vehicle_id)

        reserved = Vehicle(**result)
        self.logger.info("🔒 Veicolo prenotato",
                         vehicle_id=vehicle_id,
                         dealer=dealer_ref,
                         virtual=vehicle.is_virtual,
                         price=reserved.effective_price)
        return reserved

    async def cancel_reservation(
        self,
        vehicle_id: str,
        actor_role: Union[ActorRole, str],
        reason: Optional[str] = None
    ) -> Vehicle:
        """Riporta il veicolo a disponibile. Il dealer deve indicare un motivo."""
        try:
            request = cancellation_schema_for(actor_role)(reason=reason)
        except PydanticValidationError as e:
            raise ValidationError("Il motivo dell'annullamento è obbligatorio", field="reason") from e

        vehicle = await self.vehicle_service.get_vehicle(vehicle_id)
        if vehicle.status != VehicleStatus.RESERVED:
            raise InvalidStateError(NOT_RESERVED_CANCEL_MESSAGE, vehicle_id=vehicle_id, status=vehicle.status)

        updates = {
            "status": VehicleStatus.AVAILABLE.value,
            "reserved_by": None,
            "reserved_accessories": [],
            "reservation_timestamp": None,
            "reservation_destination": None,
        }
        if vehicle.is_virtual:
            updates["virtual_config"] = None

        result = await self.storage.compare_and_set(
            VEHICLES, vehicle_id, "status", VehicleStatus.RESERVED.value, updates
        )
        if result is None:
            raise InvalidStateError(NOT_RESERVED_CANCEL_MESSAGE, vehicle_id=vehicle_id)

        self.logger.info("🔓 Prenotazione annullata",
                         vehicle_id=vehicle_id,
                         actor_role=ActorRole(actor_role).value,
                         dealer=vehicle.reserved_by,
                         reason=request.reason)
        return Vehicle(**result)

    async def transform_to_order(self, vehicle_id: str) -> Vehicle:
        vehicle = await self._transition(
            vehicle_id, VehicleStatus.RESERVED, {"status": VehicleStatus.ORDERED.value}, NOT_RESERVED_MESSAGE
        )
        self.logger.info("📦 Prenotazione trasformata in ordine", vehicle_id=vehicle_id)
        return vehicle

    async def mark_delivered(self, vehicle_id: str, location: Optional[str] = None) -> Vehicle:
        updates = {"status": VehicleStatus.DELIVERED.value}
        if location:
            updates["location"] = location
        vehicle = await self._transition(vehicle_id, VehicleStatus.ORDERED, updates, NOT_ORDERED_MESSAGE)
        self.logger.info("🚚 Veicolo consegnato", vehicle_id=vehicle_id, location=vehicle.location)
        return vehicle

    async def mark_sold(self, vehicle_id: str) -> Vehicle:
        vehicle = await self._transition(
            vehicle_id, VehicleStatus.ORDERED, {"status": VehicleStatus.SOLD.value}, NOT_ORDERED_MESSAGE
        )
        self.logger.info("💶 Veicolo venduto", vehicle_id=vehicle_id)
        return vehicle

    # Scadenze
    async def get_expiration(self, vehicle_id: str, now: Optional[datetime] = None) -> ReservationExpiration:
        vehicle = await self.vehicle_service.get_vehicle(vehicle_id)
        if vehicle.status != VehicleStatus.RESERVED or vehicle.reservation_timestamp is None:
            raise InvalidStateError("Il veicolo non ha una prenotazione attiva", vehicle_id=vehicle_id)
        return compute_reservation_expiration(
            vehicle.reservation_timestamp, self.window_hours, now=now or self.clock()
        )

    async def list_expired_reservations(self, now: Optional[datetime] = None) -> List[Vehicle]:
        """Prenotazioni oltre la finestra. Il rilascio resta una decisione dell'admin."""
        now = now or self.clock()
        expired = []
        for vehicle in await self.vehicle_service.list_vehicles():
            if vehicle.status != VehicleStatus.RESERVED or vehicle.reservation_timestamp is None:
                continue
            if compute_reservation_expiration(vehicle.reservation_timestamp, self.window_hours, now=now).expired:
                expired.append(vehicle)

        self.logger.info("⏰ Prenotazioni scadute", count=len(expired))
        return expired

    # Helper Methods
    async def _transition(
        self,
        vehicle_id: str,
        expected: VehicleStatus,
        updates: Dict[str, object],
        message: str
    ) -> Vehicle:
        result = await self.storage.compare_and_set(VEHICLES, vehicle_id, "status", expected.value, updates)
        if result is None:
            raise InvalidStateError(message, vehicle_id=vehicle_id, expected=expected.value)
        return Vehicle(**result)

    async def _build_virtual_config(self, vehicle: Vehicle, request: VirtualConfigRequest) -> VirtualConfig:
        """Risolve le scelte sul catalogo, verifica la compatibilità e congela il prezzo."""
        catalog = await self.catalog_service.load_catalog()

        model = catalog.resolve_model(vehicle.model)
        if model is None:
            if self.strict_pricing:
                raise NotFoundError("models", vehicle.model, "Modello non presente nel catalogo")
            self.logger.warning("⚠️ Modello non presente nel catalogo", model=vehicle.model)
        else:
            self._check_compatibility(catalog, model.id, request)

        breakdown = resolve_configured_price(
            catalog,
            model.id if model else vehicle.model,
            trim_id=request.trim_id,
            fuel_type_id=request.fuel_type_id,
            color_id=request.color_id,
            transmission_id=request.transmission_id,
            accessory_ids=request.accessory_ids,
            strict=self.strict_pricing
        )

        return VirtualConfig(
            trim=breakdown.trim.name if breakdown.trim else request.trim_id,
            fuel_type=breakdown.fuel_type.name if breakdown.fuel_type else request.fuel_type_id,
            exterior_color=breakdown.color.display_name if breakdown.color else request.color_id,
            transmission=breakdown.transmission.name if breakdown.transmission else request.transmission_id,
            accessories=[a.name for a in breakdown.accessories],
            price=breakdown.total
        )

    @staticmethod
    def _check_compatibility(catalog, model_id: str, request: VirtualConfigRequest) -> None:
        choices = [
            (TRIMS, request.trim_id),
            (FUEL_TYPES, request.fuel_type_id),
            (COLORS, request.color_id),
            (TRANSMISSIONS, request.transmission_id),
        ] + [(ACCESSORIES, acc_id) for acc_id in request.accessory_ids]

        for catalog_name, entity_id in choices:
            entity = catalog.find(catalog_name, entity_id)
            if entity is None:
                continue
            trim_id = request.trim_id if catalog_name == ACCESSORIES else None
            if not is_compatible(entity, model_id, trim_id):
                raise ValidationError(
                    f"'{entity.name}' non è compatibile con il modello selezionato",
                    field=catalog_name,
                    entity_id=entity_id
                )
