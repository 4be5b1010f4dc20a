"""
Vehicle Service - Business Logic Layer
Autosalone - Gestione Stock e Prezzi

Gestione dell'inventario: creazione con le regole dello Stock Virtuale,
duplicazione, filtri e valore dello stock dei dealer.
"""

import random
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog

from autosalone.core.errors import InvalidStateError, NotFoundError
from autosalone.models.records import (
    OriginalStock, STOCK_DEALER, STOCK_VIRTUALE, Vehicle, VehicleStatus
)
from autosalone.models.requests import VehicleCreate, VehicleFilter, VehicleUpdate
from autosalone.services.storage import VEHICLES, Storage

# Logging strutturato
logger = structlog.get_logger(__name__)

# Giorni di arrivo stimati per provenienza dello stock virtuale
ARRIVAL_DAYS_RANGE = {
    OriginalStock.GERMANIA: (38, 52),
    OriginalStock.CINA: (90, 120),
}

VIRTUAL_BLANK_FIELDS = {
    "trim": "",
    "fuel_type": "",
    "exterior_color": "",
    "transmission": "",
    "telaio": "",
    "price": 0,
}

# Campi gestiti solo dal ciclo di prenotazione
LIFECYCLE_FIELDS = (
    "status",
    "reserved_by",
    "reserved_accessories",
    "reservation_timestamp",
    "reservation_destination",
    "virtual_config",
)


def estimate_arrival_days(original_stock: Optional[str], rng: Optional[random.Random] = None) -> int:
    """Germania 38-52 giorni, Cina (o provenienza ignota) 90-120."""
    rng = rng or random
    if original_stock == OriginalStock.GERMANIA:
        low, high = ARRIVAL_DAYS_RANGE[OriginalStock.GERMANIA]
    else:
        low, high = ARRIVAL_DAYS_RANGE[OriginalStock.CINA]
    return rng.randint(low, high)


class VehicleService:
    """
    Logica di business per l'inventario veicoli.

    Responsabilità:
    - CRUD veicoli con l'invariante dello Stock Virtuale
    - Filtri di ricerca e range di prezzo
    - Valore dello stock per dealer
    """

    def __init__(self, storage: Storage, rng: Optional[random.Random] = None):
        """
        Args:
            storage: Backend di persistenza iniettato
            rng: Generatore per i giorni di arrivo stimati (test)
        """
        self.storage = storage
        self.rng = rng or random.Random()
        self.logger = logger.bind(service="VehicleService")

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        raw = await self.storage.get_entity(VEHICLES, vehicle_id)
        if raw is None:
            raise NotFoundError(VEHICLES, vehicle_id, "Veicolo non trovato")
        return Vehicle(**raw)

    async def list_vehicles(self, vehicle_filter: Optional[VehicleFilter] = None) -> List[Vehicle]:
        """Veicoli in inventario, opzionalmente filtrati."""
        try:
            vehicles = [Vehicle(**raw) for raw in await self.storage.list_entities(VEHICLES)]

            if vehicle_filter:
                vehicles = [v for v in vehicles if self._matches_filter(v, vehicle_filter)]

            self.logger.info("✅ Veicoli recuperati", count=len(vehicles))
            return vehicles

        except Exception as e:
            self.logger.error("❌ Errore nel recupero dei veicoli", error=str(e))
            raise

    async def create_vehicle(self, data: VehicleCreate) -> Vehicle:
        """
        Crea un veicolo.

        Per lo Stock Virtuale resta obbligatorio solo il modello: configurazione,
        telaio e prezzo vengono azzerati fino alla prenotazione.
        """
        try:
            payload = data.model_dump(mode="json")
            payload["status"] = VehicleStatus.AVAILABLE.value
            payload["date_added"] = payload.get("date_added") or date.today().isoformat()
            payload = self._apply_location_rules(payload)

            created = await self.storage.create_entity(VEHICLES, payload)
            vehicle = Vehicle(**created)

            self.logger.info("✅ Veicolo creato",
                             vehicle_id=vehicle.id,
                             model=vehicle.model,
                             location=vehicle.location)
            return vehicle

        except Exception as e:
            self.logger.error("❌ Errore nella creazione del veicolo", error=str(e), model=data.model)
            raise

    async def update_vehicle(self, vehicle_id: str, updates: VehicleUpdate) -> Vehicle:
        """
        Aggiorna i dati anagrafici del veicolo.

        Stato e prenotazione restano al ciclo di prenotazione; la scrittura
        fallisce se lo stato è cambiato dopo la lettura.
        """
        current = await self.get_vehicle(vehicle_id)

        merged = {**current.model_dump(mode="json"), **updates.model_dump(mode="json", exclude_none=True)}
        if current.status == VehicleStatus.AVAILABLE:
            merged = self._apply_location_rules(merged)
        changes = {k: v for k, v in merged.items() if k not in LIFECYCLE_FIELDS}

        stored = await self.storage.compare_and_set(VEHICLES, vehicle_id, "status", current.status, changes)
        if stored is None:
            raise InvalidStateError(
                "Il veicolo è stato modificato nel frattempo, riprovare",
                vehicle_id=vehicle_id,
                expected=current.status
            )
        self.logger.info("✅ Veicolo aggiornato", vehicle_id=vehicle_id)
        return Vehicle(**stored)

    async def delete_vehicle(self, vehicle_id: str) -> None:
        await self.storage.delete_entity(VEHICLES, vehicle_id)
        self.logger.info("🗑️ Veicolo eliminato", vehicle_id=vehicle_id)

    async def duplicate_vehicle(self, vehicle_id: str) -> Vehicle:
        """Copia di un veicolo con nuovo id, data odierna e senza prenotazione."""
        source = await self.get_vehicle(vehicle_id)

        data = VehicleCreate(**source.model_dump(include=set(VehicleCreate.model_fields)))
        data.date_added = date.today()

        duplicate = await self.create_vehicle(data)
        self.logger.info("📋 Veicolo duplicato", source_id=vehicle_id, vehicle_id=duplicate.id)
        return duplicate

    async def price_range(self) -> Tuple[int, int]:
        prices = [v.effective_price for v in await self.list_vehicles()]
        if not prices:
            return (0, 0)
        return (min(prices), max(prices))

    async def dealer_stock_value(self, dealer_name: str, credit_limit: Optional[int] = None) -> Dict[str, Any]:
        """Valore dei veicoli in Stock Dealer assegnati al dealer, confrontato col plafond."""
        dealer_vehicles = [
            v for v in await self.list_vehicles()
            if v.location == STOCK_DEALER and (v.reserved_by or "").lower() == dealer_name.lower()
        ]
        stock_value = sum(v.effective_price for v in dealer_vehicles)

        result = {
            "dealer_name": dealer_name,
            "vehicles": len(dealer_vehicles),
            "stock_value": stock_value,
            "credit_limit": credit_limit,
            "available_credit": credit_limit - stock_value if credit_limit is not None else None,
        }
        self.logger.info("📊 Valore stock dealer calcolato", **result)
        return result

    # Helper Methods
    def _apply_location_rules(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if payload.get("location") == STOCK_VIRTUALE:
            payload.update(VIRTUAL_BLANK_FIELDS)
            if payload.get("original_stock") and not payload.get("estimated_arrival_days"):
                payload["estimated_arrival_days"] = estimate_arrival_days(payload["original_stock"], self.rng)
        else:
            payload["original_stock"] = None
        return payload

    @staticmethod
    def _matches_filter(vehicle: Vehicle, f: VehicleFilter) -> bool:
        if f.models and vehicle.model not in f.models:
            return False
        if f.trims and vehicle.trim not in f.trims:
            return False
        if f.fuel_types and vehicle.fuel_type not in f.fuel_types:
            return False
        if f.colors and vehicle.exterior_color not in f.colors:
            return False
        if f.locations and vehicle.location not in f.locations:
            return False
        if f.status and vehicle.status not in f.status:
            return False
        if f.price_range:
            low, high = f.price_range
            if not low <= vehicle.effective_price <= high:
                return False
        if f.search_text:
            needle = f.search_text.lower()
            haystack = " ".join(filter(None, [
                vehicle.model, vehicle.trim, vehicle.telaio, vehicle.reserved_by
            ])).lower()
            if needle not in haystack:
                return False
        return True

    async def health_check(self) -> Dict[str, Any]:
        try:
            storage_health = await self.storage.health_check()
            return {
                'status': storage_health.get('status', 'unknown'),
                'service': 'VehicleService',
                'storage': storage_health.get('mode'),
                'timestamp': datetime.now().isoformat()
            }
        except Exception as e:
            return {
                'status': 'unhealthy',
                'service': 'VehicleService',
                'error': str(e),
                'timestamp': datetime.now().isoformat()
            }
