"""
Catalog Service - Impostazioni di catalogo
Autosalone - Gestione Stock e Prezzi

CRUD di modelli, allestimenti, alimentazioni, colori, cambi e accessori,
caricamento dello snapshot di catalogo e opzioni compatibili per modello.
"""

from typing import Any, Dict, List, Optional, Type

import structlog
from pydantic import ValidationError as PydanticValidationError

from autosalone.core.errors import NotFoundError, ValidationError
from autosalone.models.catalog import (
    Accessory, CatalogEntity, ExteriorColor, FuelType, Transmission,
    VehicleModel, VehicleTrim
)
from autosalone.services.compatibility import filter_compatible, sort_by_name
from autosalone.services.pricing import Catalog, accessory_without_vat
from autosalone.services.storage import (
    ACCESSORIES, COLORS, FUEL_TYPES, MODELS, TRANSMISSIONS, TRIMS, Storage
)

logger = structlog.get_logger(__name__)

CATALOG_TYPES: Dict[str, Type[CatalogEntity]] = {
    MODELS: VehicleModel,
    TRIMS: VehicleTrim,
    FUEL_TYPES: FuelType,
    COLORS: ExteriorColor,
    TRANSMISSIONS: Transmission,
    ACCESSORIES: Accessory,
}


class CatalogService:
    """
    Gestione del catalogo.

    Il prezzo IVA esclusa degli accessori viene ricalcolato ad ogni
    creazione/modifica, mai accettato dal chiamante.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self.logger = logger.bind(service="CatalogService")

    @staticmethod
    def _entity_type(catalog: str) -> Type[CatalogEntity]:
        try:
            return CATALOG_TYPES[catalog]
        except KeyError:
            raise NotFoundError("catalogs", catalog, f"'{catalog}' non è un catalogo di impostazioni")

    @staticmethod
    def _validate(entity_type: Type[CatalogEntity], data: Dict[str, Any]) -> CatalogEntity:
        try:
            return entity_type(**data)
        except PydanticValidationError as e:
            raise ValidationError(f"Dati di catalogo non validi: {e.errors()[0]['msg']}") from e

    @staticmethod
    def _prepare(catalog: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if catalog == ACCESSORIES and "price_with_vat" in data:
            data["price_without_vat"] = accessory_without_vat(data["price_with_vat"])
        return data

    async def list_entries(self, catalog: str, alphabetical: bool = False) -> List[CatalogEntity]:
        entity_type = self._entity_type(catalog)
        entries = [entity_type(**raw) for raw in await self.storage.list_entities(catalog)]
        return sort_by_name(entries) if alphabetical else entries

    async def get_entry(self, catalog: str, entry_id: str) -> CatalogEntity:
        entity_type = self._entity_type(catalog)
        raw = await self.storage.get_entity(catalog, entry_id)
        if raw is None:
            raise NotFoundError(catalog, entry_id)
        return entity_type(**raw)

    async def create_entry(self, catalog: str, data: Dict[str, Any]) -> CatalogEntity:
        entity_type = self._entity_type(catalog)
        data = self._prepare(catalog, dict(data))
        # Validazione prima della scrittura; l'id viene assegnato dallo storage
        self._validate(entity_type, {**data, "id": data.get("id") or "pending"})

        created = await self.storage.create_entity(catalog, data)
        entry = entity_type(**created)

        self.logger.info("✅ Voce di catalogo creata", catalog=catalog, entry_id=entry.id, name=entry.name)
        return entry

    async def update_entry(self, catalog: str, entry_id: str, updates: Dict[str, Any]) -> CatalogEntity:
        entity_type = self._entity_type(catalog)
        current = await self.get_entry(catalog, entry_id)

        merged = self._prepare(catalog, {**current.model_dump(), **updates, "id": entry_id})
        entry = self._validate(entity_type, merged)

        await self.storage.update_entity(catalog, entry_id, entry.model_dump())
        self.logger.info("✅ Voce di catalogo aggiornata", catalog=catalog, entry_id=entry_id)
        return entry

    async def delete_entry(self, catalog: str, entry_id: str) -> None:
        self._entity_type(catalog)
        await self.storage.delete_entity(catalog, entry_id)
        self.logger.info("🗑️ Voce di catalogo eliminata", catalog=catalog, entry_id=entry_id)

    async def load_catalog(self) -> Catalog:
        """Carica l'intero catalogo in uno snapshot."""
        return Catalog(
            models=await self.list_entries(MODELS),
            trims=await self.list_entries(TRIMS),
            fuel_types=await self.list_entries(FUEL_TYPES),
            colors=await self.list_entries(COLORS),
            transmissions=await self.list_entries(TRANSMISSIONS),
            accessories=await self.list_entries(ACCESSORIES),
        )

    async def compatible_options(self, model_id: str) -> Dict[str, List[CatalogEntity]]:
        """Allestimenti, alimentazioni, colori e cambi offerti per un modello."""
        catalog = await self.load_catalog()
        if catalog.find(MODELS, model_id) is None:
            raise NotFoundError(MODELS, model_id)

        return {
            TRIMS: filter_compatible(catalog.trims, model_id),
            FUEL_TYPES: filter_compatible(catalog.fuel_types, model_id),
            COLORS: filter_compatible(catalog.colors, model_id),
            TRANSMISSIONS: filter_compatible(catalog.transmissions, model_id),
        }

    async def compatible_accessories(self, model_id: str, trim_id: Optional[str] = None) -> List[Accessory]:
        accessories = await self.list_entries(ACCESSORIES)
        return filter_compatible(accessories, model_id, trim_id)
