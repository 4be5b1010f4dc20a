"""
Local Storage - Backend in memoria
Autosalone - Gestione Stock e Prezzi

Backend per sviluppo locale e test: dizionari in memoria, opzionalmente
persistiti su un file JSON. Le scritture sono serializzate da un asyncio.Lock,
che rende atomico il compare-and-set.
"""

import asyncio
import copy
import json
import os
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import structlog

from autosalone.core.errors import NotFoundError, StorageError
from autosalone.services.storage import (
    ALL_CATALOGS, MODELS, TRIMS, FUEL_TYPES, COLORS, TRANSMISSIONS,
    ACCESSORIES, VEHICLES, Storage
)

logger = structlog.get_logger(__name__)


class LocalStorage(Storage):
    """
    Backend locale (equivalente del localStorage del browser).

    Responsabilità:
    - CRUD su cataloghi e record
    - Compare-and-set atomico per le transizioni di stato
    - Persistenza opzionale su file JSON
    - Dati demo per lo sviluppo
    """

    backend_name = "local"

    def __init__(self, path: Optional[str] = None, seed_demo_data: bool = False):
        """
        Args:
            path: File JSON per la persistenza (None = solo memoria)
            seed_demo_data: Popola un catalogo demo se lo storage è vuoto
        """
        self.path = path
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {c: {} for c in ALL_CATALOGS}
        self._lock = asyncio.Lock()

        self.logger = logger.bind(service="LocalStorage", path=path)

        self._load()

        if seed_demo_data and not any(self._data.values()):
            self._init_demo_data()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, encoding="utf-8") as fh:
                stored = json.load(fh)
        except (OSError, ValueError) as e:
            self.logger.error("❌ File di storage non leggibile", error=str(e))
            raise StorageError(f"File di storage non leggibile: {self.path}") from e

        for catalog in ALL_CATALOGS:
            self._data[catalog] = {item["id"]: item for item in stored.get(catalog, [])}

        self.logger.info("📂 Storage locale caricato",
                         entities=sum(len(v) for v in self._data.values()))

    def _persist(self, data: Dict[str, Dict[str, Dict[str, Any]]]) -> None:
        if not self.path:
            return
        snapshot = {catalog: list(items.values()) for catalog, items in data.items()}
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh, ensure_ascii=False, indent=2, default=str)
        except OSError as e:
            self.logger.error("❌ Scrittura storage fallita", error=str(e))
            raise StorageError(f"Scrittura storage fallita: {self.path}") from e

    def _commit(self, catalog: str, items: Dict[str, Dict[str, Any]]) -> None:
        """Persiste lo stato candidato; la memoria cambia solo se la scrittura riesce."""
        staged = {**self._data, catalog: items}
        self._persist(staged)
        self._data = staged

    def _init_demo_data(self) -> None:
        """Catalogo demo per lo sviluppo locale."""
        self._data[MODELS] = {m["id"]: m for m in [
            {"id": "mod-dr3", "name": "DR 3.0", "base_price": 15000, "image_url": None},
            {"id": "mod-dr5", "name": "DR 5.0", "base_price": 22000, "image_url": None},
        ]}
        self._data[TRIMS] = {t["id"]: t for t in [
            {"id": "trim-base", "name": "Base", "base_price": 0, "compatible_models": []},
            {"id": "trim-plus", "name": "Plus", "base_price": 2500, "compatible_models": ["mod-dr3"]},
        ]}
        self._data[FUEL_TYPES] = {f["id"]: f for f in [
            {"id": "fuel-benzina", "name": "Benzina", "price_adjustment": 0, "compatible_models": []},
            {"id": "fuel-gpl", "name": "GPL", "price_adjustment": 1500, "compatible_models": []},
        ]}
        self._data[COLORS] = {c["id"]: c for c in [
            {"id": "col-bianco", "name": "Bianco", "type": "pastello",
             "price_adjustment": 0, "compatible_models": []},
            {"id": "col-grigio", "name": "Grigio", "type": "metallizzato",
             "price_adjustment": 800, "compatible_models": []},
        ]}
        self._data[TRANSMISSIONS] = {t["id"]: t for t in [
            {"id": "tr-manuale", "name": "Manuale", "price_adjustment": 0, "compatible_models": []},
            {"id": "tr-auto", "name": "Automatico", "price_adjustment": 1500, "compatible_models": []},
        ]}
        self._data[ACCESSORIES] = {a["id"]: a for a in [
            {"id": "acc-tappetini", "name": "Tappetini", "price_with_vat": 200,
             "price_without_vat": 164, "compatible_models": [], "compatible_trims": []},
            {"id": "acc-gancio", "name": "Gancio traino", "price_with_vat": 1500,
             "price_without_vat": 1230, "compatible_models": ["mod-dr5"], "compatible_trims": []},
        ]}
        today = date.today().isoformat()
        self._data[VEHICLES] = {v["id"]: v for v in [
            {"id": str(uuid.uuid4()), "model": "DR 3.0", "trim": "Plus", "fuel_type": "GPL",
             "exterior_color": "Grigio (metallizzato)", "transmission": "Manuale",
             "accessories": ["Tappetini"], "price": 19800, "location": "Stock CMC",
             "status": "available", "date_added": today, "telaio": "LVVDB11B0PD000001"},
            {"id": str(uuid.uuid4()), "model": "DR 5.0", "trim": "", "fuel_type": "",
             "exterior_color": "", "transmission": "", "accessories": [], "price": 0,
             "location": "Stock Virtuale", "original_stock": "Cina",
             "status": "available", "date_added": today, "telaio": ""},
        ]}

        self.logger.info("🧪 Dati demo inizializzati",
                         models=len(self._data[MODELS]),
                         vehicles=len(self._data[VEHICLES]))

    # Lettura
    async def get_entity(self, catalog: str, entity_id: str) -> Optional[Dict[str, Any]]:
        self._validate_catalog(catalog)
        entity = self._data[catalog].get(entity_id)
        return copy.deepcopy(entity) if entity is not None else None

    async def list_entities(self, catalog: str) -> List[Dict[str, Any]]:
        self._validate_catalog(catalog)
        return [copy.deepcopy(e) for e in self._data[catalog].values()]

    # Scrittura
    async def create_entity(self, catalog: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self._validate_catalog(catalog)
        async with self._lock:
            entity = copy.deepcopy(data)
            entity_id = entity.get("id") or str(uuid.uuid4())
            if entity_id in self._data[catalog]:
                raise StorageError(f"Elemento '{entity_id}' già presente in '{catalog}'")
            entity["id"] = entity_id
            self._commit(catalog, {**self._data[catalog], entity_id: entity})

        self.logger.debug("🆕 Elemento creato", catalog=catalog, entity_id=entity_id)
        return copy.deepcopy(entity)

    async def update_entity(self, catalog: str, entity_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        self._validate_catalog(catalog)
        async with self._lock:
            current = self._data[catalog].get(entity_id)
            if current is None:
                raise NotFoundError(catalog, entity_id)
            return self._replace(catalog, entity_id, current, updates)

    async def delete_entity(self, catalog: str, entity_id: str) -> None:
        self._validate_catalog(catalog)
        async with self._lock:
            if entity_id not in self._data[catalog]:
                raise NotFoundError(catalog, entity_id)
            remaining = {k: v for k, v in self._data[catalog].items() if k != entity_id}
            self._commit(catalog, remaining)

        self.logger.debug("🗑️ Elemento eliminato", catalog=catalog, entity_id=entity_id)

    async def compare_and_set(
        self,
        catalog: str,
        entity_id: str,
        field: str,
        expected: Any,
        updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        self._validate_catalog(catalog)
        async with self._lock:
            current = self._data[catalog].get(entity_id)
            if current is None:
                raise NotFoundError(catalog, entity_id)
            if current.get(field) != expected:
                self.logger.info("⛔ Compare-and-set rifiutato",
                                 catalog=catalog, entity_id=entity_id,
                                 field=field, expected=expected, actual=current.get(field))
                return None
            return self._replace(catalog, entity_id, current, updates)

    def _replace(
        self,
        catalog: str,
        entity_id: str,
        current: Dict[str, Any],
        updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        candidate = {**copy.deepcopy(current), **copy.deepcopy(updates), "id": entity_id}
        self._commit(catalog, {**self._data[catalog], entity_id: candidate})
        return copy.deepcopy(candidate)

    async def health_check(self) -> Dict[str, Any]:
        return {
            'status': 'healthy',
            'mode': self.backend_name,
            'persistent': self.path is not None,
            'entities': {catalog: len(items) for catalog, items in self._data.items()},
            'timestamp': datetime.now().isoformat()
        }
