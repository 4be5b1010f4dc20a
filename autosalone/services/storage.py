"""
Storage Boundary - Contratto di persistenza
Autosalone - Gestione Stock e Prezzi

Interfaccia minima consumata dai servizi. Le implementazioni concrete
(LocalStorage, BigQueryStorage) vengono scelte esplicitamente alla costruzione
e iniettate nei servizi.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from autosalone.core.errors import StorageError

# Nomi dei cataloghi
MODELS = "models"
TRIMS = "trims"
FUEL_TYPES = "fuelTypes"
COLORS = "colors"
TRANSMISSIONS = "transmissions"
ACCESSORIES = "accessories"
VEHICLES = "vehicles"
QUOTES = "quotes"
ORDERS = "orders"
ORDER_DETAILS = "orderDetails"
CONTRACTS = "contracts"

SETTINGS_CATALOGS = (MODELS, TRIMS, FUEL_TYPES, COLORS, TRANSMISSIONS, ACCESSORIES)
ALL_CATALOGS = SETTINGS_CATALOGS + (VEHICLES, QUOTES, ORDERS, ORDER_DETAILS, CONTRACTS)


class Storage(ABC):
    """
    Contratto del livello di persistenza.

    Le entità sono dizionari JSON-compatibili con chiave `id`.
    `get_entity` restituisce None se l'id non esiste; update/delete/compare_and_set
    sollevano NotFoundError. `compare_and_set` è l'unica operazione atomica
    richiesta: applica `updates` solo se `entity[field] == expected` e
    restituisce None se la condizione non è soddisfatta.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def get_entity(self, catalog: str, entity_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_entities(self, catalog: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_entity(self, catalog: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_entity(self, catalog: str, entity_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_entity(self, catalog: str, entity_id: str) -> None:
        ...

    @abstractmethod
    async def compare_and_set(
        self,
        catalog: str,
        entity_id: str,
        field: str,
        expected: Any,
        updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        ...

    @staticmethod
    def _validate_catalog(catalog: str) -> None:
        if catalog not in ALL_CATALOGS:
            raise StorageError(f"Catalogo sconosciuto: {catalog}", catalog=catalog)
