"""
Pydantic Models per il Catalogo
Autosalone - Gestione Stock e Prezzi

Modelli, allestimenti, alimentazioni, colori, cambi e accessori.
Una lista di compatibilità vuota significa "compatibile con tutti".
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogEntity(BaseModel):
    """Base per tutte le voci di catalogo."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)

    model_config = ConfigDict(validate_assignment=True)


class VehicleModel(CatalogEntity):
    """Modello di veicolo, prezzo base IVA 22% inclusa."""
    base_price: int = Field(..., ge=0, description="Prezzo base IVA inclusa")
    image_url: Optional[str] = None


class VehicleTrim(CatalogEntity):
    """Allestimento. `base_price` si somma al prezzo del modello."""
    base_price: int = Field(0, description="Sovrapprezzo dell'allestimento")
    compatible_models: List[str] = Field(default_factory=list)

    @property
    def price_adjustment(self) -> int:
        return self.base_price


class FuelType(CatalogEntity):
    price_adjustment: int = 0
    compatible_models: List[str] = Field(default_factory=list)


class ExteriorColor(CatalogEntity):
    type: str = Field("", max_length=100, description="es. pastello, metallizzato")
    price_adjustment: int = 0
    compatible_models: List[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Formato "Nome (tipo)" usato nelle configurazioni salvate."""
        return f"{self.name} ({self.type})" if self.type else self.name


class Transmission(CatalogEntity):
    price_adjustment: int = 0
    compatible_models: List[str] = Field(default_factory=list)


class Accessory(CatalogEntity):
    """Accessorio. `price_without_vat` è sempre derivato da `price_with_vat`."""
    price_with_vat: int = Field(..., ge=0)
    price_without_vat: int = Field(0, ge=0)
    compatible_models: List[str] = Field(default_factory=list)
    compatible_trims: List[str] = Field(default_factory=list)
