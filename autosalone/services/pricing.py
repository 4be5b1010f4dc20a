"""
Pricing Engine - Calcolo prezzi
Autosalone - Gestione Stock e Prezzi

Funzioni deterministiche per:
- prezzo configurato di un veicolo (modello + allestimento + alimentazione +
  colore + cambio + accessori)
- cambio di aliquota IVA (22% standard, 4% agevolata)
- prezzo finale di preventivi e contratti

I prezzi di catalogo sono interi, IVA 22% inclusa. Aritmetica Decimal con
arrotondamento half-up all'unità.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Union

import structlog

from autosalone.core.errors import NotFoundError
from autosalone.models.catalog import (
    Accessory, ExteriorColor, FuelType, Transmission, VehicleModel, VehicleTrim
)
from autosalone.models.requests import PriceAdjustments
from autosalone.services.storage import (
    MODELS, TRIMS, FUEL_TYPES, COLORS, TRANSMISSIONS, ACCESSORIES
)

logger = structlog.get_logger(__name__)

STANDARD_VAT = Decimal("1.22")
REDUCED_VAT = Decimal("1.04")
STANDARD_VAT_RATE = 22
REDUCED_VAT_RATE = 4

Number = Union[int, Decimal]


class PricingMode(str, Enum):
    """
    QUOTE: il prezzo finale non scende mai sotto zero.
    CONTRACT: nessun limite inferiore.
    """
    QUOTE = "quote"
    CONTRACT = "contract"


def round_price(value: Number) -> int:
    """Arrotonda all'unità, .5 verso l'alto."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _vat_adjust(amount: Number, reduced_vat: bool) -> Decimal:
    net = Decimal(amount) / STANDARD_VAT
    return net * (REDUCED_VAT if reduced_vat else STANDARD_VAT)


def apply_vat_rate(base_price_at_standard_vat: Number, reduced_vat: bool) -> int:
    """Riesprime un prezzo IVA 22% inclusa all'aliquota richiesta."""
    return round_price(_vat_adjust(base_price_at_standard_vat, reduced_vat))


def accessory_without_vat(price_with_vat: Number) -> int:
    return round_price(Decimal(price_with_vat) / STANDARD_VAT)


def vat_rate_percent(reduced_vat: bool) -> int:
    return REDUCED_VAT_RATE if reduced_vat else STANDARD_VAT_RATE


def compute_configured_price(
    model: Optional[VehicleModel],
    trim: Optional[VehicleTrim],
    fuel_type: Optional[FuelType],
    color: Optional[ExteriorColor],
    transmission: Optional[Transmission],
    accessories: Sequence[Optional[Accessory]] = ()
) -> int:
    """Somma dei componenti; un componente assente contribuisce 0."""
    total = 0
    total += model.base_price if model else 0
    total += trim.price_adjustment if trim else 0
    total += fuel_type.price_adjustment if fuel_type else 0
    total += color.price_adjustment if color else 0
    total += transmission.price_adjustment if transmission else 0
    total += sum(a.price_with_vat for a in accessories if a is not None)
    return total


def compute_final_price(
    base_price: Number,
    adjustments: PriceAdjustments,
    mode: PricingMode = PricingMode.QUOTE
) -> int:
    """
    Prezzo finale di preventivo o contratto.

    final = IVA(base) - IVA(sconto) - IVA(premio targa) - IVA(premio permuta)
            + IVA(kit sicurezza) + IVA(messa su strada) + IVA(gestione usato)
            - valore permuta

    La permuta è esente IVA e si sottrae al valore nominale. Un solo
    arrotondamento finale.
    """
    reduced = adjustments.reduced_vat

    total = _vat_adjust(base_price, reduced)
    total -= _vat_adjust(adjustments.discount, reduced)
    total -= _vat_adjust(adjustments.license_plate_bonus, reduced)
    total -= _vat_adjust(adjustments.trade_in_bonus, reduced)
    total += _vat_adjust(adjustments.safety_kit, reduced)
    total += _vat_adjust(adjustments.road_preparation_fee, reduced)
    total += _vat_adjust(adjustments.trade_in_handling_fee, reduced)
    total -= Decimal(adjustments.trade_in_value)

    final = round_price(total)
    if mode == PricingMode.QUOTE:
        return max(0, final)
    return final


# Risoluzione tramite catalogo
@dataclass
class Catalog:
    """Snapshot completo del catalogo, caricato prima di filtri e calcoli."""
    models: List[VehicleModel] = field(default_factory=list)
    trims: List[VehicleTrim] = field(default_factory=list)
    fuel_types: List[FuelType] = field(default_factory=list)
    colors: List[ExteriorColor] = field(default_factory=list)
    transmissions: List[Transmission] = field(default_factory=list)
    accessories: List[Accessory] = field(default_factory=list)

    def entries(self, catalog: str) -> list:
        return {
            MODELS: self.models,
            TRIMS: self.trims,
            FUEL_TYPES: self.fuel_types,
            COLORS: self.colors,
            TRANSMISSIONS: self.transmissions,
            ACCESSORIES: self.accessories,
        }[catalog]

    def find(self, catalog: str, entity_id: Optional[str]):
        if not entity_id:
            return None
        return next((e for e in self.entries(catalog) if e.id == entity_id), None)

    def find_by_name(self, catalog: str, name: Optional[str]):
        """Cerca per nome; i colori accettano anche il formato "Nome (tipo)"."""
        if not name:
            return None
        for entry in self.entries(catalog):
            if entry.name == name:
                return entry
            if isinstance(entry, ExteriorColor) and entry.display_name == name:
                return entry
        return None

    def resolve_model(self, ref: str) -> Optional[VehicleModel]:
        return self.find(MODELS, ref) or self.find_by_name(MODELS, ref)


@dataclass
class PriceBreakdown:
    model: Optional[VehicleModel]
    trim: Optional[VehicleTrim]
    fuel_type: Optional[FuelType]
    color: Optional[ExteriorColor]
    transmission: Optional[Transmission]
    accessories: List[Accessory]
    unresolved: Dict[str, List[str]]
    total: int

    @property
    def components(self) -> Dict[str, int]:
        return {
            "base_price": self.model.base_price if self.model else 0,
            "trim_price": self.trim.price_adjustment if self.trim else 0,
            "fuel_type_adjustment": self.fuel_type.price_adjustment if self.fuel_type else 0,
            "color_adjustment": self.color.price_adjustment if self.color else 0,
            "transmission_adjustment": self.transmission.price_adjustment if self.transmission else 0,
            "accessories_price": sum(a.price_with_vat for a in self.accessories),
        }


def resolve_configured_price(
    catalog: Catalog,
    model_id: str,
    trim_id: Optional[str] = None,
    fuel_type_id: Optional[str] = None,
    color_id: Optional[str] = None,
    transmission_id: Optional[str] = None,
    accessory_ids: Iterable[str] = (),
    strict: bool = False
) -> PriceBreakdown:
    """
    Risolve gli id sul catalogo e calcola il prezzo configurato.

    In modalità strict un riferimento non risolto solleva NotFoundError;
    altrimenti viene registrato come warning e contribuisce 0.
    """
    unresolved: Dict[str, List[str]] = {}

    def lookup(catalog_name: str, entity_id: Optional[str]):
        if not entity_id:
            return None
        entity = catalog.find(catalog_name, entity_id)
        if entity is None:
            if strict:
                raise NotFoundError(catalog_name, entity_id)
            unresolved.setdefault(catalog_name, []).append(entity_id)
        return entity

    model = lookup(MODELS, model_id)
    trim = lookup(TRIMS, trim_id)
    fuel_type = lookup(FUEL_TYPES, fuel_type_id)
    color = lookup(COLORS, color_id)
    transmission = lookup(TRANSMISSIONS, transmission_id)
    accessories = [a for a in (lookup(ACCESSORIES, acc_id) for acc_id in accessory_ids) if a]

    if unresolved:
        logger.warning("⚠️ Riferimenti di catalogo non risolti, contributo 0",
                       model_id=model_id, unresolved=unresolved)

    total = compute_configured_price(model, trim, fuel_type, color, transmission, accessories)

    return PriceBreakdown(
        model=model,
        trim=trim,
        fuel_type=fuel_type,
        color=color,
        transmission=transmission,
        accessories=accessories,
        unresolved=unresolved,
        total=total
    )
