"""
Quote Service - Preventivi e contratti
Autosalone - Gestione Stock e Prezzi

Workflow: pending → approved → converted (contratto) | pending → rejected.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from autosalone.core.errors import InvalidStateError, NotFoundError, ValidationError
from autosalone.models.records import Contract, Quote, QuoteStatus
from autosalone.models.requests import (
    ContractRequest, ManualQuoteCreate, PriceAdjustments, QuoteBase, QuoteCreate, QuoteRejection
)
from autosalone.services.catalog_service import CatalogService
from autosalone.services.pricing import (
    Catalog, PricingMode, apply_vat_rate, compute_final_price, resolve_configured_price, vat_rate_percent
)
from autosalone.services.storage import ACCESSORIES, CONTRACTS, QUOTES, Storage
from autosalone.services.vehicle_service import VehicleService

logger = structlog.get_logger(__name__)

TRADE_IN_FIELDS = {
    "trade_in_brand": None,
    "trade_in_model": None,
    "trade_in_year": None,
    "trade_in_km": None,
    "trade_in_value": 0,
    "trade_in_bonus": 0,
    "trade_in_handling_fee": 0,
}


def adjustments_from(source: Any) -> PriceAdjustments:
    """Voci di prezzo lette da una richiesta o da un preventivo salvato."""
    return PriceAdjustments(**{name: getattr(source, name) for name in PriceAdjustments.model_fields})


class QuoteService:
    """
    Logica di business per i preventivi.

    Responsabilità:
    - Calcolo prezzo e prezzo finale (modalità QUOTE, mai negativo)
    - Approvazione e rifiuto
    - Conversione in contratto (modalità CONTRACT)
    """

    def __init__(
        self,
        storage: Storage,
        vehicle_service: VehicleService,
        catalog_service: CatalogService,
        strict_pricing: bool = False
    ):
        self.storage = storage
        self.vehicle_service = vehicle_service
        self.catalog_service = catalog_service
        self.strict_pricing = strict_pricing
        self.logger = logger.bind(service="QuoteService")

    async def get_quote(self, quote_id: str) -> Quote:
        raw = await self.storage.get_entity(QUOTES, quote_id)
        if raw is None:
            raise NotFoundError(QUOTES, quote_id, "Preventivo non trovato")
        return Quote(**raw)

    async def list_quotes(self, status: Optional[str] = None, dealer_id: Optional[str] = None) -> List[Quote]:
        quotes = [Quote(**raw) for raw in await self.storage.list_entities(QUOTES)]
        if status:
            quotes = [q for q in quotes if q.status == status]
        if dealer_id:
            quotes = [q for q in quotes if q.dealer_id == dealer_id]
        return sorted(quotes, key=lambda q: q.created_at, reverse=True)

    async def create_quote(self, request: QuoteCreate) -> Quote:
        """Preventivo su un veicolo in inventario."""
        vehicle = await self.vehicle_service.get_vehicle(request.vehicle_id)
        catalog = await self.catalog_service.load_catalog()

        accessory_names, accessory_price = self._resolve_accessories(catalog, request.accessory_ids)
        base_price = vehicle.effective_price + accessory_price

        quote = await self._store_quote(
            request,
            base_price,
            vehicle_id=vehicle.id,
            accessories=accessory_names,
            accessory_price=accessory_price,
            manual_entry=False
        )
        self.logger.info("📝 Preventivo creato",
                         quote_id=quote.id,
                         vehicle_id=vehicle.id,
                         dealer_id=quote.dealer_id,
                         final_price=quote.final_price)
        return quote

    async def create_manual_quote(self, request: ManualQuoteCreate) -> Quote:
        """Preventivo da configurazione di catalogo, senza veicolo."""
        catalog = await self.catalog_service.load_catalog()
        config = request.configuration

        breakdown = resolve_configured_price(
            catalog,
            config.model_id,
            trim_id=config.trim_id,
            fuel_type_id=config.fuel_type_id,
            color_id=config.color_id,
            transmission_id=config.transmission_id,
            accessory_ids=config.accessory_ids,
            strict=self.strict_pricing
        )
        accessory_names, accessory_price = self._resolve_accessories(catalog, request.accessory_ids)
        base_price = breakdown.total + accessory_price

        quote = await self._store_quote(
            request,
            base_price,
            vehicle_id=None,
            accessories=[a.name for a in breakdown.accessories] + accessory_names,
            accessory_price=accessory_price + breakdown.components["accessories_price"],
            manual_entry=True
        )
        self.logger.info("📝 Preventivo manuale creato",
                         quote_id=quote.id,
                         model_id=config.model_id,
                         final_price=quote.final_price)
        return quote

    async def approve_quote(self, quote_id: str) -> Quote:
        quote = await self._transition(quote_id, QuoteStatus.PENDING, {"status": QuoteStatus.APPROVED.value})
        self.logger.info("✅ Preventivo approvato", quote_id=quote_id)
        return quote

    async def reject_quote(self, quote_id: str, reason: Optional[str]) -> Quote:
        try:
            rejection = QuoteRejection(reason=reason)
        except PydanticValidationError as e:
            raise ValidationError("Il motivo del rifiuto è obbligatorio", field="reason") from e

        quote = await self._transition(
            quote_id,
            QuoteStatus.PENDING,
            {"status": QuoteStatus.REJECTED.value, "rejection_reason": rejection.reason}
        )
        self.logger.info("❌ Preventivo rifiutato", quote_id=quote_id, reason=rejection.reason)
        return quote

    async def convert_quote(self, quote_id: str, contract_request: ContractRequest) -> Tuple[Quote, Contract]:
        """Converte un preventivo approvato in contratto."""
        quote = await self._transition(quote_id, QuoteStatus.APPROVED, {"status": QuoteStatus.CONVERTED.value})

        contract_data = {
            "dealer_id": quote.dealer_id,
            "vehicle_id": quote.vehicle_id,
            "quote_id": quote.id,
            "contract_date": datetime.now().isoformat(),
            "contractor": contract_request.model_dump(),
            "price": quote.price,
            "discount": quote.discount,
            "final_price": compute_final_price(quote.base_price, adjustments_from(quote), PricingMode.CONTRACT),
            "status": "attivo",
        }

        try:
            contract = Contract(**await self.storage.create_entity(CONTRACTS, contract_data))
        except Exception as e:
            self.logger.error("❌ Creazione contratto fallita, ripristino preventivo",
                              quote_id=quote_id, error=str(e))
            await self.storage.compare_and_set(
                QUOTES, quote_id, "status", QuoteStatus.CONVERTED.value, {"status": QuoteStatus.APPROVED.value}
            )
            raise

        self.logger.info("📄 Preventivo convertito in contratto",
                         quote_id=quote_id,
                         contract_id=contract.id,
                         final_price=contract.final_price)
        return quote, contract

    async def delete_quote(self, quote_id: str) -> None:
        await self.storage.delete_entity(QUOTES, quote_id)
        self.logger.info("🗑️ Preventivo eliminato", quote_id=quote_id)

    async def list_contracts(self, dealer_id: Optional[str] = None) -> List[Contract]:
        contracts = [Contract(**raw) for raw in await self.storage.list_entities(CONTRACTS)]
        if dealer_id:
            contracts = [c for c in contracts if c.dealer_id == dealer_id]
        return contracts

    # Helper Methods
    async def _store_quote(self, request: QuoteBase, base_price: int, **fields: Any) -> Quote:
        payload: Dict[str, Any] = request.model_dump(
            exclude={"accessory_ids", "vehicle_id", "configuration"}
        )
        if not request.has_trade_in:
            payload.update(TRADE_IN_FIELDS)

        adjustments = PriceAdjustments(**{name: payload[name] for name in PriceAdjustments.model_fields})
        payload.update(fields)
        payload.update({
            "base_price": base_price,
            "price": apply_vat_rate(base_price, request.reduced_vat),
            "final_price": compute_final_price(base_price, adjustments, PricingMode.QUOTE),
            "vat_rate": vat_rate_percent(request.reduced_vat),
            "status": QuoteStatus.PENDING.value,
            "created_at": datetime.now().isoformat(),
        })

        return Quote(**await self.storage.create_entity(QUOTES, payload))

    def _resolve_accessories(self, catalog: Catalog, accessory_ids: List[str]) -> Tuple[List[str], int]:
        names, total = [], 0
        for accessory_id in accessory_ids:
            accessory = catalog.find(ACCESSORIES, accessory_id)
            if accessory is None:
                if self.strict_pricing:
                    raise NotFoundError(ACCESSORIES, accessory_id)
                self.logger.warning("⚠️ Accessorio non presente nel catalogo, contributo 0",
                                    accessory_id=accessory_id)
                continue
            names.append(accessory.name)
            total += accessory.price_with_vat
        return names, total

    async def _transition(self, quote_id: str, expected: QuoteStatus, updates: Dict[str, Any]) -> Quote:
        result = await self.storage.compare_and_set(QUOTES, quote_id, "status", expected.value, updates)
        if result is None:
            raise InvalidStateError(
                f"Il preventivo non è nello stato '{expected.value}'",
                quote_id=quote_id,
                expected=expected.value
            )
        return Quote(**result)
