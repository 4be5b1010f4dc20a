"""
Pricing API Routes - Calcolo prezzi
Autosalone - Gestione Stock e Prezzi
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
import structlog

from autosalone.core.dependencies import get_catalog_service, get_environment_config
from autosalone.models.requests import ConfigurationRequest, FinalPriceRequest
from autosalone.services.catalog_service import CatalogService
from autosalone.services.pricing import (
    PricingMode, apply_vat_rate, compute_final_price, resolve_configured_price, vat_rate_percent
)

router = APIRouter(prefix="/pricing", tags=["Prezzi"])
logger = structlog.get_logger(__name__)


@router.post(
    "/configured",
    summary="Prezzo configurato",
    description="Somma di modello, allestimento, alimentazione, colore, cambio e accessori."
)
async def configured_price(
    request: ConfigurationRequest,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """
    Calcola il prezzo di una configurazione di catalogo.

    **Risultato:** totale, componenti e riferimenti non risolti (modalità non strict).
    """
    catalog = await catalog_service.load_catalog()
    breakdown = resolve_configured_price(
        catalog,
        request.model_id,
        trim_id=request.trim_id,
        fuel_type_id=request.fuel_type_id,
        color_id=request.color_id,
        transmission_id=request.transmission_id,
        accessory_ids=request.accessory_ids,
        strict=get_environment_config()['pricing_strict']
    )
    logger.info("💶 Prezzo configurato calcolato", model_id=request.model_id, total=breakdown.total)
    return {
        "total": breakdown.total,
        "components": breakdown.components,
        "unresolved": breakdown.unresolved,
    }


@router.post("/final", summary="Prezzo finale di preventivo o contratto")
async def final_price(request: FinalPriceRequest) -> Dict[str, Any]:
    adjustments = request.adjustments
    return {
        "price": apply_vat_rate(request.base_price, adjustments.reduced_vat),
        "final_price": compute_final_price(request.base_price, adjustments, PricingMode(request.mode)),
        "vat_rate": vat_rate_percent(adjustments.reduced_vat),
        "mode": request.mode,
    }


@router.get("/vat", summary="Cambio aliquota IVA")
async def vat_price(
    base_price: int = Query(..., ge=0, description="Prezzo IVA 22% inclusa"),
    reduced_vat: bool = Query(False, description="IVA agevolata 4%")
) -> Dict[str, int]:
    return {
        "price": apply_vat_rate(base_price, reduced_vat),
        "vat_rate": vat_rate_percent(reduced_vat),
    }
