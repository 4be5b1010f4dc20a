"""
Quote API Routes - Preventivi e contratti
Autosalone - Gestione Stock e Prezzi
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from autosalone.core.dependencies import get_quote_service
from autosalone.models.records import Contract, Quote, QuoteStatus
from autosalone.models.requests import (
    ContractRequest, ManualQuoteCreate, QuoteCreate, QuoteRejection, StandardResponse
)
from autosalone.services.quote_service import QuoteService

router = APIRouter(prefix="/quotes", tags=["Preventivi"])


@router.get("/", response_model=List[Quote], summary="Preventivi")
async def list_quotes(
    quote_status: Optional[QuoteStatus] = Query(None, alias="status"),
    dealer_id: Optional[str] = Query(None),
    quote_service: QuoteService = Depends(get_quote_service)
) -> List[Quote]:
    return await quote_service.list_quotes(
        status=quote_status.value if quote_status else None,
        dealer_id=dealer_id
    )


@router.get("/contracts", response_model=List[Contract], summary="Contratti")
async def list_contracts(
    dealer_id: Optional[str] = Query(None),
    quote_service: QuoteService = Depends(get_quote_service)
) -> List[Contract]:
    return await quote_service.list_contracts(dealer_id)


@router.get("/{quote_id}", response_model=Quote, summary="Dettaglio preventivo")
async def get_quote(
    quote_id: str,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Quote:
    return await quote_service.get_quote(quote_id)


@router.post("/", response_model=Quote, status_code=status.HTTP_201_CREATED, summary="Crea preventivo")
async def create_quote(
    request: QuoteCreate,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Quote:
    """
    Preventivo su un veicolo in inventario.

    **Prezzo finale:** calcolato con sconto, premi, kit, messa su strada e
    permuta; mai negativo.
    """
    return await quote_service.create_quote(request)


@router.post("/manual", response_model=Quote, status_code=status.HTTP_201_CREATED, summary="Preventivo manuale")
async def create_manual_quote(
    request: ManualQuoteCreate,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Quote:
    return await quote_service.create_manual_quote(request)


@router.post("/{quote_id}/approve", response_model=Quote, summary="Approva preventivo")
async def approve_quote(
    quote_id: str,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Quote:
    return await quote_service.approve_quote(quote_id)


@router.post("/{quote_id}/reject", response_model=Quote, summary="Rifiuta preventivo")
async def reject_quote(
    quote_id: str,
    rejection: QuoteRejection,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Quote:
    return await quote_service.reject_quote(quote_id, rejection.reason)


@router.post("/{quote_id}/convert", summary="Converti in contratto")
async def convert_quote(
    quote_id: str,
    contract_request: ContractRequest,
    quote_service: QuoteService = Depends(get_quote_service)
) -> Dict[str, Any]:
    quote, contract = await quote_service.convert_quote(quote_id, contract_request)
    return {
        "quote": quote.model_dump(mode="json"),
        "contract": contract.model_dump(mode="json"),
    }


@router.delete("/{quote_id}", response_model=StandardResponse, summary="Elimina preventivo")
async def delete_quote(
    quote_id: str,
    quote_service: QuoteService = Depends(get_quote_service)
) -> StandardResponse:
    await quote_service.delete_quote(quote_id)
    return StandardResponse(success=True, message="Preventivo eliminato", data={"id": quote_id})
