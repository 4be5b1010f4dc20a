"""
Order API Routes - Ordini
Autosalone - Gestione Stock e Prezzi
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from autosalone.core.dependencies import get_order_service
from autosalone.models.records import Order, OrderDetails, OrderStatus
from autosalone.models.requests import OrderCreate, OrderDetailsUpdate, StandardResponse
from autosalone.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Ordini"])


@router.get("/", response_model=List[Order], summary="Ordini")
async def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    dealer_id: Optional[str] = Query(None),
    order_service: OrderService = Depends(get_order_service)
) -> List[Order]:
    return await order_service.list_orders(
        status=order_status.value if order_status else None,
        dealer_id=dealer_id
    )


@router.get("/{order_id}", response_model=Order, summary="Dettaglio ordine")
async def get_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> Order:
    return await order_service.get_order(order_id)


@router.post(
    "/",
    response_model=Order,
    status_code=status.HTTP_201_CREATED,
    summary="Crea ordine da prenotazione",
    description="Trasforma la prenotazione del veicolo in ordine."
)
async def create_order(
    request: OrderCreate,
    order_service: OrderService = Depends(get_order_service)
) -> Order:
    return await order_service.create_order_from_vehicle(
        request.vehicle_id, request.customer_name, quote_id=request.quote_id
    )


@router.get("/{order_id}/details", response_model=OrderDetails, summary="Dettagli amministrativi")
async def get_order_details(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> OrderDetails:
    return await order_service.get_order_details(order_id)


@router.put("/{order_id}/details", response_model=OrderDetails, summary="Aggiorna dettagli")
async def update_order_details(
    order_id: str,
    updates: OrderDetailsUpdate,
    order_service: OrderService = Depends(get_order_service)
) -> OrderDetails:
    return await order_service.update_order_details(order_id, updates)


@router.post("/{order_id}/odl", response_model=OrderDetails, summary="Genera ODL")
async def generate_odl(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> OrderDetails:
    return await order_service.generate_odl(order_id)


@router.post("/{order_id}/deliver", response_model=Order, summary="Consegna ordine")
async def deliver_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> Order:
    """Richiede l'ODL generato. Il veicolo passa in Stock Dealer."""
    return await order_service.mark_order_delivered(order_id)


@router.post("/{order_id}/cancel", response_model=Order, summary="Annulla ordine")
async def cancel_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> Order:
    return await order_service.cancel_order(order_id)


@router.delete("/{order_id}", response_model=StandardResponse, summary="Elimina ordine")
async def delete_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service)
) -> StandardResponse:
    await order_service.delete_order(order_id)
    return StandardResponse(success=True, message="Ordine eliminato", data={"id": order_id})
