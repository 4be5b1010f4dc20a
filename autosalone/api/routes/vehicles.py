"""
Vehicle API Routes - Inventario e prenotazioni
Autosalone - Gestione Stock e Prezzi

REST-API per l'inventario veicoli e il ciclo di vita della prenotazione.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from autosalone.core.dependencies import get_reservation_service, get_vehicle_service
from autosalone.models.records import Vehicle, VehicleStatus
from autosalone.models.requests import (
    ReservationCancellation, ReservationRequest, StandardResponse,
    VehicleCreate, VehicleFilter, VehicleUpdate
)
from autosalone.services.reservation_service import ReservationExpiration, ReservationService
from autosalone.services.vehicle_service import VehicleService

router = APIRouter(prefix="/vehicles", tags=["Veicoli"])


@router.get(
    "/",
    response_model=List[Vehicle],
    summary="Veicoli in inventario",
    description="Elenco filtrato dei veicoli."
)
async def list_vehicles(
    models: List[str] = Query([], description="Modelli"),
    trims: List[str] = Query([], description="Allestimenti"),
    fuel_types: List[str] = Query([], description="Alimentazioni"),
    colors: List[str] = Query([], description="Colori"),
    locations: List[str] = Query([], description="Ubicazioni"),
    vehicle_status: List[VehicleStatus] = Query([], alias="status", description="Stati"),
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    search: Optional[str] = Query(None, description="Ricerca su modello, allestimento, telaio"),
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> List[Vehicle]:
    """
    **Filtri:**
    - liste di modelli, allestimenti, alimentazioni, colori, ubicazioni, stati
    - `min_price` / `max_price`: range sul prezzo effettivo
    - `search`: testo libero
    """
    price_range = None
    if min_price is not None or max_price is not None:
        price_range = (min_price or 0, max_price if max_price is not None else 10 ** 9)

    vehicle_filter = VehicleFilter(
        models=models,
        trims=trims,
        fuel_types=fuel_types,
        colors=colors,
        locations=locations,
        status=vehicle_status,
        price_range=price_range,
        search_text=search
    )
    return await vehicle_service.list_vehicles(vehicle_filter)


@router.get("/price-range", summary="Prezzo minimo e massimo")
async def get_price_range(
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Dict[str, int]:
    low, high = await vehicle_service.price_range()
    return {"min": low, "max": high}


@router.get("/dealer-stock/{dealer_name}", summary="Valore stock del dealer")
async def get_dealer_stock_value(
    dealer_name: str,
    credit_limit: Optional[int] = Query(None, ge=0, description="Plafond del dealer"),
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Dict[str, Any]:
    return await vehicle_service.dealer_stock_value(dealer_name, credit_limit)


@router.get(
    "/reservations/expired",
    response_model=List[Vehicle],
    summary="Prenotazioni scadute"
)
async def list_expired_reservations(
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> List[Vehicle]:
    return await reservation_service.list_expired_reservations()


@router.get("/{vehicle_id}", response_model=Vehicle, summary="Dettaglio veicolo")
async def get_vehicle(
    vehicle_id: str,
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Vehicle:
    return await vehicle_service.get_vehicle(vehicle_id)


@router.post(
    "/",
    response_model=Vehicle,
    status_code=status.HTTP_201_CREATED,
    summary="Crea veicolo",
    description="Per lo Stock Virtuale basta il modello: configurazione e prezzo arrivano con la prenotazione."
)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Vehicle:
    return await vehicle_service.create_vehicle(vehicle_data)


@router.put("/{vehicle_id}", response_model=Vehicle, summary="Aggiorna veicolo")
async def update_vehicle(
    vehicle_id: str,
    updates: VehicleUpdate,
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Vehicle:
    return await vehicle_service.update_vehicle(vehicle_id, updates)


@router.delete("/{vehicle_id}", response_model=StandardResponse, summary="Elimina veicolo")
async def delete_vehicle(
    vehicle_id: str,
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> StandardResponse:
    await vehicle_service.delete_vehicle(vehicle_id)
    return StandardResponse(success=True, message="Veicolo eliminato", data={"id": vehicle_id})


@router.post(
    "/{vehicle_id}/duplicate",
    response_model=Vehicle,
    status_code=status.HTTP_201_CREATED,
    summary="Duplica veicolo"
)
async def duplicate_vehicle(
    vehicle_id: str,
    vehicle_service: VehicleService = Depends(get_vehicle_service)
) -> Vehicle:
    return await vehicle_service.duplicate_vehicle(vehicle_id)


# Ciclo di vita della prenotazione
@router.post("/{vehicle_id}/reserve", response_model=Vehicle, summary="Prenota veicolo")
async def reserve_vehicle(
    vehicle_id: str,
    request: ReservationRequest,
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> Vehicle:
    """
    Prenota un veicolo disponibile.

    **Stock Virtuale:** `virtual_config` obbligatoria; il prezzo viene calcolato
    dal catalogo e congelato nella prenotazione.
    """
    return await reservation_service.reserve(
        vehicle_id,
        dealer_ref=request.dealer_ref,
        accessories=request.accessories,
        virtual_config=request.virtual_config,
        destination=request.destination
    )


@router.post("/{vehicle_id}/cancel-reservation", response_model=Vehicle, summary="Annulla prenotazione")
async def cancel_reservation(
    vehicle_id: str,
    request: ReservationCancellation,
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> Vehicle:
    """Il dealer deve indicare il motivo; per l'admin è facoltativo."""
    return await reservation_service.cancel_reservation(vehicle_id, request.actor_role, request.reason)


@router.post("/{vehicle_id}/sold", response_model=Vehicle, summary="Segna come venduto")
async def mark_vehicle_sold(
    vehicle_id: str,
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> Vehicle:
    return await reservation_service.mark_sold(vehicle_id)


@router.get(
    "/{vehicle_id}/expiration",
    response_model=ReservationExpiration,
    summary="Scadenza prenotazione"
)
async def get_reservation_expiration(
    vehicle_id: str,
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> ReservationExpiration:
    return await reservation_service.get_expiration(vehicle_id)
