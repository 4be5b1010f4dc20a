"""
Catalog API Routes - Impostazioni di catalogo
Autosalone - Gestione Stock e Prezzi

CRUD su modelli, allestimenti, alimentazioni, colori, cambi e accessori,
più le viste di compatibilità per modello.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from autosalone.core.dependencies import get_catalog_service
from autosalone.models.catalog import Accessory, CatalogEntity
from autosalone.models.requests import StandardResponse
from autosalone.services.catalog_service import CatalogService

router = APIRouter(prefix="/catalog", tags=["Catalogo"])


@router.get(
    "/models/{model_id}/options",
    summary="Opzioni compatibili",
    description="Allestimenti, alimentazioni, colori e cambi compatibili con il modello."
)
async def get_compatible_options(
    model_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, List[Dict[str, Any]]]:
    options = await catalog_service.compatible_options(model_id)
    return {name: [entry.model_dump() for entry in entries] for name, entries in options.items()}


@router.get(
    "/models/{model_id}/accessories",
    response_model=List[Accessory],
    summary="Accessori compatibili"
)
async def get_compatible_accessories(
    model_id: str,
    trim_id: Optional[str] = Query(None, description="Allestimento scelto"),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> List[Accessory]:
    return await catalog_service.compatible_accessories(model_id, trim_id)


@router.get(
    "/{catalog}",
    summary="Voci di catalogo",
    description="Elenco delle voci in ordine di catalogo, oppure alfabetico."
)
async def list_entries(
    catalog: str,
    alphabetical: bool = Query(False, description="Ordina per nome"),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> List[Dict[str, Any]]:
    entries = await catalog_service.list_entries(catalog, alphabetical=alphabetical)
    return [entry.model_dump() for entry in entries]


@router.get("/{catalog}/{entry_id}", summary="Dettaglio voce di catalogo")
async def get_entry(
    catalog: str,
    entry_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    entry: CatalogEntity = await catalog_service.get_entry(catalog, entry_id)
    return entry.model_dump()


@router.post("/{catalog}", status_code=status.HTTP_201_CREATED, summary="Crea voce di catalogo")
async def create_entry(
    catalog: str,
    data: Dict[str, Any] = Body(...),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """
    Crea una voce nel catalogo indicato.

    **Cataloghi:** models, trims, fuelTypes, colors, transmissions, accessories.
    Per gli accessori `price_without_vat` viene ricalcolato dal prezzo IVA inclusa.
    """
    entry = await catalog_service.create_entry(catalog, data)
    return entry.model_dump()


@router.put("/{catalog}/{entry_id}", summary="Aggiorna voce di catalogo")
async def update_entry(
    catalog: str,
    entry_id: str,
    updates: Dict[str, Any] = Body(...),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    entry = await catalog_service.update_entry(catalog, entry_id, updates)
    return entry.model_dump()


@router.delete("/{catalog}/{entry_id}", response_model=StandardResponse, summary="Elimina voce di catalogo")
async def delete_entry(
    catalog: str,
    entry_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> StandardResponse:
    await catalog_service.delete_entry(catalog, entry_id)
    return StandardResponse(
        success=True,
        message="Voce di catalogo eliminata",
        data={"catalog": catalog, "id": entry_id}
    )
