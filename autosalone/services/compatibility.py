"""
Compatibilità del catalogo
Autosalone - Gestione Stock e Prezzi

Predicati puri: una lista di compatibilità vuota vale "compatibile con tutto".
L'ordine del catalogo viene sempre preservato; solo le viste alfabetiche
ordinano esplicitamente per nome.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

from autosalone.models.catalog import CatalogEntity

T = TypeVar("T", bound=CatalogEntity)


def _matches(allowed: Sequence[str], value: str) -> bool:
    return not allowed or value in allowed


def is_compatible(entity: CatalogEntity, model_id: str, trim_id: Optional[str] = None) -> bool:
    """
    Verifica la compatibilità di una voce di catalogo con modello (e allestimento).

    Il vincolo sugli allestimenti si applica solo se `trim_id` è indicato e
    l'entità dichiara `compatible_trims` (accessori).
    """
    if not _matches(getattr(entity, "compatible_models", []), model_id):
        return False

    if trim_id is not None and hasattr(entity, "compatible_trims"):
        return _matches(entity.compatible_trims, trim_id)

    return True


def filter_compatible(entities: Iterable[T], model_id: str, trim_id: Optional[str] = None) -> List[T]:
    return [e for e in entities if is_compatible(e, model_id, trim_id)]


def sort_by_name(entities: Iterable[T]) -> List[T]:
    return sorted(entities, key=lambda e: e.name.lower())
