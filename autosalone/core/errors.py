"""
Domain Errors - Tassonomia degli errori
Autosalone - Gestione Stock e Prezzi

Tutti gli errori di dominio sono sincroni e portano un messaggio leggibile.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base per tutti gli errori di dominio."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class InvalidStateError(DomainError):
    """Transizione di stato non consentita (o compare-and-set fallito)."""


class NotFoundError(DomainError):
    """Id di veicolo, preventivo, ordine o entità di catalogo inesistente."""

    def __init__(self, catalog: str, entity_id: Optional[str], message: Optional[str] = None):
        super().__init__(
            message or f"Elemento '{entity_id}' non trovato in '{catalog}'",
            catalog=catalog,
            entity_id=entity_id,
        )
        self.catalog = catalog
        self.entity_id = entity_id


class ValidationError(DomainError):
    """Campo commerciale obbligatorio mancante o non valido."""

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        super().__init__(message, field=field, **context)
        self.field = field


class StorageError(DomainError):
    """Errore del backend di persistenza."""
