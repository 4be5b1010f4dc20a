"""
Request Models - Validazione degli input
Autosalone - Gestione Stock e Prezzi

Schemi separati per ruolo (admin / dealer) invece di mutare la forma del form a runtime.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from autosalone.models.records import (
    ActorRole, FundingType, OriginalStock, VehicleStatus, STOCK_CMC
)

DEFAULT_ROAD_PREPARATION_FEE = 400


# Configurazione e prezzi
class ConfigurationRequest(BaseModel):
    """Configurazione di catalogo espressa tramite id."""
    model_id: str = Field(..., min_length=1)
    trim_id: Optional[str] = None
    fuel_type_id: Optional[str] = None
    color_id: Optional[str] = None
    transmission_id: Optional[str] = None
    accessory_ids: List[str] = Field(default_factory=list)


class VirtualConfigRequest(BaseModel):
    """Scelte dell'utente alla prenotazione di un veicolo virtuale."""
    trim_id: str = Field(..., min_length=1)
    fuel_type_id: str = Field(..., min_length=1)
    color_id: str = Field(..., min_length=1)
    transmission_id: str = Field(..., min_length=1)
    accessory_ids: List[str] = Field(default_factory=list)


class PriceAdjustments(BaseModel):
    """Voci commerciali applicate al prezzo base."""
    discount: int = Field(0, ge=0)
    license_plate_bonus: int = Field(0, ge=0, description="Premio Targa")
    trade_in_bonus: int = Field(0, ge=0, description="Premio Permuta")
    safety_kit: int = Field(0, ge=0, description="Kit Sicurezza")
    road_preparation_fee: int = Field(0, ge=0, description="Messa su strada")
    trade_in_handling_fee: int = Field(0, ge=0, description="Gestione Usato")
    trade_in_value: int = Field(0, ge=0, description="Valore permuta, esente IVA")
    reduced_vat: bool = False


class FinalPriceRequest(BaseModel):
    base_price: int = Field(..., ge=0)
    adjustments: PriceAdjustments = Field(default_factory=PriceAdjustments)
    mode: Literal["quote", "contract"] = "quote"


# Prenotazioni
class ReservationRequest(BaseModel):
    dealer_ref: str = Field(..., min_length=1, description="Dealer che prenota")
    accessories: List[str] = Field(default_factory=list)
    virtual_config: Optional[VirtualConfigRequest] = None
    destination: Optional[str] = Field(None, max_length=500)


class AdminCancellationRequest(BaseModel):
    """Annullamento da admin: motivo facoltativo."""
    reason: Optional[str] = Field(None, max_length=1000)


class DealerCancellationRequest(BaseModel):
    """Annullamento da dealer: motivo obbligatorio."""
    reason: str = Field(..., max_length=1000)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError("Il motivo dell'annullamento è obbligatorio")
        return v.strip()


class ReservationCancellation(BaseModel):
    """Body HTTP dell'annullamento: il ruolo è esplicito, il motivo viene validato dal servizio."""
    actor_role: ActorRole
    reason: Optional[str] = None


CANCELLATION_SCHEMAS: Dict[ActorRole, Type[BaseModel]] = {
    ActorRole.ADMIN: AdminCancellationRequest,
    ActorRole.DEALER: DealerCancellationRequest,
}


def cancellation_schema_for(role: Union[ActorRole, str]) -> Type[BaseModel]:
    """Seleziona lo schema di annullamento in base al ruolo esplicito."""
    return CANCELLATION_SCHEMAS[ActorRole(role)]


# Preventivi
class QuoteBase(BaseModel):
    dealer_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: str = ""
    discount: int = Field(0, ge=0)
    reduced_vat: bool = False
    has_trade_in: bool = False
    trade_in_brand: Optional[str] = None
    trade_in_model: Optional[str] = None
    trade_in_year: Optional[str] = None
    trade_in_km: Optional[int] = Field(None, ge=0)
    trade_in_value: int = Field(0, ge=0)
    license_plate_bonus: int = Field(0, ge=0)
    trade_in_bonus: int = Field(0, ge=0)
    safety_kit: int = Field(0, ge=0)
    trade_in_handling_fee: int = Field(0, ge=0)
    road_preparation_fee: int = Field(DEFAULT_ROAD_PREPARATION_FEE, ge=0)
    accessory_ids: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('customer_email', mode='before')
    @classmethod
    def blank_email_as_none(cls, v):
        """Stringa vuota dal form = email non indicata."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class QuoteCreate(QuoteBase):
    vehicle_id: str = Field(..., min_length=1)


class ManualQuoteCreate(QuoteBase):
    """Preventivo manuale da configurazione di catalogo, senza veicolo in stock."""
    configuration: ConfigurationRequest


class QuoteRejection(BaseModel):
    reason: str = Field(..., max_length=1000)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError('Il motivo del rifiuto è obbligatorio')
        return v.strip()


class ContractRequest(BaseModel):
    """Dati del contraente per la conversione preventivo → contratto."""
    contractor_type: Literal["personaFisica", "personaGiuridica"] = "personaFisica"
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    company_name: Optional[str] = None
    fiscal_code: str = Field(..., min_length=1)
    birth_date: str = Field(..., min_length=1)
    birth_place: str = Field(..., min_length=1)
    birth_province: str = Field(..., min_length=1)
    legal_rep_first_name: Optional[str] = None
    legal_rep_last_name: Optional[str] = None
    legal_rep_fiscal_code: Optional[str] = None

    @model_validator(mode='after')
    def validate_company_fields(self):
        """Per le persone giuridiche servono ragione sociale e rappresentante legale."""
        if self.contractor_type == "personaGiuridica":
            required = [
                self.company_name,
                self.legal_rep_first_name,
                self.legal_rep_last_name,
                self.legal_rep_fiscal_code,
            ]
            if not all(required):
                raise ValueError(
                    "Per le persone giuridiche è necessario specificare la ragione sociale "
                    "e i dati del rappresentante legale"
                )
        return self


# Veicoli
class VehicleCreate(BaseModel):
    """Nuovo veicolo: lo stato iniziale è sempre "available"."""
    model: str = Field(..., min_length=1)
    trim: str = ""
    fuel_type: str = ""
    exterior_color: str = ""
    transmission: str = ""
    accessories: List[str] = Field(default_factory=list)
    price: int = Field(0, ge=0)
    location: str = STOCK_CMC
    image_url: Optional[str] = None
    date_added: Optional[date] = None
    telaio: str = ""
    previous_chassis: Optional[str] = None
    original_stock: Optional[OriginalStock] = None
    year: Optional[str] = None
    estimated_arrival_days: Optional[int] = Field(None, gt=0)


class VehicleUpdate(BaseModel):
    """Aggiornamento veicolo - tutti i campi opzionali. Lo stato si cambia solo tramite il ciclo di prenotazione."""
    model: Optional[str] = None
    trim: Optional[str] = None
    fuel_type: Optional[str] = None
    exterior_color: Optional[str] = None
    transmission: Optional[str] = None
    accessories: Optional[List[str]] = None
    price: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    image_url: Optional[str] = None
    telaio: Optional[str] = None
    previous_chassis: Optional[str] = None
    original_stock: Optional[OriginalStock] = None
    year: Optional[str] = None


class VehicleFilter(BaseModel):
    models: List[str] = Field(default_factory=list)
    trims: List[str] = Field(default_factory=list)
    fuel_types: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    status: List[VehicleStatus] = Field(default_factory=list)
    price_range: Optional[Tuple[int, int]] = None
    search_text: Optional[str] = None


# Ordini
class OrderCreate(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    quote_id: Optional[str] = None


class OrderDetailsUpdate(BaseModel):
    previous_chassis: Optional[str] = None
    chassis: Optional[str] = None
    is_licensable: Optional[bool] = None
    has_proforma: Optional[bool] = None
    is_paid: Optional[bool] = None
    payment_date: Optional[date] = None
    is_invoiced: Optional[bool] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    has_conformity: Optional[bool] = None
    funding_type: Optional[FundingType] = None
    transport_costs: Optional[int] = Field(None, ge=0)
    restoration_costs: Optional[int] = Field(None, ge=0)
    odl_generated: Optional[bool] = None
    notes: Optional[str] = None


# Response Models
class StandardResponse(BaseModel):
    """Standard API Response Model."""
    success: bool
    message: str
    data: Optional[Any] = None
    errors: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=datetime.now)
