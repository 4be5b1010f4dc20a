"""
Pydantic Models per Veicoli, Preventivi, Contratti e Ordini
Autosalone - Gestione Stock e Prezzi

Type-Safe Data Models per la logica di business e le API.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Enums per valori costanti
class VehicleStatus(str, Enum):
    """Stati del veicolo."""
    AVAILABLE = "available"
    RESERVED = "reserved"
    ORDERED = "ordered"
    SOLD = "sold"
    DELIVERED = "delivered"


class QuoteStatus(str, Enum):
    """Stati del preventivo."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


class OrderStatus(str, Enum):
    PROCESSING = "processing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class FundingType(str, Enum):
    FACTOR = "Factor"
    CAPTIVE = "Captive"
    ACQUISTO_DIRETTO = "Acquisto Diretto"


class OriginalStock(str, Enum):
    """Provenienza dello stock virtuale."""
    CINA = "Cina"
    GERMANIA = "Germania"


class ActorRole(str, Enum):
    ADMIN = "admin"
    DEALER = "dealer"


# Location speciali
STOCK_CMC = "Stock CMC"
STOCK_VIRTUALE = "Stock Virtuale"
STOCK_DEALER = "Stock Dealer"


class RecordModel(BaseModel):
    """Base Model per i record persistiti."""
    model_config = ConfigDict(
        use_enum_values=True,
        validate_assignment=True
    )


# Veicoli
class VirtualConfig(BaseModel):
    """Configurazione scelta alla prenotazione di un veicolo dello Stock Virtuale."""
    trim: str
    fuel_type: str
    exterior_color: str
    transmission: str
    accessories: List[str] = Field(default_factory=list)
    price: int = Field(..., ge=0)


class Vehicle(RecordModel):
    id: str
    model: str
    trim: str = ""
    fuel_type: str = ""
    exterior_color: str = ""
    transmission: str = ""
    accessories: List[str] = Field(default_factory=list)
    price: int = Field(0, ge=0)
    location: str = STOCK_CMC
    image_url: Optional[str] = None
    status: VehicleStatus = VehicleStatus.AVAILABLE
    date_added: date = Field(default_factory=date.today)
    telaio: str = Field("", description="Numero di telaio")
    previous_chassis: Optional[str] = None
    original_stock: Optional[OriginalStock] = None
    year: Optional[str] = None
    reserved_by: Optional[str] = None
    reserved_accessories: List[str] = Field(default_factory=list)
    reservation_timestamp: Optional[datetime] = None
    reservation_destination: Optional[str] = None
    estimated_arrival_days: Optional[int] = None
    virtual_config: Optional[VirtualConfig] = None

    @property
    def is_virtual(self) -> bool:
        return self.location == STOCK_VIRTUALE

    @property
    def effective_price(self) -> int:
        """Prezzo congelato: snapshot virtuale se presente, altrimenti prezzo di listino."""
        if self.virtual_config is not None:
            return self.virtual_config.price
        return self.price


# Preventivi
class Quote(RecordModel):
    id: str
    vehicle_id: Optional[str] = None
    dealer_id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str = ""
    base_price: int = Field(0, description="Veicolo + accessori, IVA 22% inclusa")
    price: int = Field(0, description="Prezzo base con aliquota IVA applicata")
    discount: int = 0
    final_price: int = 0
    status: QuoteStatus = QuoteStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    rejection_reason: Optional[str] = None
    has_trade_in: bool = False
    trade_in_brand: Optional[str] = None
    trade_in_model: Optional[str] = None
    trade_in_year: Optional[str] = None
    trade_in_km: Optional[int] = None
    trade_in_value: int = 0
    reduced_vat: bool = False
    vat_rate: int = 22
    accessories: List[str] = Field(default_factory=list)
    accessory_price: int = 0
    notes: Optional[str] = None
    manual_entry: bool = False
    license_plate_bonus: int = 0
    trade_in_bonus: int = 0
    safety_kit: int = 0
    trade_in_handling_fee: int = 0
    road_preparation_fee: int = 0


class Contract(RecordModel):
    """Contratto generato dalla conversione di un preventivo."""
    id: str
    dealer_id: str
    vehicle_id: Optional[str] = None
    quote_id: str
    contract_date: datetime = Field(default_factory=datetime.now)
    contractor: Dict[str, Any] = Field(default_factory=dict)
    price: int
    discount: int = 0
    final_price: int
    status: str = "attivo"


# Ordini
class Order(RecordModel):
    id: str
    vehicle_id: str
    dealer_id: str
    quote_id: Optional[str] = None
    customer_name: str
    status: OrderStatus = OrderStatus.PROCESSING
    order_date: datetime = Field(default_factory=datetime.now)
    delivery_date: Optional[datetime] = None
    price: int = 0


class OrderDetails(RecordModel):
    """Dettagli amministrativi dell'ordine. `odl_generated` non torna mai a False."""
    id: str
    order_id: str
    previous_chassis: Optional[str] = None
    chassis: Optional[str] = None
    is_licensable: bool = False
    has_proforma: bool = False
    is_paid: bool = False
    payment_date: Optional[date] = None
    is_invoiced: bool = False
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    has_conformity: bool = False
    funding_type: Optional[FundingType] = None
    transport_costs: int = 0
    restoration_costs: int = 0
    odl_generated: bool = False
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
