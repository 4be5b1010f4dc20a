"""
Order Service - Ordini e dettagli amministrativi
Autosalone - Gestione Stock e Prezzi

Un ordine nasce dalla trasformazione di una prenotazione. La consegna
richiede l'ODL (ordine di lavoro), che una volta generato non si annulla.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from autosalone.core.errors import InvalidStateError, NotFoundError
from autosalone.models.records import Order, OrderDetails, OrderStatus, STOCK_DEALER, VehicleStatus
from autosalone.models.requests import OrderDetailsUpdate
from autosalone.services.reservation_service import ReservationService
from autosalone.services.storage import ORDER_DETAILS, ORDERS, QUOTES, VEHICLES, Storage

logger = structlog.get_logger(__name__)

ODL_REQUIRED_MESSAGE = "È necessario generare l'ODL prima di poter consegnare l'ordine"


class OrderService:
    """
    Logica di business per gli ordini.

    I dettagli amministrativi condividono l'id dell'ordine e vengono creati
    alla prima modifica.
    """

    def __init__(self, storage: Storage, reservation_service: ReservationService):
        self.storage = storage
        self.reservation_service = reservation_service
        self.logger = logger.bind(service="OrderService")

    async def get_order(self, order_id: str) -> Order:
        raw = await self.storage.get_entity(ORDERS, order_id)
        if raw is None:
            raise NotFoundError(ORDERS, order_id, "Ordine non trovato")
        return Order(**raw)

    async def list_orders(self, status: Optional[str] = None, dealer_id: Optional[str] = None) -> List[Order]:
        orders = [Order(**raw) for raw in await self.storage.list_entities(ORDERS)]
        if status:
            orders = [o for o in orders if o.status == status]
        if dealer_id:
            orders = [o for o in orders if o.dealer_id == dealer_id]
        return sorted(orders, key=lambda o: o.order_date, reverse=True)

    async def create_order_from_vehicle(
        self,
        vehicle_id: str,
        customer_name: str,
        quote_id: Optional[str] = None
    ) -> Order:
        """Trasforma la prenotazione in ordine e registra l'ordine."""
        if quote_id and await self.storage.get_entity(QUOTES, quote_id) is None:
            raise NotFoundError(QUOTES, quote_id, "Preventivo non trovato")

        vehicle = await self.reservation_service.transform_to_order(vehicle_id)

        order_data = {
            "vehicle_id": vehicle.id,
            "dealer_id": vehicle.reserved_by,
            "quote_id": quote_id,
            "customer_name": customer_name,
            "status": OrderStatus.PROCESSING.value,
            "order_date": datetime.now().isoformat(),
            "price": vehicle.effective_price,
        }
        try:
            order = Order(**await self.storage.create_entity(ORDERS, order_data))
        except Exception as e:
            self.logger.error("❌ Creazione ordine fallita, ripristino prenotazione",
                              vehicle_id=vehicle_id, error=str(e))
            await self.storage.compare_and_set(
                VEHICLES, vehicle_id, "status", VehicleStatus.ORDERED.value,
                {"status": VehicleStatus.RESERVED.value}
            )
            raise

        self.logger.info("📦 Ordine creato",
                         order_id=order.id,
                         vehicle_id=vehicle_id,
                         dealer_id=order.dealer_id,
                         price=order.price)
        return order

    async def get_order_details(self, order_id: str) -> OrderDetails:
        await self.get_order(order_id)
        raw = await self.storage.get_entity(ORDER_DETAILS, order_id)
        if raw is None:
            return OrderDetails(id=order_id, order_id=order_id)
        return OrderDetails(**raw)

    async def generate_odl(self, order_id: str) -> OrderDetails:
        details = await self.get_order_details(order_id)
        if details.odl_generated:
            return details

        saved = await self._save_details(details, {"odl_generated": True})
        self.logger.info("🛠️ ODL generato", order_id=order_id)
        return saved

    async def update_order_details(self, order_id: str, updates: OrderDetailsUpdate) -> OrderDetails:
        details = await self.get_order_details(order_id)
        changes = updates.model_dump(mode="json", exclude_none=True)

        if details.odl_generated and changes.get("odl_generated") is False:
            raise InvalidStateError("L'ODL è già stato generato e non può essere annullato", order_id=order_id)

        saved = await self._save_details(details, changes)
        self.logger.info("✅ Dettagli ordine aggiornati", order_id=order_id, fields=sorted(changes))
        return saved

    async def mark_order_delivered(self, order_id: str) -> Order:
        """Consegna: ordine e veicolo passano a delivered, il veicolo va in Stock Dealer."""
        order = await self.get_order(order_id)
        details = await self.get_order_details(order_id)
        if not details.odl_generated:
            raise InvalidStateError(ODL_REQUIRED_MESSAGE, order_id=order_id)

        delivered = await self._transition(
            order_id,
            OrderStatus.PROCESSING,
            {"status": OrderStatus.DELIVERED.value, "delivery_date": datetime.now().isoformat()}
        )

        try:
            await self.reservation_service.mark_delivered(order.vehicle_id, location=STOCK_DEALER)
        except Exception as e:
            self.logger.error("❌ Consegna veicolo fallita, ripristino ordine",
                              order_id=order_id, vehicle_id=order.vehicle_id, error=str(e))
            await self.storage.compare_and_set(
                ORDERS, order_id, "status", OrderStatus.DELIVERED.value,
                {"status": OrderStatus.PROCESSING.value, "delivery_date": None}
            )
            raise

        self.logger.info("🚚 Ordine consegnato", order_id=order_id, vehicle_id=order.vehicle_id)
        return delivered

    async def cancel_order(self, order_id: str) -> Order:
        order = await self._transition(order_id, OrderStatus.PROCESSING, {"status": OrderStatus.CANCELLED.value})
        self.logger.info("🚫 Ordine annullato", order_id=order_id)
        return order

    async def delete_order(self, order_id: str) -> None:
        await self.storage.delete_entity(ORDERS, order_id)
        if await self.storage.get_entity(ORDER_DETAILS, order_id) is not None:
            await self.storage.delete_entity(ORDER_DETAILS, order_id)
        self.logger.info("🗑️ Ordine eliminato", order_id=order_id)

    # Helper Methods
    async def _save_details(self, details: OrderDetails, changes: Dict[str, Any]) -> OrderDetails:
        payload = {**details.model_dump(mode="json"), **changes, "updated_at": datetime.now().isoformat()}

        if await self.storage.get_entity(ORDER_DETAILS, details.id) is None:
            return OrderDetails(**await self.storage.create_entity(ORDER_DETAILS, payload))

        # odl_generated non deve cambiare tra lettura e scrittura
        result = await self.storage.compare_and_set(
            ORDER_DETAILS, details.id, "odl_generated", details.odl_generated, payload
        )
        if result is None:
            raise InvalidStateError("Dettagli ordine modificati nel frattempo, riprovare", order_id=details.order_id)
        return OrderDetails(**result)

    async def _transition(self, order_id: str, expected: OrderStatus, updates: Dict[str, Any]) -> Order:
        result = await self.storage.compare_and_set(ORDERS, order_id, "status", expected.value, updates)
        if result is None:
            raise InvalidStateError(
                f"L'ordine non è nello stato '{expected.value}'",
                order_id=order_id,
                expected=expected.value
            )
        return Order(**result)
