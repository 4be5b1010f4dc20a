# autosalone/models/__init__.py
from .catalog import VehicleModel, VehicleTrim, FuelType, ExteriorColor, Transmission, Accessory
from .records import Vehicle, VirtualConfig, Quote, Contract, Order, OrderDetails

__all__ = [
    "VehicleModel",
    "VehicleTrim",
    "FuelType",
    "ExteriorColor",
    "Transmission",
    "Accessory",
    "Vehicle",
    "VirtualConfig",
    "Quote",
    "Contract",
    "Order",
    "OrderDetails"
]
