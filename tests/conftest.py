# tests/conftest.py
import os
import random
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from autosalone.models.records import STOCK_VIRTUALE
from autosalone.models.requests import VehicleCreate
from autosalone.services.catalog_service import CatalogService
from autosalone.services.local_storage import LocalStorage
from autosalone.services.order_service import OrderService
from autosalone.services.quote_service import QuoteService
from autosalone.services.reservation_service import ReservationService
from autosalone.services.vehicle_service import VehicleService

FIXED_NOW = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Orologio controllabile per scadenze e timestamp di prenotazione"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Configura l'ambiente di test"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["STORAGE_BACKEND"] = "local"
    os.environ["SEED_DEMO_DATA"] = "true"
    os.environ["PRICING_STRICT"] = "false"
    os.environ.pop("LOCAL_STORAGE_PATH", None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    """Storage locale con catalogo demo"""
    return LocalStorage(seed_demo_data=True)


@pytest.fixture
def catalog_service(storage):
    return CatalogService(storage)


@pytest.fixture
def vehicle_service(storage):
    return VehicleService(storage, rng=random.Random(42))


@pytest.fixture
def reservation_service(storage, vehicle_service, catalog_service, clock):
    return ReservationService(
        storage=storage,
        vehicle_service=vehicle_service,
        catalog_service=catalog_service,
        window_hours=48,
        clock=clock
    )


@pytest.fixture
def quote_service(storage, vehicle_service, catalog_service):
    return QuoteService(storage=storage, vehicle_service=vehicle_service, catalog_service=catalog_service)


@pytest.fixture
def order_service(storage, reservation_service):
    return OrderService(storage=storage, reservation_service=reservation_service)


@pytest_asyncio.fixture
async def cmc_vehicle(vehicle_service):
    """Veicolo fisico disponibile in Stock CMC"""
    return await vehicle_service.create_vehicle(VehicleCreate(
        model="DR 3.0",
        trim="Base",
        fuel_type="Benzina",
        exterior_color="Bianco (pastello)",
        transmission="Manuale",
        price=19800,
        telaio="LVVDB11B0PD000099"
    ))


@pytest_asyncio.fixture
async def virtual_vehicle(vehicle_service):
    """Veicolo dello Stock Virtuale proveniente dalla Cina"""
    return await vehicle_service.create_vehicle(VehicleCreate(
        model="DR 5.0",
        location=STOCK_VIRTUALE,
        original_stock="Cina"
    ))
