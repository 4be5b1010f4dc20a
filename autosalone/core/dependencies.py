"""
Dependencies Configuration - Service Injection per FastAPI
Autosalone - Gestione Stock e Prezzi

Wiring centrale dei servizi con pattern Singleton. Il backend di storage
viene scelto una sola volta qui e iniettato in tutti i servizi.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Optional

import structlog

from autosalone.core.errors import StorageError
from autosalone.services.catalog_service import CatalogService
from autosalone.services.order_service import OrderService
from autosalone.services.quote_service import QuoteService
from autosalone.services.reservation_service import DEFAULT_RESERVATION_WINDOW_HOURS, ReservationService
from autosalone.services.storage import Storage
from autosalone.services.vehicle_service import VehicleService

# Logging strutturato
logger = structlog.get_logger(__name__)

STORAGE_BACKENDS = ("local", "bigquery")

# Istanze globali (Singleton Pattern)
_storage: Optional[Storage] = None
_catalog_service: Optional[CatalogService] = None
_vehicle_service: Optional[VehicleService] = None
_reservation_service: Optional[ReservationService] = None
_quote_service: Optional[QuoteService] = None
_order_service: Optional[OrderService] = None


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


# Configuration & Environment
def get_environment_config() -> dict:
    """
    Configurazione corrente da variabili d'ambiente.

    Returns:
        dict: Impostazioni dell'ambiente
    """
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'environment': environment,
        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
        'storage_backend': os.getenv('STORAGE_BACKEND', 'local').lower(),
        'local_storage_path': os.getenv('LOCAL_STORAGE_PATH'),
        'seed_demo_data': _env_flag('SEED_DEMO_DATA', 'true' if environment == 'development' else 'false'),
        'google_cloud_project': os.getenv('GOOGLE_CLOUD_PROJECT'),
        'bigquery_dataset': os.getenv('BIGQUERY_DATASET'),
        'reservation_window_hours': float(
            os.getenv('RESERVATION_WINDOW_HOURS', DEFAULT_RESERVATION_WINDOW_HOURS)
        ),
        'pricing_strict': _env_flag('PRICING_STRICT'),
        'api_host': os.getenv('API_HOST', '0.0.0.0'),
        'api_port': int(os.getenv('API_PORT', 8080))
    }


def create_storage(config: Dict[str, Any]) -> Storage:
    """Istanzia il backend richiesto. Nessun fallback implicito."""
    backend = config['storage_backend']

    if backend == 'local':
        from autosalone.services.local_storage import LocalStorage
        return LocalStorage(
            path=config.get('local_storage_path'),
            seed_demo_data=config.get('seed_demo_data', False)
        )

    if backend == 'bigquery':
        from autosalone.services.bigquery_storage import BigQueryStorage
        return BigQueryStorage(
            project_id=config.get('google_cloud_project'),
            dataset_name=config.get('bigquery_dataset')
        )

    raise StorageError(
        f"STORAGE_BACKEND non valido: {backend}",
        allowed=list(STORAGE_BACKENDS)
    )


@lru_cache()
def get_storage() -> Storage:
    """
    Singleton Storage con Lazy Loading.

    Returns:
        Storage: Backend di persistenza condiviso
    """
    global _storage

    if _storage is None:
        config = get_environment_config()
        try:
            _storage = create_storage(config)
            logger.info("✅ Storage inizializzato", backend=_storage.backend_name)

        except Exception as e:
            logger.error("❌ Inizializzazione storage fallita",
                         backend=config['storage_backend'],
                         error=str(e))
            raise

    return _storage


@lru_cache()
def get_catalog_service() -> CatalogService:
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService(get_storage())
        logger.info("✅ CatalogService inizializzato (Singleton)")
    return _catalog_service


@lru_cache()
def get_vehicle_service() -> VehicleService:
    """
    Singleton Vehicle Service con dipendenza dallo storage.

    Returns:
        VehicleService: Logica di business per l'inventario
    """
    global _vehicle_service

    if _vehicle_service is None:
        try:
            _vehicle_service = VehicleService(storage=get_storage())
            logger.info("✅ Vehicle Service inizializzato")

        except Exception as e:
            logger.error("❌ Inizializzazione Vehicle Service fallita", error=str(e))
            raise

    return _vehicle_service


@lru_cache()
def get_reservation_service() -> ReservationService:
    global _reservation_service

    if _reservation_service is None:
        config = get_environment_config()
        _reservation_service = ReservationService(
            storage=get_storage(),
            vehicle_service=get_vehicle_service(),
            catalog_service=get_catalog_service(),
            window_hours=config['reservation_window_hours'],
            strict_pricing=config['pricing_strict']
        )
        logger.info("✅ Reservation Service inizializzato",
                    window_hours=config['reservation_window_hours'],
                    strict_pricing=config['pricing_strict'])

    return _reservation_service


@lru_cache()
def get_quote_service() -> QuoteService:
    global _quote_service

    if _quote_service is None:
        _quote_service = QuoteService(
            storage=get_storage(),
            vehicle_service=get_vehicle_service(),
            catalog_service=get_catalog_service(),
            strict_pricing=get_environment_config()['pricing_strict']
        )
        logger.info("✅ Quote Service inizializzato")

    return _quote_service


@lru_cache()
def get_order_service() -> OrderService:
    global _order_service

    if _order_service is None:
        _order_service = OrderService(storage=get_storage(), reservation_service=get_reservation_service())
        logger.info("✅ Order Service inizializzato")

    return _order_service


# Health Check per tutti i servizi
async def check_all_services_health() -> dict:
    """
    Health check di storage e inventario.

    Returns:
        dict: Stato di tutti i servizi
    """
    health_status = {
        'overall_status': 'healthy',
        'services': {}
    }

    try:
        storage_health = await get_storage().health_check()
        health_status['services']['storage'] = storage_health

        if storage_health['status'] != 'healthy':
            health_status['overall_status'] = 'degraded'

    except Exception as e:
        health_status['services']['storage'] = {'status': 'unhealthy', 'error': str(e)}
        health_status['overall_status'] = 'unhealthy'

    try:
        vehicle_health = await get_vehicle_service().health_check()
        health_status['services']['vehicle'] = vehicle_health

        if vehicle_health['status'] != 'healthy':
            health_status['overall_status'] = 'degraded'

    except Exception as e:
        health_status['services']['vehicle'] = {'status': 'unhealthy', 'error': str(e)}
        health_status['overall_status'] = 'unhealthy'

    return health_status


# Startup & Shutdown Hooks
async def startup_services():
    """Inizializza i servizi all'avvio dell'applicazione."""
    try:
        logger.info("🚀 Inizializzazione servizi...")

        config = get_environment_config()
        logger.info("📋 Configurazione ambiente", **config)

        get_order_service()
        get_quote_service()

        health = await check_all_services_health()
        logger.info("🏥 Health check di avvio", **health)

        if health['overall_status'] == 'unhealthy':
            logger.error("❌ Servizi non sani - l'applicazione potrebbe non funzionare correttamente")

        logger.info("✅ Servizi inizializzati")

    except Exception as e:
        logger.error("💥 Errore critico all'avvio dei servizi", error=str(e))
        raise


async def shutdown_services():
    """Chiude il client BigQuery, se presente."""
    try:
        logger.info("🛑 Arresto servizi...")

        client = getattr(_storage, 'client', None)
        if client is not None:
            client.close()

        logger.info("✅ Servizi arrestati")

    except Exception as e:
        logger.error("❌ Errore durante l'arresto dei servizi", error=str(e))


# Development Utilities
def reset_services():
    """Azzera tutte le istanze (per i test)."""
    global _storage, _catalog_service, _vehicle_service, _reservation_service, _quote_service, _order_service

    _storage = None
    _catalog_service = None
    _vehicle_service = None
    _reservation_service = None
    _quote_service = None
    _order_service = None

    get_storage.cache_clear()
    get_catalog_service.cache_clear()
    get_vehicle_service.cache_clear()
    get_reservation_service.cache_clear()
    get_quote_service.cache_clear()
    get_order_service.cache_clear()


def get_service_info() -> dict:
    """
    Informazioni sui servizi per il debugging.

    Returns:
        dict: Stato di inizializzazione dei servizi
    """
    services = {
        'storage': (_storage, get_storage),
        'vehicle_service': (_vehicle_service, get_vehicle_service),
        'reservation_service': (_reservation_service, get_reservation_service),
        'quote_service': (_quote_service, get_quote_service),
        'order_service': (_order_service, get_order_service),
    }
    info = {
        name: {
            'initialized': instance is not None,
            'class': str(type(instance)) if instance else None,
            'cache_info': str(getter.cache_info())
        }
        for name, (instance, getter) in services.items()
    }
    info['environment'] = get_environment_config()
    return info
