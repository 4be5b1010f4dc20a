"""
FastAPI Main Application
Autosalone - Gestione Stock e Prezzi

Superficie HTTP sottile sopra i servizi di prezzo, catalogo e prenotazione.
"""

import os
import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog
from structlog import configure, get_logger
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import filter_by_level, add_logger_name, add_log_level

from autosalone import __version__
from autosalone.core.dependencies import (
    check_all_services_health,
    get_environment_config,
    get_service_info,
    reset_services,
    shutdown_services,
    startup_services
)
from autosalone.core.errors import (
    DomainError, InvalidStateError, NotFoundError, StorageError, ValidationError
)

from autosalone.api.routes.catalog import router as catalog_router
from autosalone.api.routes.pricing import router as pricing_router
from autosalone.api.routes.vehicles import router as vehicles_router
from autosalone.api.routes.quotes import router as quotes_router
from autosalone.api.routes.orders import router as orders_router

APP_NAME = "Autosalone"

# Codici HTTP per gli errori di dominio (la sottoclasse più specifica vince)
DOMAIN_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


# Configurazione logging strutturato
def configure_logging():
    """Configura il logging strutturato dell'applicazione."""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    configure(
        processors=[
            filter_by_level,
            add_logger_name,
            add_log_level,
            TimeStamper(fmt="ISO", utc=True),
            JSONRenderer() if os.getenv('ENVIRONMENT') == 'production' else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True
    )

    logging.basicConfig(level=getattr(logging, log_level, logging.INFO))

    return get_logger(__name__)


# Lifecycle Management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Ciclo di vita dell'applicazione.

    Startup: inizializzazione servizi e health check.
    Shutdown: chiusura dei client esterni.
    """
    logger = configure_logging()

    logger.info("🚀 Autosalone in avvio...")

    try:
        await startup_services()
        logger.info("✅ Applicazione avviata")

    except Exception as e:
        logger.error("💥 Errore critico all'avvio", error=str(e))
        raise

    yield

    logger.info("🛑 Autosalone in arresto...")

    try:
        await shutdown_services()
        logger.info("✅ Applicazione arrestata")

    except Exception as e:
        logger.error("❌ Errore in arresto", error=str(e))


app = FastAPI(
    title=APP_NAME,
    description="""
    # Gestione stock e prezzi per concessionaria

    **Funzioni:**
    - 🚗 Inventario veicoli con Stock Virtuale
    - 💶 Calcolo prezzi configurati, IVA agevolata e prezzo finale
    - 🔒 Prenotazioni con scadenza e annullamento per ruolo
    - 📝 Preventivi, contratti e ordini con ODL

    ## API
    - **Catalogo** (`/api/v1/catalog`)
    - **Prezzi** (`/api/v1/pricing`)
    - **Veicoli** (`/api/v1/vehicles`)
    - **Preventivi** (`/api/v1/quotes`)
    - **Ordini** (`/api/v1/orders`)
    - **Sistema** (`/info`, `/health`)
    """,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

logger = get_logger(__name__)


# Middleware Configuration
def setup_middleware():
    """Configura i middleware FastAPI."""

    if os.getenv('ENVIRONMENT') == 'production':
        allowed_origins = [
            origin.strip()
            for origin in os.getenv('CORS_ORIGINS', '').split(',')
            if origin.strip()
        ]
    else:
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"]
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    logger.info("🔧 Middleware configurati",
                environment=os.getenv('ENVIRONMENT', 'development'))


setup_middleware()


# Exception Handlers
@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Errori di dominio con messaggio leggibile e contesto."""
    status_code = next(
        (code for error_type, code in DOMAIN_ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST
    )

    logger.warning("⚠️ Errore di dominio",
                   error_type=type(exc).__name__,
                   message=exc.message,
                   path=str(request.url.path),
                   status_code=status_code)

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": type(exc).__name__,
            "message": exc.message,
            "context": jsonable_encoder(exc.context),
            "timestamp": datetime.now().isoformat(),
            "path": str(request.url)
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Errori non gestiti."""
    logger.error("💥 Errore non gestito",
                 error=str(exc),
                 path=str(request.url),
                 method=request.method,
                 exc_info=True)

    if os.getenv('ENVIRONMENT') == 'production':
        detail = "Si è verificato un errore interno del server"
    else:
        detail = str(exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_server_error",
            "message": detail,
            "timestamp": datetime.now().isoformat(),
            "path": str(request.url)
        }
    )


# Request Logging Middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log strutturato di tutte le richieste HTTP."""
    start_time = datetime.now()

    if os.getenv('LOG_LEVEL', 'INFO').upper() == 'DEBUG':
        logger.debug("📥 HTTP Request",
                     method=request.method,
                     path=str(request.url.path),
                     query=str(request.url.query) if request.url.query else None)

    response = await call_next(request)

    duration = (datetime.now() - start_time).total_seconds()

    logger.info("📤 HTTP Response",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
                duration_seconds=round(duration, 3))

    return response


# Router Registration
app.include_router(catalog_router, prefix="/api/v1")
app.include_router(pricing_router, prefix="/api/v1")
app.include_router(vehicles_router, prefix="/api/v1")
app.include_router(quotes_router, prefix="/api/v1")
app.include_router(orders_router, prefix="/api/v1")


# System Endpoints
@app.get("/health", summary="System Health Check")
async def health_check():
    """
    Health check completo.

    Verifica lo storage configurato e il servizio inventario.
    """
    try:
        health_status = await check_all_services_health()

        return JSONResponse(
            content={
                'status': health_status['overall_status'],
                'timestamp': datetime.now().isoformat(),
                'application': {
                    'name': APP_NAME,
                    'version': __version__,
                    'environment': os.getenv('ENVIRONMENT', 'development')
                },
                'services': health_status['services']
            },
            status_code=200 if health_status['overall_status'] == 'healthy' else 503
        )

    except Exception as e:
        logger.error("❌ Health check fallito", error=str(e))
        return JSONResponse(
            content={
                'status': 'unhealthy',
                'timestamp': datetime.now().isoformat(),
                'error': str(e)
            },
            status_code=503
        )


@app.get("/info", summary="System Information")
async def system_info():
    """Informazioni di sistema per debugging e monitoraggio."""
    return {
        'application': {
            'name': APP_NAME,
            'version': __version__,
            'description': 'Gestione stock, prezzi e prenotazioni per concessionaria'
        },
        'environment': get_environment_config(),
        'services': get_service_info(),
        'endpoints': {
            'catalog': '/api/v1/catalog',
            'pricing': '/api/v1/pricing',
            'vehicles': '/api/v1/vehicles',
            'quotes': '/api/v1/quotes',
            'orders': '/api/v1/orders',
            'health': '/health',
            'docs': '/docs'
        },
        'timestamp': datetime.now().isoformat()
    }


@app.get("/", summary="API Root")
async def root():
    return {
        'message': 'Autosalone API',
        'version': __version__,
        'status': 'running',
        'documentation': '/docs',
        'health_check': '/health',
        'system_info': '/info',
        'timestamp': datetime.now().isoformat()
    }


# Endpoint solo per sviluppo
if os.getenv('ENVIRONMENT') != 'production':
    @app.get("/dev/reset-services", summary="[DEV] Reset servizi")
    async def dev_reset_services():
        """
        Azzera e reinizializza tutti i servizi.

        ⚠️ Disponibile solo fuori produzione!
        """
        reset_services()
        await startup_services()

        return {
            'message': 'Servizi azzerati e reinizializzati',
            'timestamp': datetime.now().isoformat()
        }


if __name__ == "__main__":
    import uvicorn
    from dotenv import load_dotenv
    load_dotenv()

    logger = configure_logging()
    logger.info("🧪 Avvio server di sviluppo...")

    config = get_environment_config()
    uvicorn.run(
        "autosalone.main:app",
        host=config['api_host'],
        port=config['api_port'],
        reload=os.getenv('API_RELOAD', 'true').lower() == 'true',
        log_level=config['log_level'].lower(),
        access_log=True
    )
