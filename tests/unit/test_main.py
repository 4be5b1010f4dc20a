# tests/unit/test_main.py
"""
Unit Test per l'applicazione FastAPI
Autosalone - Gestione Stock e Prezzi

Health, info ed error handler con servizi mockati.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from autosalone.core.errors import InvalidStateError, NotFoundError, StorageError, ValidationError
from autosalone.main import DOMAIN_ERROR_STATUS, app


class TestMainApplication:
    """Endpoint di sistema"""

    @pytest.fixture
    def client(self):
        """Test Client con startup/shutdown mockati"""
        with patch('autosalone.main.startup_services', new_callable=AsyncMock), \
                patch('autosalone.main.shutdown_services', new_callable=AsyncMock):
            with TestClient(app) as client:
                yield client

    def test_health_endpoint(self, client):
        health = {
            'overall_status': 'healthy',
            'services': {'storage': {'status': 'healthy'}, 'vehicle': {'status': 'healthy'}}
        }
        with patch('autosalone.main.check_all_services_health', new_callable=AsyncMock) as mock_health:
            mock_health.return_value = health
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["application"]["name"] == "Autosalone"
        assert data["services"]["storage"]["status"] == "healthy"

    def test_health_degraded(self, client):
        with patch('autosalone.main.check_all_services_health', new_callable=AsyncMock) as mock_health:
            mock_health.return_value = {
                'overall_status': 'degraded',
                'services': {'storage': {'status': 'unhealthy'}}
            }
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_health_exception(self, client):
        with patch('autosalone.main.check_all_services_health', new_callable=AsyncMock) as mock_health:
            mock_health.side_effect = RuntimeError("storage offline")
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["error"] == "storage offline"

    def test_root_endpoint(self, client):
        data = client.get("/").json()

        assert data["status"] == "running"
        assert data["health_check"] == "/health"

    def test_docs_available(self, client):
        assert client.get("/docs").status_code == 200


class TestDomainErrorStatus:
    """Mappatura errori di dominio -> codici HTTP"""

    @pytest.mark.parametrize("error, expected", [
        (NotFoundError("vehicles", "v1"), 404),
        (InvalidStateError("stato non valido"), 409),
        (ValidationError("dato non valido", field="reason"), 400),
        (StorageError("storage non disponibile"), 503),
    ])
    def test_status_codes(self, error, expected):
        status_code = next(code for error_type, code in DOMAIN_ERROR_STATUS if isinstance(error, error_type))

        assert status_code == expected

    def test_error_payload(self):
        with patch('autosalone.main.startup_services', new_callable=AsyncMock), \
                patch('autosalone.main.shutdown_services', new_callable=AsyncMock):
            with TestClient(app) as client:
                with patch('autosalone.api.routes.vehicles.VehicleService.get_vehicle',
                           new_callable=AsyncMock) as mock_get:
                    mock_get.side_effect = NotFoundError("vehicles", "v-404", "Veicolo non trovato")
                    response = client.get("/api/v1/vehicles/v-404")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "NotFoundError"
        assert data["message"] == "Veicolo non trovato"
        assert data["context"]["entity_id"] == "v-404"

# Pytest-Marks
pytestmark = [
    pytest.mark.unit,
    pytest.mark.fast
]
