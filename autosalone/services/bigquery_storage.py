"""
BigQuery Storage - Backend remoto
Autosalone - Gestione Stock e Prezzi

Una tabella per catalogo con colonne `id`, `status`, `payload` (JSON) e
timestamp. Tutte le scritture passano da DML parametrizzato, così il
compare-and-set è un singolo `UPDATE ... WHERE` verificato tramite il numero
di righe modificate.
"""

import json
import os
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import google.auth
import structlog
from google.api_core.exceptions import GoogleAPIError
from google.auth import impersonated_credentials
from google.cloud import bigquery

from autosalone.core.errors import NotFoundError, StorageError
from autosalone.services.storage import Storage

logger = structlog.get_logger(__name__)

FIELD_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def table_name(catalog: str) -> str:
    """fuelTypes -> fuel_types"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", catalog).lower()


class BigQueryStorage(Storage):
    """
    Backend BigQuery.

    Responsabilità:
    - Connessione a BigQuery (ADC o Service Account Impersonation)
    - CRUD sui cataloghi tramite DML parametrizzato
    - Compare-and-set condizionale sullo stato
    """

    backend_name = "bigquery"

    def __init__(
        self,
        project_id: Optional[str] = None,
        dataset_name: Optional[str] = None,
        client: Optional[bigquery.Client] = None
    ):
        """
        Args:
            project_id: Google Cloud Project ID (default: da ENV)
            dataset_name: BigQuery Dataset (default: da ENV)
            client: Client già configurato (test o wiring esterno)
        """
        self.project_id = project_id or os.getenv('GOOGLE_CLOUD_PROJECT', 'autosalone')
        self.dataset_name = dataset_name or os.getenv('BIGQUERY_DATASET', 'autosalone')
        self.service_account = os.getenv('GOOGLE_SERVICE_ACCOUNT')
        self.dataset_ref = f"{self.project_id}.{self.dataset_name}"

        self.logger = logger.bind(
            service="BigQueryStorage",
            project=self.project_id,
            dataset=self.dataset_name
        )

        self.client = client or self._init_client()

    def _init_client(self) -> bigquery.Client:
        """Inizializza il client BigQuery, con impersonation se configurata."""
        try:
            if self.service_account:
                source_credentials, _ = google.auth.default()
                target_credentials = impersonated_credentials.Credentials(
                    source_credentials=source_credentials,
                    target_principal=self.service_account,
                    target_scopes=['https://www.googleapis.com/auth/bigquery']
                )
                client = bigquery.Client(project=self.project_id, credentials=target_credentials)
                self.logger.info("✅ Client BigQuery con Service Account Impersonation",
                                 service_account=self.service_account)
            else:
                client = bigquery.Client(project=self.project_id)
                self.logger.info("✅ Client BigQuery con ADC")
            return client

        except Exception as e:
            self.logger.error("❌ Inizializzazione client BigQuery fallita", error=str(e))
            raise StorageError(f"BigQuery non disponibile: {e}") from e

    def _table(self, catalog: str) -> str:
        self._validate_catalog(catalog)
        return f"`{self.dataset_ref}.{table_name(catalog)}`"

    def _run(self, query: str, params: List[bigquery.ScalarQueryParameter]):
        try:
            job_config = bigquery.QueryJobConfig(query_parameters=params)
            job = self.client.query(query, job_config=job_config)
            rows = job.result()
            return job, rows
        except GoogleAPIError as e:
            self.logger.error("❌ Query BigQuery fallita", error=str(e))
            raise StorageError(f"Errore BigQuery: {e}") from e

    @staticmethod
    def _param(name: str, value: Any) -> bigquery.ScalarQueryParameter:
        return bigquery.ScalarQueryParameter(name, "STRING", None if value is None else str(value))

    # Lettura
    async def get_entity(self, catalog: str, entity_id: str) -> Optional[Dict[str, Any]]:
        query = f"SELECT payload FROM {self._table(catalog)} WHERE id = @id LIMIT 1"
        _, rows = self._run(query, [self._param("id", entity_id)])
        for row in rows:
            return json.loads(row["payload"])
        return None

    async def list_entities(self, catalog: str) -> List[Dict[str, Any]]:
        query = f"SELECT payload FROM {self._table(catalog)} ORDER BY created_at"
        _, rows = self._run(query, [])
        entities = [json.loads(row["payload"]) for row in rows]

        self.logger.debug("📊 Elementi letti", catalog=catalog, count=len(entities))
        return entities

    # Scrittura
    async def create_entity(self, catalog: str, data: Dict[str, Any]) -> Dict[str, Any]:
        entity = dict(data)
        entity["id"] = entity.get("id") or str(uuid.uuid4())

        query = f"""
        INSERT INTO {self._table(catalog)} (id, status, payload, created_at, updated_at)
        VALUES (@id, @status, @payload, CURRENT_TIMESTAMP(), CURRENT_TIMESTAMP())
        """
        self._run(query, [
            self._param("id", entity["id"]),
            self._param("status", entity.get("status")),
            self._param("payload", json.dumps(entity, default=str)),
        ])

        self.logger.info("✅ Elemento creato", catalog=catalog, entity_id=entity["id"])
        return entity

    async def update_entity(self, catalog: str, entity_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        current = await self.get_entity(catalog, entity_id)
        if current is None:
            raise NotFoundError(catalog, entity_id)

        merged = {**current, **updates, "id": entity_id}
        query = f"""
        UPDATE {self._table(catalog)}
        SET payload = @payload, status = @status, updated_at = CURRENT_TIMESTAMP()
        WHERE id = @id
        """
        job, _ = self._run(query, [
            self._param("id", entity_id),
            self._param("status", merged.get("status")),
            self._param("payload", json.dumps(merged, default=str)),
        ])
        if not job.num_dml_affected_rows:
            raise NotFoundError(catalog, entity_id)
        return merged

    async def delete_entity(self, catalog: str, entity_id: str) -> None:
        query = f"DELETE FROM {self._table(catalog)} WHERE id = @id"
        job, _ = self._run(query, [self._param("id", entity_id)])
        if not job.num_dml_affected_rows:
            raise NotFoundError(catalog, entity_id)

        self.logger.info("🗑️ Elemento eliminato", catalog=catalog, entity_id=entity_id)

    async def compare_and_set(
        self,
        catalog: str,
        entity_id: str,
        field: str,
        expected: Any,
        updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        if not FIELD_PATTERN.match(field):
            raise StorageError(f"Campo non valido per compare-and-set: {field}")

        current = await self.get_entity(catalog, entity_id)
        if current is None:
            raise NotFoundError(catalog, entity_id)
        if current.get(field) != expected:
            return None

        merged = {**current, **updates, "id": entity_id}
        query = f"""
        UPDATE {self._table(catalog)}
        SET payload = @payload, status = @status, updated_at = CURRENT_TIMESTAMP()
        WHERE id = @id AND JSON_VALUE(payload, '$.{field}') = @expected
        """
        job, _ = self._run(query, [
            self._param("id", entity_id),
            self._param("expected", json.dumps(expected) if isinstance(expected, bool) else expected),
            self._param("status", merged.get("status")),
            self._param("payload", json.dumps(merged, default=str)),
        ])

        if not job.num_dml_affected_rows:
            self.logger.info("⛔ Compare-and-set rifiutato",
                             catalog=catalog, entity_id=entity_id, field=field, expected=expected)
            return None
        return merged

    async def health_check(self) -> Dict[str, Any]:
        try:
            self._run("SELECT 1 AS ok", [])
            return {
                'status': 'healthy',
                'mode': self.backend_name,
                'project_id': self.project_id,
                'dataset': self.dataset_name,
                'service_account': self.service_account,
                'timestamp': datetime.now().isoformat()
            }
        except Exception as e:
            return {
                'status': 'unhealthy',
                'mode': self.backend_name,
                'error': str(e)
            }
