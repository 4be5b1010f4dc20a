#!/usr/bin/env python3
"""
BigQuery Setup Script per Autosalone
Autosalone - Gestione Stock e Prezzi

Questo script:
1. Crea il dataset BigQuery
2. Crea una tabella per ogni catalogo (id, status, payload JSON, timestamp)
3. Inserisce i dati dimostrativi (opzionale)
4. Testa la connessione
"""

import asyncio
import os
import sys

from google.cloud import bigquery
from google.cloud.exceptions import Conflict

from autosalone.services.bigquery_storage import BigQueryStorage, table_name
from autosalone.services.local_storage import LocalStorage
from autosalone.services.storage import ALL_CATALOGS

TABLE_SCHEMA = [
    bigquery.SchemaField("id", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("status", "STRING", mode="NULLABLE"),
    bigquery.SchemaField("payload", "STRING", mode="REQUIRED"),  # JSON come stringa
    bigquery.SchemaField("created_at", "TIMESTAMP", mode="NULLABLE"),
    bigquery.SchemaField("updated_at", "TIMESTAMP", mode="NULLABLE"),
]


def setup_bigquery(seed_demo_data: bool = False) -> bool:
    """Setup completo di BigQuery."""

    print("🚀 Setup BigQuery per Autosalone")
    print("=" * 50)

    project_id = os.getenv('GOOGLE_CLOUD_PROJECT')
    dataset_name = os.getenv('BIGQUERY_DATASET', 'autosalone')

    if not project_id:
        print("❌ GOOGLE_CLOUD_PROJECT non impostato!")
        print("   Impostare in .env: GOOGLE_CLOUD_PROJECT=id-del-progetto")
        return False

    print(f"✅ Progetto: {project_id}")
    print(f"✅ Dataset: {dataset_name}")

    try:
        storage = BigQueryStorage(project_id=project_id, dataset_name=dataset_name)
        client = storage.client

        print(f"\n📊 Creazione dataset '{dataset_name}'...")
        dataset = bigquery.Dataset(storage.dataset_ref)
        dataset.location = os.getenv('BIGQUERY_LOCATION', 'europe-west8')
        dataset.description = "Stock, prezzi e prenotazioni della concessionaria"

        try:
            client.create_dataset(dataset, timeout=30)
            print(f"✅ Dataset '{dataset_name}' creato")
        except Conflict:
            print(f"ℹ️ Dataset '{dataset_name}' già esistente")

        for catalog in ALL_CATALOGS:
            create_catalog_table(client, storage.dataset_ref, catalog)

        if seed_demo_data:
            print("\n📝 Inserimento dati dimostrativi...")
            count = asyncio.run(insert_demo_data(storage))
            print(f"✅ {count} elementi inseriti")

        print("\n🧪 Test connessione...")
        health = asyncio.run(storage.health_check())
        print(f"✅ Stato: {health['status']}")

        print("\n🎉 Setup BigQuery completato!")
        return True

    except Exception as e:
        print(f"\n❌ Errore nel setup BigQuery: {e}")
        return False


def create_catalog_table(client: bigquery.Client, dataset_ref: str, catalog: str):
    """Crea la tabella di un catalogo."""

    table_id = f"{dataset_ref}.{table_name(catalog)}"
    table = bigquery.Table(table_id, schema=TABLE_SCHEMA)
    table.clustering_fields = ["id", "status"]

    try:
        table = client.create_table(table)
        print(f"✅ Tabella '{table.table_id}' creata")
    except Conflict:
        print(f"ℹ️ Tabella '{table_id}' già esistente")


async def insert_demo_data(storage: BigQueryStorage) -> int:
    """Copia su BigQuery il catalogo e lo stock dimostrativi."""
    demo = LocalStorage(seed_demo_data=True)
    count = 0
    for catalog in ALL_CATALOGS:
        for entity in await demo.list_entities(catalog):
            await storage.create_entity(catalog, entity)
            count += 1
    return count


if __name__ == "__main__":
    from dotenv import load_dotenv
    load_dotenv()

    print("Script di setup BigQuery")
    print("Variabili d'ambiente richieste:")
    print("- GOOGLE_CLOUD_PROJECT")
    print("- BIGQUERY_DATASET (opzionale, default: autosalone)")
    print("- GOOGLE_SERVICE_ACCOUNT (opzionale, impersonation)")
    print()

    if input("Procedere? (y/N): ").lower() != 'y':
        print("Setup annullato.")
        sys.exit(0)

    seed = input("Inserire i dati dimostrativi? (y/N): ").lower() == 'y'
    sys.exit(0 if setup_bigquery(seed_demo_data=seed) else 1)
