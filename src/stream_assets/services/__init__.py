"""Business services: classification, quota, catalog, ingestion and conversion."""
