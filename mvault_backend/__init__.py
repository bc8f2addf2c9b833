"""Media Vault backend: archive ingestion, library records and file serving."""
