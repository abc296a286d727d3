"""Ingestion, connectors and persistence."""
