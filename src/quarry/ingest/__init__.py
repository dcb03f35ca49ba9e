"""Ingestion pipeline."""

from quarry.ingest.scheduler import CycleReport, IngestionScheduler

__all__ = ["CycleReport", "IngestionScheduler"]
