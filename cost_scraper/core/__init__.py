"""Core ingestion functionality."""

from .pipeline import IngestionPipeline
from .storage import DataStore, read_data_points, write_data_points

__all__ = ["DataStore", "IngestionPipeline", "read_data_points", "write_data_points"]
