"""
Ingestion pipeline.

Fetches a batch from a source, runs it through the quality gate and
persists only the records that pass.
"""

import logging
import os

from ..adapters.base import BaseSource
from ..adapters.feed import JSONFeedSource
from ..quality.reporter import ValidationStats, is_accepted
from ..quality.validator import DataPointValidator, ValidatorConfig
from .storage import DataStore

logger = logging.getLogger(__name__)

# Registry of sources constructible by name
SOURCES = {
    "feed": JSONFeedSource,
}


class IngestionPipeline:
    """
    Source -> validator -> data store.

    Usage:
        with IngestionPipeline(JSONFeedSource("https://...")) as pipeline:
            stats = pipeline.run()
    """

    def __init__(
        self,
        source: str | BaseSource = "feed",
        validator: DataPointValidator | None = None,
        store: DataStore | None = None,
        min_score: float | None = None,
    ):
        """
        Args:
            source: Source name or instance
            validator: Quality gate (defaults to env-configured validator)
            store: Where accepted points go (defaults to DATA_DIR)
            min_score: Minimum quality score to persist
        """
        if isinstance(source, str):
            if source not in SOURCES:
                raise ValueError(f"Unknown source: {source}. Available: {list(SOURCES.keys())}")
            self.source = SOURCES[source]()
        else:
            self.source = source

        self.validator = validator or DataPointValidator(ValidatorConfig.from_env())
        self.store = store or DataStore()
        self.min_score = (
            min_score if min_score is not None else float(os.environ.get("MIN_QUALITY_SCORE", 0.7))
        )

    def run(self) -> ValidationStats:
        """
        Fetch, validate and persist one batch.

        Returns:
            Statistics over everything validated in this run
        """
        points = self.source.fetch_data_points()
        if not points:
            logger.info(f"No data points from {self.source.NAME}")
            return ValidationStats.from_results([])

        chunk_size = self.validator.config.max_batch_size
        stats = ValidationStats.from_results([])
        saved = 0
        for start in range(0, len(points), chunk_size):
            results = self.validator.validate_batch(points[start : start + chunk_size])
            for result in results:
                label = result.data_point.id or result.data_point.item_name
                for warning in result.warnings:
                    logger.warning(f"{label}: {warning}")
                if is_accepted(result, self.min_score) and self.store.save_data_point(result.data_point):
                    saved += 1
            stats = stats.merge(ValidationStats.from_results(results))

        logger.info(
            f"Ingestion from {self.source.NAME} complete: {stats.total_validated} validated, "
            f"{stats.valid_count} valid, {saved} saved, quality score {stats.quality_score:.3f}"
        )
        return stats

    def close(self):
        """Clean up resources."""
        self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
