"""
Cost Scraper - price observations for UAE cost-of-living data, with a
data-quality gate in front of persistence.
"""

from .core.pipeline import IngestionPipeline
from .models import CostDataPoint, Location
from .quality.validator import DataPointValidator

__version__ = "0.1.0"
__all__ = ["CostDataPoint", "DataPointValidator", "IngestionPipeline", "Location"]
