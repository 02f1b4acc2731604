"""
Base class for price sources.

A source produces raw CostDataPoint batches; it knows nothing about
validation or persistence. Site-specific scrapers inherit from BaseSource
and implement fetch_data_points().
"""

from abc import ABC, abstractmethod

import requests

from ..models import CostDataPoint


class BaseSource(ABC):
    """Abstract base class for cost data sources."""

    # Override in subclass
    NAME = "base"
    BASE_URL = ""

    def __init__(self):
        self.session = requests.Session()

    @abstractmethod
    def fetch_data_points(self) -> list[CostDataPoint]:
        """
        Fetch the current batch of observations.

        Returns:
            Data points as scraped; IDs may be empty.
        """
        pass

    def close(self):
        """Clean up resources."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
