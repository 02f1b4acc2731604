"""
JSON feed source.

Reads data points from an HTTP endpoint that already serves them in the
CostDataPoint JSON shape, either as a bare array or wrapped as
{"data_points": [...]}.
"""

import logging
import os

from ..models import CostDataPoint
from .base import BaseSource

logger = logging.getLogger(__name__)


class JSONFeedSource(BaseSource):
    """Fetches data points from a JSON feed."""

    NAME = "feed"

    def __init__(self, url: str | None = None, timeout: float = 30.0):
        super().__init__()
        self.url = url or os.environ.get("FEED_URL", "")
        self.timeout = timeout

    def fetch_data_points(self) -> list[CostDataPoint]:
        """
        GET the feed and convert each entry.

        Raises:
            ValueError: if no URL is configured or the payload is malformed
            requests.RequestException: on HTTP or connection errors
        """
        if not self.url:
            raise ValueError("No feed URL configured (pass url= or set FEED_URL)")

        response = self.session.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()

        if isinstance(payload, dict):
            payload = payload.get("data_points")
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected feed payload from {self.url}")

        points = [CostDataPoint.from_dict(entry) for entry in payload]
        logger.info(f"Fetched {len(points)} data points from {self.url}")
        return points
