"""Source adapters that produce cost data points."""

from .base import BaseSource
from .feed import JSONFeedSource

__all__ = ["BaseSource", "JSONFeedSource"]
