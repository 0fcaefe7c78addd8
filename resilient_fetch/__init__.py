"""Resilient HTTP fetching: caching, deduplication, retries, circuit breaking and fallbacks."""

from .fetcher import FetchClient
from .models.config import FetchClientConfig
from .models.data_models import FetchResult, FetchStatus, RequestSpec

__all__ = ["FetchClient", "FetchClientConfig", "FetchResult", "FetchStatus", "RequestSpec"]

__version__ = "1.0.0"
