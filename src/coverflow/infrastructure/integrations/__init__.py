"""External service integrations."""

from coverflow.infrastructure.integrations.http_pool import HttpClientPool
from coverflow.infrastructure.integrations.itunes_client import ItunesClient

__all__ = ["HttpClientPool", "ItunesClient"]
