"""
Prometheus metrics for the Spotify gateway.
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)

# Counters
login_redirects_total = Counter(
    'spotify_login_redirects_total',
    'Total number of redirects to the Spotify consent page'
)

callback_outcomes_total = Counter(
    'spotify_callback_outcomes_total',
    'Terminal states reached by /auth/callback',
    ['state']
)

# Histograms (latency)
provider_request_seconds = Histogram(
    'spotify_provider_request_seconds',
    'Latency of requests to Spotify in seconds',
    ['operation'],  # exchange, profile, saved_tracks
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)


@contextmanager
def observe_provider_request(operation: str) -> Iterator[None]:
    """Time a provider call, failed calls included."""
    start = time.perf_counter()
    try:
        yield
    finally:
        provider_request_seconds.labels(operation=operation).observe(time.perf_counter() - start)


def get_metrics_response() -> Tuple[bytes, str]:
    """Returns metrics in Prometheus format."""
    return generate_latest(), CONTENT_TYPE_LATEST
