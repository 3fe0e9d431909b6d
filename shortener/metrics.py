"""Redirect outcome counters.

Two monotonic Prometheus counters, both labelled by short code::

    url_shortener_redirects_total{short_code="..."}
    url_shortener_failed_redirects_total{short_code="..."}

``get_metrics()`` returns the process-wide instance registered on the default
Prometheus registry. Tests build their own ``RedirectMetrics`` on a fresh
``CollectorRegistry`` so counts start at zero.
"""

from functools import lru_cache

from prometheus_client import REGISTRY, CollectorRegistry, Counter

__all__ = ["RedirectMetrics", "get_metrics"]


class RedirectMetrics:
    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry
        self.redirects = Counter(
            "url_shortener_redirects",
            "Number of successful redirects",
            ["short_code"],
            registry=registry,
        )
        self.failed_redirects = Counter(
            "url_shortener_failed_redirects",
            "Number of failed redirects",
            ["short_code"],
            registry=registry,
        )

    def record_success(self, short_code: str) -> None:
        self.redirects.labels(short_code=short_code).inc()

    def record_failure(self, short_code: str) -> None:
        self.failed_redirects.labels(short_code=short_code).inc()


@lru_cache()
def get_metrics() -> RedirectMetrics:
    return RedirectMetrics()
