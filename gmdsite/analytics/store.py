"""In-memory page-view counters with reload deduplication."""
from __future__ import annotations

import copy
import hashlib
import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .engines import EngineLabel, classify_engine
from .geo import UNKNOWN_COUNTRY, CountryLookup

logger = logging.getLogger("uvicorn.error")

DEFAULT_COOLDOWN_SECONDS = 10.0
PRUNE_THRESHOLD = 10_000


@dataclass
class AnalyticsCounters:
    total_views: int = 0
    page_views: Dict[str, int] = field(default_factory=dict)
    browser_engines: Dict[str, int] = field(default_factory=dict)
    countries: Dict[str, int] = field(default_factory=dict)


class AnalyticsStore:
    """Process-lifetime view counters.

    A view from the same client for the same page is counted at most once
    per cooldown window. This absorbs reload storms; it is a heuristic and
    not a count of unique visitors.

    Client identities are only kept as salted digests in the deduplication
    map. The raw address is passed to the country lookup and then dropped.
    """

    def __init__(
        self,
        country_lookup: CountryLookup,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        classifier: Callable[[str], EngineLabel] = classify_engine,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._country_lookup = country_lookup
        self._cooldown = cooldown_seconds
        self._classifier = classifier
        self._clock = clock
        self._salt = secrets.token_bytes(16)
        self._counters = AnalyticsCounters()
        self._last_view: Dict[str, float] = {}
        self._next_prune = float("-inf")
        self.prune_runs = 0
        self._lock = threading.Lock()

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown

    def _view_key(self, identity: str, path: str) -> str:
        digest = hashlib.sha256(self._salt + identity.encode("utf-8")).hexdigest()
        return f"{digest}|{path}"

    def _prune(self, now: float) -> None:
        self._next_prune = now + self._cooldown
        self.prune_runs += 1
        expired = [key for key, seen in self._last_view.items() if now - seen > self._cooldown]
        for key in expired:
            del self._last_view[key]

    def record_view(self, identity: Optional[str], path: str, user_agent: Optional[str]) -> bool:
        """Count a page view unless it repeats within the cooldown window."""
        identity = identity or ""
        key = self._view_key(identity, path)
        now = self._clock()
        with self._lock:
            last = self._last_view.get(key)
            if last is not None and now - last <= self._cooldown:
                logger.debug("Suppressed repeat view of %s", path)
                return False
            if len(self._last_view) >= PRUNE_THRESHOLD and now >= self._next_prune:
                self._prune(now)
            self._last_view[key] = now

        # Enrichment may hit the network; keep it outside the lock.
        engine_label = self._classifier(user_agent or "").value
        try:
            country = self._country_lookup.resolve(identity) or UNKNOWN_COUNTRY
        except Exception:  # noqa: BLE001
            logger.exception("Country lookup failed for a page view")
            country = UNKNOWN_COUNTRY

        with self._lock:
            counters = self._counters
            counters.total_views += 1
            counters.page_views[path] = counters.page_views.get(path, 0) + 1
            counters.browser_engines[engine_label] = counters.browser_engines.get(engine_label, 0) + 1
            counters.countries[country] = counters.countries.get(country, 0) + 1
        return True

    def snapshot(self) -> AnalyticsCounters:
        with self._lock:
            return copy.deepcopy(self._counters)
