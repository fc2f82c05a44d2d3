"""Analytics module for page-view counting and enrichment."""
from .engines import EngineLabel, classify_engine
from .geo import UNKNOWN_COUNTRY, CountryLookup, CountryResolver
from .router import router as analytics_router
from .store import AnalyticsCounters, AnalyticsStore

__all__ = [
    "AnalyticsCounters",
    "AnalyticsStore",
    "CountryLookup",
    "CountryResolver",
    "EngineLabel",
    "UNKNOWN_COUNTRY",
    "analytics_router",
    "classify_engine",
]
