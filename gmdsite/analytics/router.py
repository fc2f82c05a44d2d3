"""Analytics dashboard routes."""
from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import psutil
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel

from ..config import Settings
from .store import AnalyticsStore

router = APIRouter(prefix="/analytics", tags=["analytics"])

DASHBOARD_HTML_PATH = Path(__file__).resolve().parent / "dashboard.html"

_basic = HTTPBasic(auto_error=False)


def get_store(request: Request) -> AnalyticsStore:
    store = getattr(request.app.state, "analytics", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Analytics store not initialized")
    return store


def verify_credentials(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(_basic),
) -> bool:
    """Check the dashboard credentials when a pair is configured."""
    settings: Settings = request.app.state.settings
    if not settings.analytics_protected:
        return True
    challenge = {"WWW-Authenticate": 'Basic realm="analytics"'}
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required", headers=challenge)
    user_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.analytics_user.encode("utf-8")
    )
    pass_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.analytics_pass.encode("utf-8")
    )
    if not (user_ok and pass_ok):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers=challenge)
    return True


class ChartSeries(BaseModel):
    labels: List[str]
    counts: List[int]


class AnalyticsSummary(BaseModel):
    total_views: int
    pages: ChartSeries
    browser_engines: ChartSeries
    countries: ChartSeries
    cpu_count: int
    memory_mb: float


def _series(counts: Dict[str, int]) -> ChartSeries:
    ordered: List[Tuple[str, int]] = sorted(counts.items())
    return ChartSeries(
        labels=[label for label, _ in ordered],
        counts=[count for _, count in ordered],
    )


@router.get("", response_class=HTMLResponse)
def serve_dashboard(_: bool = Depends(verify_credentials)) -> HTMLResponse:
    """Serve the analytics dashboard HTML page."""
    if not DASHBOARD_HTML_PATH.exists():
        raise HTTPException(status_code=404, detail="Analytics page not found")
    return HTMLResponse(content=DASHBOARD_HTML_PATH.read_text(encoding="utf-8"))


@router.get("/summary", response_model=AnalyticsSummary)
def get_summary(
    _: bool = Depends(verify_credentials),
    store: AnalyticsStore = Depends(get_store),
) -> AnalyticsSummary:
    """Counters plus a few process stats for the dashboard."""
    counters = store.snapshot()
    memory_bytes = psutil.Process(os.getpid()).memory_info().rss
    return AnalyticsSummary(
        total_views=counters.total_views,
        pages=_series(counters.page_views),
        browser_engines=_series(counters.browser_engines),
        countries=_series(counters.countries),
        cpu_count=psutil.cpu_count() or 1,
        memory_mb=round(memory_bytes / 1024.0 / 1024.0, 1),
    )
