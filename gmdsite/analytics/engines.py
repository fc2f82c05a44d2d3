"""Coarse browser-engine classification from a User-Agent string."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class EngineLabel(str, Enum):
    BLINK = "Blink"
    WEBKIT = "WebKit"
    GECKO = "Gecko"
    TRIDENT = "Trident"
    OTHER = "Other"


def classify_engine(user_agent: Optional[str]) -> EngineLabel:
    """Classify a User-Agent string.

    Blink browsers also advertise WebKit, so Blink is checked first.
    """
    ua = (user_agent or "").lower()
    if "webkit" in ua and "chrome" in ua:
        return EngineLabel.BLINK
    if "webkit" in ua:
        return EngineLabel.WEBKIT
    if "gecko" in ua and "firefox" in ua:
        return EngineLabel.GECKO
    if "trident" in ua or "msie" in ua:
        return EngineLabel.TRIDENT
    return EngineLabel.OTHER
