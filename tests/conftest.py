from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import pytest

from gmdsite.config import Settings


class FakeCountryLookup:
    """Country lookup double that records every address it is asked about."""

    def __init__(self, countries: Dict[str, str] | None = None, default: str = "Unknown") -> None:
        self.countries = countries or {}
        self.default = default
        self.calls: List[str] = []

    def resolve(self, address: str) -> str:
        self.calls.append(address)
        return self.countries.get(address, self.default)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    for relpath, content in files.items():
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def fake_lookup() -> FakeCountryLookup:
    return FakeCountryLookup()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    return write_tree(
        tmp_path / "web",
        {
            "index.gmd": "# Home\n\nSee (docs/intro)[the intro].\n",
            "about.gmd": "# About\n",
            "docs/intro.gmd": "# Intro\n\n| a | b |\n|---|---|\n| 1 | 2 |\n",
            "docs/notes.txt": "not a document",
        },
    )


@pytest.fixture
def site_settings(tmp_path: Path, source_tree: Path) -> Settings:
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "style.css").write_text("body { color: red; }", encoding="utf-8")
    (tmp_path / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    return Settings(
        source_dir=source_tree,
        build_dir=tmp_path / ".built",
        assets_dir=assets,
        favicon_path=tmp_path / "favicon.ico",
    )
