"""Resolve request paths to compiled pages and serve them."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import FileResponse

from .compiler import ARTIFACT_SUFFIX, RESERVED_NAMES, ROOT_DOCUMENT

router = APIRouter(tags=["pages"])


def page_name(request_path: str) -> Optional[str]:
    """Normalize a URL path to a page name relative to the build root.

    ``/`` maps to the root document. Returns ``None`` for paths that can
    never name a page: traversal segments, reserved namespaces and the like.
    """
    if "\\" in request_path or "\x00" in request_path:
        return None
    name = request_path.strip("/")
    if not name:
        return ROOT_DOCUMENT
    segments = name.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        return None
    if segments[0] in RESERVED_NAMES:
        return None
    return name


def resolve_page(build_root: Path, request_path: str) -> Optional[Path]:
    """Return the artifact for ``request_path`` if it exists inside ``build_root``."""
    name = page_name(request_path)
    if name is None:
        return None
    root = build_root.resolve()
    candidate = (root / f"{name}{ARTIFACT_SUFFIX}").resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def client_identity(request: Request, trust_proxy_headers: bool = False) -> str:
    """Get the client address, optionally honoring reverse-proxy headers."""
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # First entry is the originating client.
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    if request.client:
        return request.client.host
    return ""


@router.api_route("/{request_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
def serve_page(request_path: str, request: Request, background_tasks: BackgroundTasks) -> FileResponse:
    settings = request.app.state.settings
    artifact = resolve_page(settings.build_dir, request_path)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Not Found")

    if request.method == "GET":
        store = request.app.state.analytics
        background_tasks.add_task(
            store.record_view,
            client_identity(request, settings.trust_proxy_headers),
            "/" + page_name(request_path),
            request.headers.get("user-agent", ""),
        )
    return FileResponse(artifact, media_type="text/html")
