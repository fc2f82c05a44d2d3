"""Compile a tree of ``.gmd`` documents into HTML artifacts."""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Callable, Iterable, Iterator, List, Optional

import markdown

from .fastlink import preprocess

logger = logging.getLogger("uvicorn.error")

DOCUMENT_SUFFIX = ".gmd"
ARTIFACT_SUFFIX = ".html"
ROOT_DOCUMENT = "index"
# Top-level URL namespaces served by something other than compiled pages.
RESERVED_NAMES = ("assets", "analytics")
MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]
# Written into every build root; only marked directories are ever emptied.
BUILD_MARKER = ".gmdsite-build"

Renderer = Callable[[bytes], bytes]


class CompileError(RuntimeError):
    """Raised when the site cannot be compiled; fatal at startup."""


class MissingRootDocumentError(CompileError):
    """Raised when the source tree has no root document."""


class ReservedDirectoryError(CompileError):
    """Raised when a source directory shadows a reserved URL namespace."""


@dataclass(frozen=True)
class BuildStep:
    source: PurePath
    artifact: PurePath


def render_markdown(raw: bytes) -> bytes:
    text = raw.decode("utf-8", errors="replace")
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS).encode("utf-8")


def artifact_relpath(source_relpath: PurePath) -> Optional[PurePath]:
    """Map a source-relative document path to its artifact path.

    Returns ``None`` for files that are not documents.
    """
    if source_relpath.suffix != DOCUMENT_SUFFIX or not source_relpath.stem:
        return None
    return source_relpath.with_suffix(ARTIFACT_SUFFIX)


def plan_build(source_relpaths: Iterable[PurePath]) -> List[BuildStep]:
    steps = []
    for relpath in source_relpaths:
        artifact = artifact_relpath(relpath)
        if artifact is not None:
            steps.append(BuildStep(source=relpath, artifact=artifact))
    return steps


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def iter_source_files(source_root: Path) -> Iterator[PurePath]:
    """Yield regular files under ``source_root`` as relative paths, sorted."""
    for dirpath, dirnames, filenames in os.walk(source_root, onerror=_raise_walk_error):
        dirnames.sort()
        base = Path(dirpath)
        for name in sorted(filenames):
            path = base / name
            if path.is_file():
                yield path.relative_to(source_root)


def check_source_tree(
    source_root: Path,
    build_root: Path,
    assets_root: Optional[Path] = None,
) -> None:
    """Validate the structural preconditions of a compile."""
    if not source_root.is_dir():
        raise CompileError(f"Source directory {source_root} does not exist")

    index_path = source_root / f"{ROOT_DOCUMENT}{DOCUMENT_SUFFIX}"
    if not index_path.is_file():
        raise MissingRootDocumentError(
            f"{index_path.name} not found in {source_root}. Please create it."
        )

    for name in RESERVED_NAMES:
        if (source_root / name).is_dir():
            raise ReservedDirectoryError(
                f"Do not create an '{name}' directory inside {source_root}; "
                f"/{name} is reserved by the server."
            )
        shadowed = source_root / f"{name}{DOCUMENT_SUFFIX}"
        if shadowed.is_file():
            logger.warning(
                "%s compiles, but /%s is reserved by the server and the page will never be served",
                shadowed,
                name,
            )

    build_resolved = build_root.resolve()
    for protected, role in ((source_root, "source"), (assets_root, "assets")):
        if protected is None:
            continue
        protected_resolved = Path(protected).resolve()
        if build_resolved == protected_resolved or build_resolved in protected_resolved.parents:
            raise CompileError(
                f"Build directory {build_root} must not contain the {role} directory {protected}"
            )

    if build_root.exists() and not build_root.is_dir():
        raise CompileError(f"Build directory {build_root} exists and is not a directory")
    if build_root.is_dir() and not _is_build_root(build_root) and any(build_root.iterdir()):
        raise CompileError(
            f"Refusing to empty {build_root}: it is not empty and was not created by gmdsite "
            f"(no {BUILD_MARKER} file)"
        )


def _is_build_root(build_root: Path) -> bool:
    return (build_root / BUILD_MARKER).is_file()


def remove_build_root(build_root: Path) -> None:
    """Delete a build tree previously written by :func:`compile_tree`.

    Directories without the build marker are only removed when empty.
    """
    if not build_root.exists():
        return
    if _is_build_root(build_root):
        shutil.rmtree(build_root)
    elif build_root.is_dir() and not any(build_root.iterdir()):
        build_root.rmdir()
    else:
        raise CompileError(f"Refusing to remove {build_root}: no {BUILD_MARKER} file")
    logger.info("Removed build directory %s", build_root)


def compile_tree(
    source_root: Path,
    build_root: Path,
    renderer: Renderer = render_markdown,
    assets_root: Optional[Path] = None,
) -> List[Path]:
    """Compile every document under ``source_root`` into ``build_root``.

    The build root is emptied first, so the output mirrors the current
    source tree exactly. Any filesystem error aborts the whole compile and
    discards what was written so far.
    """
    source_root = Path(source_root)
    build_root = Path(build_root)
    check_source_tree(source_root, build_root, assets_root)

    written: List[Path] = []
    try:
        remove_build_root(build_root)
        build_root.mkdir(parents=True, exist_ok=True)
        (build_root / BUILD_MARKER).write_bytes(b"")
        for step in plan_build(iter_source_files(source_root)):
            raw = (source_root / step.source).read_bytes()
            html = renderer(preprocess(raw))
            out_path = build_root / step.artifact
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(html)
            written.append(out_path)
    except OSError as exc:
        if _is_build_root(build_root):
            shutil.rmtree(build_root, ignore_errors=True)
        raise CompileError(f"Compile error: {exc}") from exc

    logger.info("Compiled %d document(s) from %s into %s", len(written), source_root, build_root)
    return written
