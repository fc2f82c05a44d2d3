import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List, Optional

import uvicorn

from .compiler import CompileError, compile_tree, remove_build_root
from .config import ConfigError, Settings, get_settings
from .main import create_app

logger = logging.getLogger("uvicorn.error")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compile .gmd documents to HTML and serve them")
    parser.add_argument("command", nargs="?", choices=("serve", "build"), default="serve")
    parser.add_argument("--source", type=Path, default=None, help="Source directory of .gmd files")
    parser.add_argument("--build", type=Path, default=None, help="Output directory for compiled HTML")
    parser.add_argument("--host", default=None, help="Listen host")
    parser.add_argument("--port", type=int, default=None, help="Listen port")
    return parser.parse_args(argv)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "source_dir": args.source,
        "build_dir": args.build,
        "host": args.host,
        "port": args.port,
    }
    return dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def serve(settings: Settings) -> None:
    """Compile, serve until uvicorn stops, then drop the build root."""
    compile_tree(settings.source_dir, settings.build_dir, assets_root=settings.assets_dir)
    try:
        logger.info("Serving on http://%s:%s", settings.host, settings.port)
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
    finally:
        remove_build_root(settings.build_dir)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:     %(message)s")
    try:
        settings = _apply_overrides(get_settings(), args)
        if args.command == "build":
            written = compile_tree(
                settings.source_dir, settings.build_dir, assets_root=settings.assets_dir
            )
            logger.info("Wrote %d page(s) to %s", len(written), settings.build_dir)
        else:
            serve(settings)
    except (CompileError, ConfigError) as exc:
        logger.error("%s", exc)
        return 1
    return 0
