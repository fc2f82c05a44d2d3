"""Fastlink preprocessing for ``.gmd`` documents.

A fastlink is the shorthand ``(target)[label]``. It is rewritten into the
standard Markdown link ``[label](/target)`` before rendering, so every
fastlink points at a site-rooted page.
"""
from __future__ import annotations

import re

# Parentheses right after "]" or a "(" right after the closing bracket belong
# to a standard [text](url) link and are left alone. This keeps the rewrite a
# fixed point: its own output never matches again.
FASTLINK_PATTERN = re.compile(rb"(?<!\])\(([^)\s]+)\)\[([^\]]+)\](?!\()")


def _to_standard_link(match: re.Match) -> bytes:
    target = match.group(1).lstrip(b"/")
    label = match.group(2)
    return b"[" + label + b"](/" + target + b")"


def preprocess(raw: bytes) -> bytes:
    """Rewrite every fastlink in ``raw``; anything else passes through."""
    return FASTLINK_PATTERN.sub(_to_standard_link, raw)
