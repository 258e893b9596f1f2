"""Text extraction from tool parameters and fetched pages."""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import html2text
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

CLOUDFLARE_MARKERS: tuple[str, ...] = (
    "cf-mitigated",
    "__cf_chl",
    "Just a moment",
    "challenge-platform",
)

_HTML_RE = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)
_NOISE_TAGS = ("script", "style", "noscript", "template", "svg", "iframe")


def extract_message_text(params: Mapping[str, Any] | None) -> str:
    """Return the text of an inter-agent message.

    The payload is read from ``message``, ``content`` or ``body`` (first
    present wins) and may be a string or a list of content parts, of
    which only ``{"type": "text", "text": ...}`` parts are kept.
    """
    if not params:
        return ""
    raw = next(
        (params[key] for key in ("message", "content", "body") if params.get(key) is not None),
        None,
    )
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts = [
            part["text"]
            for part in raw
            if isinstance(part, Mapping)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
        ]
        return "\n".join(parts)
    return ""


def is_cloudflare_challenge(content: str) -> bool:
    """Return ``True`` if *content* is a Cloudflare bot-challenge page."""
    return any(marker in content for marker in CLOUDFLARE_MARKERS)


def _markdown_converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_images = True
    converter.unicode_snob = True
    converter.skip_internal_links = True
    return converter


def html_to_text(document: str) -> str:
    """Convert an HTML page to readable markdown.

    Non-HTML input is returned unchanged.  Script-like elements are
    removed and the ``<article>`` or ``<main>`` element is preferred over
    the whole ``<body>`` when the page has one.
    """
    if not _HTML_RE.search(document):
        return document

    soup = BeautifulSoup(document, "html.parser")
    for tag in soup.find_all(_NOISE_TAGS):
        tag.decompose()

    root = soup.find("article") or soup.find("main") or soup.body or soup
    text = _markdown_converter().handle(str(root)).strip()
    if not text:
        logger.debug("Readable extraction produced no text; using visible page text")
        return soup.get_text(" ", strip=True)
    return text
