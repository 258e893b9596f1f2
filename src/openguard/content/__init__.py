"""Prompt-injection classification of untrusted text.

* **ContentGuard** -- chunked, three-tier scoring against an oracle.
* **chunk_content** -- fixed-size character chunking.
* **LazyClassifier**, **TransformersClassifier**, **OpenRouterClassifier**
  -- oracle backends and their memoised initialiser.
* **pre_fetch** / **is_allowed_url** -- SSRF-safe page retrieval.
* **ChannelGuardPlugin**, **AgentGuardPlugin**, **WebGuardPlugin** -- the
  interception adapters.
"""
from __future__ import annotations

from openguard.content.chunking import DEFAULT_CHUNK_SIZE, chunk_content
from openguard.content.classifiers import (
    LazyClassifier,
    OpenRouterClassifier,
    TransformersClassifier,
    build_classifier,
)
from openguard.content.extraction import (
    extract_message_text,
    html_to_text,
    is_cloudflare_challenge,
)
from openguard.content.fetch import PreFetchResult, is_allowed_url, pre_fetch
from openguard.content.guard import ContentGuard, apply_thresholds, format_confidence
from openguard.content.plugins import AgentGuardPlugin, ChannelGuardPlugin, WebGuardPlugin

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "AgentGuardPlugin",
    "ChannelGuardPlugin",
    "ContentGuard",
    "LazyClassifier",
    "OpenRouterClassifier",
    "PreFetchResult",
    "TransformersClassifier",
    "WebGuardPlugin",
    "apply_thresholds",
    "build_classifier",
    "chunk_content",
    "extract_message_text",
    "format_confidence",
    "html_to_text",
    "is_allowed_url",
    "is_cloudflare_challenge",
    "pre_fetch",
]
