"""URL, hostname and command inspection for the network guard."""
from __future__ import annotations

import fnmatch
import posixpath
import re
from collections.abc import Iterable
from functools import lru_cache
from urllib.parse import urlsplit

from openguard.network.addresses import MalformedHostError, normalize_hostname
from openguard.shell import first_word, split_pipeline, strip_single_quotes

_SPECIAL_SCHEMES = frozenset({"http", "https"})

URL_RE = re.compile(r"https?://[^\s\"'`,;)}\]>]+", re.IGNORECASE)

NETWORK_COMMANDS: frozenset[str] = frozenset({
    "curl", "wget", "fetch", "nc", "ncat", "socat",
    "http", "ssh", "scp", "rsync", "telnet", "openssl",
})

NETWORK_COMPOUND_RE = re.compile(
    r"^\s*(?:git\s+(?:clone|fetch|pull|push)|pip3?\s+install|npm\s+install"
    r"|docker\s+pull|openssl\s+s_client)\b"
)

COMMAND_WRAPPERS: frozenset[str] = frozenset({
    "sudo", "doas", "env", "time", "nohup", "command", "exec",
    "nice", "ionice", "timeout", "stdbuf", "xargs",
})

# Wrapper options whose value is the next word (`sudo -u root`).
_WRAPPER_OPTIONS_WITH_VALUE = frozenset({"-u", "-g"})

_SUBSTITUTION_RE = re.compile(r"\$\(|<\(|`")

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_urls(command: str) -> list[str]:
    """Return every ``http(s)://`` URL substring of *command*, in order."""
    if not command:
        return []
    return URL_RE.findall(command)


def extract_hostname(url: str) -> str | None:
    """Return the normalised hostname of *url*, or ``None`` if malformed.

    See :func:`~openguard.network.addresses.normalize_hostname` for the
    normalisation applied.  URLs without a scheme and host are malformed.
    For ``http`` and ``https`` a backslash ends the authority, as it does
    for the fetch client, so ``http://10.0.0.1\\@example.com/`` yields
    ``10.0.0.1``.
    """
    try:
        parts = urlsplit(url.strip())
        netloc = parts.netloc
    except ValueError:
        return None
    if parts.scheme.lower() in _SPECIAL_SCHEMES:
        netloc = netloc.partition("\\")[0]
    if not parts.scheme or not netloc:
        return None

    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            return None
        host = host[: end + 1]
    else:
        host = host.partition(":")[0]

    try:
        normalized = normalize_hostname(host)
    except MalformedHostError:
        return None
    if not normalized or any(ch in normalized for ch in " /\\?#@"):
        return None
    return normalized


# ---------------------------------------------------------------------------
# Allowlist
# ---------------------------------------------------------------------------


class DomainMatcher:
    """Case-insensitive glob matcher over a fixed list of domain patterns.

    ``*`` matches any run of characters including dots, so
    ``*.example.com`` matches ``a.b.example.com`` but not ``example.com``.
    """

    __slots__ = ("_patterns",)

    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns: tuple[str, ...] = tuple(p.strip().lower() for p in patterns if p.strip())

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def __call__(self, hostname: str) -> bool:
        return self.matches(hostname)

    def matches(self, hostname: str) -> bool:
        name = hostname.lower()
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self._patterns)

    def extended(self, extra: Iterable[str]) -> DomainMatcher:
        """Return a new matcher over these patterns plus *extra*."""
        return DomainMatcher([*self._patterns, *extra])


def is_domain_allowed(hostname: str, patterns: Iterable[str]) -> bool:
    return DomainMatcher(patterns).matches(hostname)


# ---------------------------------------------------------------------------
# Exfiltration patterns
# ---------------------------------------------------------------------------


@lru_cache(maxsize=256)
def _compile_blocked(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)


def match_blocked_pattern(command: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern in *patterns* found in *command*."""
    for pattern in patterns:
        if _compile_blocked(pattern).search(command):
            return pattern
    return None


# ---------------------------------------------------------------------------
# Network command detection
# ---------------------------------------------------------------------------


def command_program(segment: str) -> str:
    """Return *segment* from its real program onwards.

    Leading environment assignments (``FOO=1``) and wrapper programs such
    as ``sudo``, ``env``, ``time`` or ``nohup`` are skipped together with
    their options, so ``sudo -u root curl x`` yields ``curl x``.
    """
    words = segment.split()
    index = 0
    wrapped = False
    while index < len(words):
        word = words[index]
        if posixpath.basename(word) in COMMAND_WRAPPERS:
            wrapped = True
            index += 1
        elif "=" in word and not word.startswith(("=", "-")):
            index += 1
        elif wrapped and word in _WRAPPER_OPTIONS_WITH_VALUE:
            index += 2
        elif wrapped and (word.startswith("-") or word[0].isdigit()):
            index += 1
        else:
            break
    return " ".join(words[index:])


def _runs_network_tool(text: str) -> bool:
    for segment in split_pipeline(text):
        segment = command_program(segment)
        if posixpath.basename(first_word(segment)) in NETWORK_COMMANDS:
            return True
        if NETWORK_COMPOUND_RE.match(segment):
            return True
    return False


def detect_network_command(command: str) -> bool:
    """Return ``True`` if any stage of *command* runs a network tool.

    Single-quoted text is ignored and the command is split on ``&&``,
    ``||``, ``;`` and ``|``.  A stage is network-touching when its
    program (by basename, after any wrapper such as ``sudo`` or ``env``)
    is a known network tool, or it starts with a compound form such as
    ``git clone`` or ``pip install``.  The commands inside ``$(...)``,
    backticks and ``<(...)`` are checked the same way.
    """
    if not command:
        return False
    stripped = strip_single_quotes(command)
    if _runs_network_tool(stripped):
        return True
    return any(
        _runs_network_tool(stripped[match.end() :])
        for match in _SUBSTITUTION_RE.finditer(stripped)
    )
