"""Shell command lexing shared by the command and network guards.

These helpers do not attempt to be a full POSIX shell parser.  They
implement exactly the transformations the guards rely on:

* Single-quoted strings are inert literals and are emptied before any
  pattern matching (``echo 'rm -rf /'`` becomes ``echo ''``).  Double
  quotes still undergo expansion, so their content is kept.
* Commands are split on the chaining operators ``&&``, ``||``, ``;`` and
  newlines, and optionally on pipes, but never inside quotes or after a
  backslash escape.
"""
from __future__ import annotations

_CHAIN = "chain"
_PIPE = "pipe"


def strip_single_quotes(command: str) -> str:
    """Replace the content of every single-quoted literal with ``''``.

    Only quotes that open outside double quotes and outside a backslash
    escape start a literal, so the apostrophe in ``"don't"`` is kept as
    text.  An unterminated literal is left unchanged.
    """
    out: list[str] = []
    in_double = False
    i = 0
    n = len(command)

    while i < n:
        ch = command[i]

        if ch == "\\" and i + 1 < n:
            out.append(command[i : i + 2])
            i += 2
            continue

        if in_double:
            if ch == '"':
                in_double = False
            out.append(ch)
            i += 1
            continue

        if ch == '"':
            in_double = True
            out.append(ch)
            i += 1
            continue

        if ch == "'":
            end = command.find("'", i + 1)
            if end == -1:
                out.append(command[i:])
                break
            out.append("''")
            i = end + 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


def _scan(command: str, split_on: frozenset[str]) -> list[str]:
    """Split *command* on the unquoted operators named in *split_on*.

    Returns the raw pieces, including empty ones, so callers can tell
    ``"| sh"`` (an empty head) from ``"sh"``.
    """
    pieces: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    n = len(command)

    while i < n:
        ch = command[i]

        if quote is not None:
            current.append(ch)
            if ch == "\\" and quote == '"' and i + 1 < n:
                current.append(command[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue

        if ch == "\\" and i + 1 < n:
            current.append(command[i : i + 2])
            i += 2
            continue

        if ch in ("'", '"'):
            quote = ch
            current.append(ch)
            i += 1
            continue

        pair = command[i : i + 2]
        if pair in ("&&", "||"):
            if _CHAIN in split_on:
                pieces.append("".join(current))
                current = []
            else:
                current.append(pair)
            i += 2
            continue

        if ch in (";", "\n"):
            if _CHAIN in split_on:
                pieces.append("".join(current))
                current = []
            else:
                current.append(ch)
            i += 1
            continue

        if ch == "|" and _PIPE in split_on:
            pieces.append("".join(current))
            current = []
            i += 1
            continue

        current.append(ch)
        i += 1

    pieces.append("".join(current))
    return pieces


def split_command(command: str) -> list[str]:
    """Split on unquoted ``&&``, ``||``, ``;`` and newlines.

    Segments are trimmed and empty segments dropped:
    ``split_command("a && b || c; d") == ["a", "b", "c", "d"]``.
    """
    segments = (piece.strip() for piece in _scan(command, frozenset({_CHAIN})))
    return [segment for segment in segments if segment]


def split_pipeline(command: str) -> list[str]:
    """Split on chaining operators *and* single pipes.

    Used to find the program at command position in every stage.
    """
    segments = (piece.strip() for piece in _scan(command, frozenset({_CHAIN, _PIPE})))
    return [segment for segment in segments if segment]


def extract_pipe_targets(segment: str) -> list[str]:
    """Return the first word of every pipeline stage after the first ``|``.

    ``"curl url | transform | sh"`` yields ``["transform", "sh"]``.
    """
    stages = _scan(segment, frozenset({_PIPE}))[1:]
    targets: list[str] = []
    for stage in stages:
        words = stage.split()
        if words:
            targets.append(words[0])
    return targets


def all_pipe_targets_safe(segment: str, safe_targets: frozenset[str]) -> bool:
    """Return ``True`` only if *segment* pipes and every target is safe.

    A segment with no pipe targets is not a pipeline, so this returns
    ``False`` for it.
    """
    targets = extract_pipe_targets(segment)
    if not targets:
        return False
    return all(target in safe_targets for target in targets)


def first_word(segment: str) -> str:
    """Return the program name at command position, or ``""``."""
    words = segment.split()
    return words[0] if words else ""
