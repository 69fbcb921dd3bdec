"""
JSON Repair - Recover JSON documents from unreliable model output.

Model text that is supposed to be JSON arrives wrapped in prose, fenced in
markdown, written with JavaScript-isms, or cut off mid-structure. Recovery
runs in three tiers, strictly in order:

1. fenced_json: ```json fences, then any balanced {...} span, parsed as-is
2. normalized_json: strip comments, single -> double quotes, quote bare keys,
   drop trailing commas, then reparse
3. truncation_repair: close an unterminated string and the open brackets
   (string-aware stack), backing off to earlier cut points until it parses

Nothing in this module raises on bad input.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

_FENCE_PATTERNS = [
    re.compile(r"```json\s*(.*?)(?:```|$)", re.I | re.S),
    re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.S),
]
_IDENT = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_LITERALS = {"True": "true", "False": "false", "None": "null", "undefined": "null"}


def _scan_string(text: str, start: int, quote: str) -> Tuple[int, bool]:
    """Return (index after the closing quote, closed) for a string at `start`."""
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1, True
        i += 1
    return n, False


def _balanced_spans(text: str) -> List[str]:
    """Find complete top-level {...} spans, ignoring braces inside double-quoted strings."""
    spans: List[str] = []
    i, n = 0, len(text)
    while i < n:
        start = text.find("{", i)
        if start < 0:
            break
        depth = 0
        j = start
        while j < n:
            ch = text[j]
            if ch == '"':
                j, closed = _scan_string(text, j, '"')
                if not closed:
                    break
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    spans.append(text[start:j + 1])
                    break
            j += 1
        if depth > 0:
            break
        i = j + 1
    return spans


def find_json_candidates(text: str) -> List[str]:
    """Candidate JSON snippets in priority order: whole text, fences, brace spans."""
    if not text:
        return []
    candidates: List[str] = []
    stripped = text.strip()
    if stripped[:1] in ("{", "["):
        candidates.append(stripped)
    for pattern in _FENCE_PATTERNS:
        for match in pattern.finditer(text):
            body = match.group(1).strip()
            if body:
                candidates.append(body)
    candidates.extend(_balanced_spans(text))

    seen = set()
    unique = []
    for c in candidates:
        if c not in seen:
            seen.add(c)
            unique.append(c)
    return unique


_OPENERS = {"{": "}", "[": "]"}


def _open_tail_start(text: str) -> Optional[int]:
    """Index of the first '{' or '[' that never closes, ignoring string contents."""
    i, n = 0, len(text)
    while i < n:
        if text[i] not in _OPENERS:
            i += 1
            continue
        start = i
        stack = [_OPENERS[text[i]]]
        j = i + 1
        while j < n and stack:
            ch = text[j]
            if ch == '"':
                j, closed = _scan_string(text, j, '"')
                if not closed:
                    break
                continue
            if ch in _OPENERS:
                stack.append(_OPENERS[ch])
            elif ch == stack[-1]:
                stack.pop()
            elif ch in ("}", "]"):
                # Mismatched closer: not a JSON structure, move past the opener
                break
            j += 1
        if stack and j >= n:
            return start
        i = start + 1 if stack else j
    return None


def find_open_json(text: str) -> Optional[str]:
    """Text from the first unclosed '{' or '[' to the end, minus a trailing fence."""
    if not text:
        return None
    start = _open_tail_start(text)
    if start is None:
        return None
    return text[start:].rstrip().rstrip("`").rstrip()


def _strip_comments(text: str) -> str:
    out: List[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch in ('"', "'"):
            end, _ = _scan_string(text, i, ch)
            out.append(text[i:end])
            i = end
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline < 0 else newline
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close < 0 else close + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _requote(body: str, closed: bool) -> str:
    """Rewrite the body of a single-quoted string as a double-quoted one."""
    body = body.replace("\\'", "'")
    body = re.sub(r'(?<!\\)"', '\\"', body)
    return '"' + body + ('"' if closed else "")


def _last_significant(out: List[str]) -> str:
    for chunk in reversed(out):
        stripped = chunk.rstrip()
        if stripped:
            return stripped[-1]
    return ""


def normalize_json(text: str) -> str:
    """
    Apply the common fixups for almost-JSON.

    Comments are stripped, single-quoted strings become double-quoted,
    bare object keys are quoted, Python/JS literals are mapped to JSON and
    trailing commas before a closing bracket are removed. String contents are
    never touched.
    """
    text = _strip_comments(text)
    out: List[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            end, _ = _scan_string(text, i, '"')
            out.append(text[i:end])
            i = end
            continue
        if ch == "'":
            end, closed = _scan_string(text, i, "'")
            out.append(_requote(text[i + 1:end - 1] if closed else text[i + 1:end], closed))
            i = end
            continue
        if ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "}]":
                i += 1
                continue
        m = _IDENT.match(text, i)
        if m:
            word = m.group(0)
            j = m.end()
            k = j
            while k < n and text[k] in " \t":
                k += 1
            if k < n and text[k] == ":" and _last_significant(out) in ("{", ","):
                out.append(f'"{word}"')
            else:
                out.append(_LITERALS.get(word, word))
            i = j
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _close(text: str) -> Tuple[str, List[int]]:
    """
    Balance a truncated document.

    Returns the closed text plus the structural cut points (before each
    top-level-or-nested comma and after each opening bracket) to back off to
    if the closed text still does not parse.
    """
    stack: List[str] = []
    cuts: List[int] = []
    in_string = False
    escape = False
    for idx, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
            cuts.append(idx + 1)
        elif ch in "}]":
            if stack and stack[-1] == ch:
                stack.pop()
        elif ch == "," and stack:
            cuts.append(idx)

    out = text
    if in_string:
        if escape:
            out = out[:-1]
        out += '"'
    out = out.rstrip()
    if out.endswith(","):
        out = out[:-1].rstrip()
    if out.endswith(":"):
        out += " null"
    return out + "".join(reversed(stack)), cuts


def _loads(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        return False, None


def close_truncated_json(text: str) -> str:
    """
    Return a parseable document recovered from truncated JSON text.

    First closes the text as-is; if that does not parse, retries from each
    earlier structural cut point (latest first). Falls back to "{}".
    """
    normalized = normalize_json(text or "")
    start = min((p for p in (normalized.find("{"), normalized.find("[")) if p >= 0), default=-1)
    if start < 0:
        return "{}"
    normalized = normalized[start:]

    closed, cuts = _close(normalized)
    if _loads(closed)[0]:
        return closed
    for cut in sorted(set(cuts), reverse=True):
        candidate, _ = _close(normalized[:cut])
        if _loads(candidate)[0]:
            logger.debug("Truncation repair backed off to offset %d of %d", cut, len(normalized))
            return candidate
    return "{}"


def repair_truncated_json(text: str) -> Optional[Any]:
    ok, payload = _loads(close_truncated_json(text))
    return payload if ok else None


def repair_json(text: str) -> str:
    """
    Return `text` as a parseable JSON document.

    Valid JSON comes back unchanged; otherwise normalization is tried, then
    truncation repair.
    """
    if _loads(text)[0]:
        return text
    normalized = normalize_json(text)
    if _loads(normalized)[0]:
        return normalized
    return close_truncated_json(text)


# ============================================================================
# TIERS
# ============================================================================

def fenced_payloads(text: str) -> Iterator[Any]:
    for candidate in find_json_candidates(text):
        ok, payload = _loads(candidate)
        if ok:
            yield payload


def normalized_payloads(text: str) -> Iterator[Any]:
    for candidate in find_json_candidates(text):
        ok, payload = _loads(normalize_json(candidate))
        if ok:
            yield payload


def truncated_payloads(text: str) -> Iterator[Any]:
    tail = find_open_json(text)
    if tail is None:
        return
    payload = repair_truncated_json(tail)
    if payload is not None:
        yield payload


JSON_TIERS: Tuple[Tuple[str, Callable[[str], Iterator[Any]]], ...] = (
    ("fenced_json", fenced_payloads),
    ("normalized_json", normalized_payloads),
    ("truncation_repair", truncated_payloads),
)


def parse_json_payload(
    text: Optional[str],
    accept: Optional[Callable[[Any], bool]] = None,
) -> Tuple[Optional[Any], Optional[str]]:
    """
    Recover the first acceptable JSON payload from model text.

    Args:
        text: Raw model output
        accept: Optional predicate; payloads it rejects are skipped

    Returns:
        (payload, tier name), or (None, None) if no tier produced one
    """
    if not text or not isinstance(text, str):
        return None, None
    for tier, payloads in JSON_TIERS:
        for payload in payloads(text):
            if accept is None or accept(payload):
                return payload, tier
    return None, None


__all__ = [
    "JSON_TIERS",
    "close_truncated_json",
    "find_json_candidates",
    "find_open_json",
    "normalize_json",
    "parse_json_payload",
    "repair_json",
    "repair_truncated_json",
]
