"""
Manual Field Extractor - pulls named string values straight out of text that
no decoder accepts.

A value ends at a quote followed (after whitespace) by `,`, `}`, `]` or the
end of input. That is a heuristic: content holding a quote directly before
one of those characters is cut short there. Values that never reach such a
quote are kept and flagged as truncated for the completeness repairer.
"""

import re
from typing import Dict, List, Optional, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.logging_config import logger
from bundle_repair.schemas.bundle import FileKind, canonical_file_names
from bundle_repair.services.bundle_extraction.models import METADATA_FIELDS, FieldSpan, RawBundle
from bundle_repair.services.bundle_extraction.scanner import (
    MarkupKind,
    split_markup,
)


VALUE_TERMINATORS = (',', '}', ']')

_SIMPLE_ESCAPES = {
    'n': '\n',
    'r': '\r',
    't': '\t',
    'f': '\f',
    'b': '\b',
    '"': '"',
    "'": "'",
    '\\': '\\',
    '/': '/',
}

_EMBEDDED_DOCUMENT_START = re.compile(r'<!DOCTYPE\s+html|<html[\s>]', re.IGNORECASE)
_EMBEDDED_DOCUMENT_END = re.compile(r'</html\s*>', re.IGNORECASE)


def field_aliases() -> Dict[FileKind, List[str]]:
    """Names tried per kind, canonical name first"""
    names = canonical_file_names()
    stylesheet = [names[FileKind.STYLESHEET]]
    stylesheet += [alias for alias in settings.STYLESHEET_ALIASES if alias not in stylesheet]
    return {
        FileKind.MARKUP: [names[FileKind.MARKUP], "html"],
        FileKind.STYLESHEET: stylesheet + ["css"],
        FileKind.SCRIPT: [names[FileKind.SCRIPT], "js"],
    }


def _field_patterns(name: str) -> List[Tuple[re.Pattern, str]]:
    escaped = re.escape(name)
    patterns = [
        (re.compile(rf'"{escaped}"\s*:\s*"', re.IGNORECASE), '"'),
        (re.compile(rf"'{escaped}'\s*:\s*\"", re.IGNORECASE), '"'),
        (re.compile(rf'"{escaped}"\s*:\s*`', re.IGNORECASE), '`'),
    ]
    if '.' in name:
        # Bare names only when dotted, so `html: "` inside prose or code is not picked up
        patterns.append((re.compile(rf'(?<![\w"\'.]){escaped}\s*:\s*"', re.IGNORECASE), '"'))
    return patterns


def find_field_start(text: str, name: str) -> Optional[Tuple[int, str]]:
    """
    Locate the opening quote of `name`'s value.

    Returns:
        (offset just past the opening quote, quote character) or None
    """
    for pattern, quote in _field_patterns(name):
        match = pattern.search(text)
        if match:
            return match.end(), quote
    return None


def read_quoted_value(text: str, start: int, quote: str = '"', limit: Optional[int] = None) -> FieldSpan:
    """
    Read an escaped value starting just after its opening quote.

    The returned content is still escaped; `end` is the offset of the closing
    quote, or where reading stopped when `terminated` is False.
    """
    if limit is None:
        limit = settings.FIELD_CHAR_LIMIT

    n = len(text)
    stop = min(n, start + limit)
    escaped = False
    i = start

    while i < stop:
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == '\\':
            escaped = True
        elif ch == quote:
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j >= n or text[j] in VALUE_TERMINATORS:
                return FieldSpan(content=text[start:i], end=i, terminated=True)
        i += 1

    if stop < n:
        logger.warning(
            f"[FieldExtractor] Value exceeded {limit} chars, keeping what was read",
            extra={"field_start": start}
        )
    return FieldSpan(content=text[start:stop], end=stop, terminated=False)


def unescape_value(raw: str) -> str:
    """
    Single-pass unescape of JSON-style escapes (plus \\' and \\xXX).

    Unknown escapes are kept verbatim and a dangling trailing backslash is
    dropped.
    """
    if '\\' not in raw:
        return raw

    out = []
    n = len(raw)
    i = 0
    while i < n:
        ch = raw[i]
        if ch != '\\':
            out.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            break

        nxt = raw[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == 'u' and _is_hex(raw[i + 2:i + 6], 4):
            out.append(chr(int(raw[i + 2:i + 6], 16)))
            i += 6
        elif nxt == 'x' and _is_hex(raw[i + 2:i + 4], 2):
            out.append(chr(int(raw[i + 2:i + 4], 16)))
            i += 4
        else:
            out.append(raw[i:i + 2])
            i += 2

    return ''.join(out)


def _is_hex(chunk: str, width: int) -> bool:
    return len(chunk) == width and all(c in '0123456789abcdefABCDEF' for c in chunk)


def decode_field(span: FieldSpan, quote: str) -> str:
    """Unescape a value according to how it was delimited"""
    if quote == '`':
        # Literal blocks hold source text as-is; only the delimiter itself is escaped
        return span.content.replace('\\`', '`')
    return unescape_value(span.content)


def read_field(text: str, name: str, limit: Optional[int] = None) -> Optional[Tuple[str, FieldSpan, int]]:
    """Find and read one field; returns (decoded value, raw span, value start)"""
    found = find_field_start(text, name)
    if found is None:
        return None
    start, quote = found
    span = read_quoted_value(text, start, quote, limit=limit)
    return decode_field(span, quote), span, start


# =============================================================================
# Embedded fallbacks
# =============================================================================

def _maybe_unescape(content: str) -> str:
    # Tags copied out of an escaped string value still carry literal \n sequences
    if '\\n' in content and '\n' not in content:
        return unescape_value(content)
    return content


def find_embedded_document(text: str) -> Optional[Tuple[str, int, int, bool]]:
    """
    Raw markup document written straight into the text.

    Returns:
        (content, start, end, terminated) or None
    """
    match = _EMBEDDED_DOCUMENT_START.search(text)
    if match is None:
        return None
    start = match.start()
    close = _EMBEDDED_DOCUMENT_END.search(text, start)
    if close is None:
        return _maybe_unescape(text[start:]), start, len(text), False
    return _maybe_unescape(text[start:close.end()]), start, close.end(), True


def find_embedded_block(text: str, tag: str) -> Optional[str]:
    """Body of the first `<style>` / inline `<script>` block in the text"""
    segments = split_markup(text)
    for index, segment in enumerate(segments):
        if not segment.is_open(tag) or segment.self_closing:
            continue
        if tag == "script" and "src" in segment.attrs:
            continue
        body = segments[index + 1] if index + 1 < len(segments) else None
        if body is None or body.kind is not MarkupKind.RAW:
            continue
        content = _maybe_unescape(body.text(text)).strip()
        if content:
            return content
    return None


# =============================================================================
# Metadata and files
# =============================================================================

def extract_metadata(text: str) -> Dict[str, str]:
    """Metadata strings that were read to a proper terminator"""
    metadata: Dict[str, str] = {}
    lookups = [(key, key) for key in METADATA_FIELDS] + [("usedModel", "model")]

    for key, name in lookups:
        if key in metadata:
            continue
        result = read_field(text, name, limit=settings.METADATA_CHAR_LIMIT)
        if result is None:
            continue
        value, span, _ = result
        if span.terminated and value.strip():
            metadata[key] = value

    return metadata


def extract_files(text: str) -> RawBundle:
    """
    Recover each canonical file from free text.

    Field patterns are tried per alias; the markup falls back to a raw
    document in the text, and stylesheet / script fall back to the first
    matching tag outside the recovered markup.
    """
    bundle = RawBundle()
    markup_span: Optional[Tuple[int, int]] = None

    for kind, names in field_aliases().items():
        for name in names:
            result = read_field(text, name)
            if result is None:
                continue
            value, span, start = result
            if not value.strip():
                continue
            bundle.set(kind, value, truncated=not span.terminated)
            if kind is FileKind.MARKUP:
                markup_span = (start, span.end)
            logger.debug(
                f"[FieldExtractor] {name}: {len(value)} chars"
                + ("" if span.terminated else " (truncated)")
            )
            break

    if bundle.get(FileKind.MARKUP) is None:
        embedded = find_embedded_document(text)
        if embedded is not None:
            content, start, end, terminated = embedded
            bundle.set(FileKind.MARKUP, content, truncated=not terminated)
            markup_span = (start, end)
            logger.debug(f"[FieldExtractor] Embedded markup document: {len(content)} chars")

    remaining = text
    if markup_span is not None:
        remaining = text[:markup_span[0]] + text[markup_span[1]:]

    for kind, tag in ((FileKind.STYLESHEET, "style"), (FileKind.SCRIPT, "script")):
        if bundle.get(kind) is not None:
            continue
        content = find_embedded_block(remaining, tag)
        if content is not None:
            bundle.set(kind, content)
            logger.debug(f"[FieldExtractor] Embedded <{tag}> block: {len(content)} chars")

    bundle.metadata = extract_metadata(text)
    return bundle
