"""
String Repair Normalizer - rewrites a candidate document region so that a
strict JSON decoder is more likely to accept it.

Steps, in order:
1. Literal blocks (backtick strings) -> double-quoted strings
2. Strip control characters outside the JSON escape set
3. Remove trailing commas before a closing bracket
4. Escape raw newlines / tabs / CRs left inside double-quoted strings
5. Quote bare field names

Each step only looks at the string segmentation of the text, so none of them
needs a successful parse.
"""

import re
from typing import Callable, List

from bundle_repair.core.logging_config import logger
from bundle_repair.services.bundle_extraction.scanner import Segment, split_string_segments


# Control characters with a JSON escape of their own
_ESCAPABLE_CONTROLS = {
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\f': '\\f',
    '\b': '\\b',
}

# Everything in C0/C1 except the characters above
_STRIPPED_CONTROLS = re.compile(r'[\x00-\x07\x0B\x0E-\x1F\x7F-\x9F]')
_OUTSIDE_STRING_CONTROLS = re.compile(r'[\x08\x0C]')
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')
_BARE_KEY = re.compile(r'([{,]\s*)([A-Za-z_$][\w$.\-]*)(\s*:)')


def escape_literal_block(content: str) -> str:
    """Escape the interior of a backtick block for a double-quoted string"""
    return (
        content
        .replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\r', '\\r')
        .replace('\t', '\\t')
        .replace('\f', '\\f')
        .replace('\b', '\\b')
    )


def _rewrite(text: str, segments: List[Segment], string_fn: Callable[[Segment, str], str] = None,
             code_fn: Callable[[str], str] = None) -> str:
    parts = []
    for segment in segments:
        chunk = segment.text(text)
        if segment.is_string:
            parts.append(string_fn(segment, chunk) if string_fn else chunk)
        else:
            parts.append(code_fn(chunk) if code_fn else chunk)
    return ''.join(parts)


def convert_literal_blocks(text: str) -> str:
    """Rewrite `...` values as "..." with their interior re-escaped"""
    if '`' not in text:
        return text

    def convert(segment: Segment, chunk: str) -> str:
        if segment.delimiter != '`':
            return chunk
        inner = chunk[1:-1] if segment.terminated else chunk[1:]
        # An escaped delimiter is a plain backtick; other backslashes stay literal
        inner = inner.replace("\\`", "`")
        converted = '"' + escape_literal_block(inner)
        return converted + '"' if segment.terminated else converted

    segments = split_string_segments(text, quotes=('"', '`'))
    return _rewrite(text, segments, string_fn=convert)


def strip_control_characters(text: str) -> str:
    """Drop control characters JSON has no escape for"""
    return _STRIPPED_CONTROLS.sub('', text)


def remove_trailing_commas(text: str) -> str:
    """Remove separators directly before `}` or `]` outside strings"""
    segments = split_string_segments(text)
    return _rewrite(text, segments, code_fn=lambda chunk: _TRAILING_COMMA.sub(r'\1', chunk))


def escape_raw_controls_in_strings(text: str) -> str:
    """Escape literal newlines etc. inside strings; drop stray ones outside"""

    def escape(segment: Segment, chunk: str) -> str:
        if not any(ch in chunk for ch in _ESCAPABLE_CONTROLS):
            return chunk
        return ''.join(_ESCAPABLE_CONTROLS.get(ch, ch) for ch in chunk)

    segments = split_string_segments(text)
    return _rewrite(text, segments, string_fn=escape,
                    code_fn=lambda chunk: _OUTSIDE_STRING_CONTROLS.sub('', chunk))


def quote_bare_keys(text: str) -> str:
    """`{name: ...}` -> `{"name": ...}`"""
    segments = split_string_segments(text)
    return _rewrite(text, segments, code_fn=lambda chunk: _BARE_KEY.sub(r'\1"\2"\3', chunk))


def normalize_document(region: str) -> str:
    """Apply every repair step to a candidate document region"""
    steps = (
        ("literal blocks", convert_literal_blocks),
        ("control characters", strip_control_characters),
        ("trailing commas", remove_trailing_commas),
        ("raw controls in strings", escape_raw_controls_in_strings),
        ("bare keys", quote_bare_keys),
    )

    repaired = region
    for name, step in steps:
        before = repaired
        repaired = step(repaired)
        if repaired != before:
            logger.debug(f"[Normalizer] {name}: {len(before)} -> {len(repaired)} chars")

    return repaired
