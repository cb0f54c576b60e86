"""
File Completeness Repairer - closes whatever truncation left open

- Markup: drops a cut-off trailing tag/comment, closes an open script/style
  body, and makes sure the document skeleton exists
- Script / stylesheet: trims an unterminated string or comment back to its
  line and appends closers for unmatched brackets
- Content with nothing recognisable for its kind becomes the safe default
"""

import re
from dataclasses import replace
from typing import Dict, List, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.logging_config import logger
from bundle_repair.schemas.bundle import FileKind, canonical_file_names
from bundle_repair.services.bundle_extraction.models import RawBundle, RepairOutcome
from bundle_repair.services.bundle_extraction.scanner import (
    ALL_COMMENTS,
    BLOCK_COMMENTS,
    BRACKET_PAIRS,
    SCRIPT_QUOTES,
    STYLESHEET_QUOTES,
    MarkupKind,
    MarkupSegment,
    closing_sequence,
    outline_markup,
    scan_brackets,
    split_markup,
)
from bundle_repair.services.bundle_extraction.templates import is_safe_default, safe_default


STYLESHEET_PAIRS: Dict[str, str] = {'{': '}', '(': ')'}

RECOGNIZABLE_PATTERNS: Dict[FileKind, List[re.Pattern]] = {
    FileKind.MARKUP: [re.compile(r'<[a-zA-Z!]')],
    FileKind.STYLESHEET: [
        re.compile(r'\{[^{}]*:'),
        re.compile(r'@(media|import|keyframes|font-face)\b'),
        re.compile(r':root\b'),
    ],
    FileKind.SCRIPT: [
        re.compile(r'\b(function|const|let|var|class|return)\b'),
        re.compile(r'=>'),
        re.compile(r'\b(document|console|window)\.'),
        re.compile(r'addEventListener'),
    ],
}


def lexical_profile(kind: FileKind) -> Tuple[Tuple[str, ...], tuple, Dict[str, str]]:
    """(quotes, comment kinds, bracket pairs) used when scanning `kind`"""
    if kind is FileKind.STYLESHEET:
        # `//` shows up in url(...) values, so only block comments count
        return STYLESHEET_QUOTES, BLOCK_COMMENTS, STYLESHEET_PAIRS
    return SCRIPT_QUOTES, ALL_COMMENTS, BRACKET_PAIRS


def is_recognizable(content: str, kind: FileKind) -> bool:
    """Content holds at least one construct typical for its kind"""
    return any(pattern.search(content) for pattern in RECOGNIZABLE_PATTERNS[kind])


# =============================================================================
# Script / stylesheet
# =============================================================================

def repair_code(content: str, kind: FileKind, truncated: bool = False) -> RepairOutcome:
    """
    Close a script or stylesheet.

    When truncated, an unterminated string or comment is cut back to the
    start of the line it opened on. Unmatched openers are then closed in
    nesting order.
    """
    quotes, comments, pairs = lexical_profile(kind)
    outcome = RepairOutcome(content=content)

    report = scan_brackets(content, pairs, quotes=quotes, comments=comments)
    if truncated and (report.state.in_string or report.state.in_comment):
        token_start = report.state.token_start
        line_start = content.rfind('\n', 0, token_start) + 1
        outcome.content = content[:line_start].rstrip()
        outcome.actions.append(f"cut open {'string' if report.state.in_string else 'comment'} at line start")
        report = scan_brackets(outcome.content, pairs, quotes=quotes, comments=comments)

    if report.unclosed and not report.open_token:
        closers = closing_sequence(report.unclosed, pairs)
        outcome.content = outcome.content.rstrip() + '\n' + closers
        outcome.actions.append(f"appended '{closers}'")

    return outcome


# =============================================================================
# Markup
# =============================================================================

def _head_block() -> str:
    return (
        "<head>\n"
        '<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        "</head>"
    )


def _shifted(segments: List[MarkupSegment], offset: int) -> List[MarkupSegment]:
    return [replace(s, start=s.start + offset, end=s.end + offset) for s in segments]


def _splice(
    content: str, segments: List[MarkupSegment], start: int, end: int, snippet: str
) -> Tuple[str, List[MarkupSegment]]:
    """
    Replace content[start:end] with `snippet` and keep the segments in step.

    Only the snippet is segmented; segments around the edit are clipped or
    shifted. Both offsets must sit on segment boundaries or inside text.
    """
    delta = len(snippet) - (end - start)
    head = [replace(s, end=min(s.end, start)) for s in segments if s.start < start]
    tail = [
        replace(s, start=max(s.start, end) + delta, end=s.end + delta)
        for s in segments if s.end > end
    ]
    return content[:start] + snippet + content[end:], head + _shifted(split_markup(snippet), start) + tail


def _append(content: str, segments: List[MarkupSegment], snippet: str) -> Tuple[str, List[MarkupSegment]]:
    """Drop trailing whitespace, then append `snippet`"""
    return _splice(content, segments, len(content.rstrip()), len(content), snippet)


def _leading_space_end(content: str, start: int) -> int:
    rest = content[start:]
    return start + len(rest) - len(rest.lstrip())


def _close_open_tail(
    content: str, segments: List[MarkupSegment], actions: List[str]
) -> Tuple[str, List[MarkupSegment]]:
    """Handle a last segment cut off by truncation"""
    if not segments or segments[-1].terminated:
        return content, segments

    last = segments[-1]
    if last.kind is MarkupKind.RAW:
        body_kind = FileKind.SCRIPT if last.name == "script" else FileKind.STYLESHEET
        body = repair_code(content[last.start:], body_kind, truncated=True).content
        closer = f"\n</{last.name}>"
        actions.append(f"closed open <{last.name}> body")
        # the repaired body is script/style text, never markup
        kept = segments[:-1]
        if body:
            kept.append(replace(last, end=last.start + len(body), terminated=True))
        kept.extend(_shifted(split_markup(closer), last.start + len(body)))
        return content[:last.start] + body + closer, kept

    actions.append(f"dropped cut-off {last.kind.value}")
    return _splice(content, segments, len(content[:last.start].rstrip()), len(content), "")


def _wrap_fragment(content: str, segments: List[MarkupSegment]) -> str:
    body = content
    if segments and segments[0].kind is MarkupKind.DOCTYPE:
        body = content[segments[0].end:].lstrip()
    elif segments and segments[0].kind is MarkupKind.TEXT and not segments[0].text(content).strip() \
            and len(segments) > 1 and segments[1].kind is MarkupKind.DOCTYPE:
        body = content[segments[1].end:].lstrip()
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{settings.DOCUMENT_LANG}">\n'
        f"{_head_block()}\n"
        "<body>\n"
        f"{body}\n"
        "</body>\n"
        "</html>"
    )


def _complete_skeleton(content: str, segments: List[MarkupSegment], actions: List[str]) -> str:
    """Synthesise missing skeleton tags around an existing document"""
    outline = outline_markup(content, segments)

    if outline.count_close("head") < outline.count_open("head") and not outline.count_open("body"):
        content, segments = _append(content, segments, "\n</head>")
        actions.append("closed <head>")
        outline = outline_markup(content, segments)

    if not outline.count_open("head"):
        anchor = next((s for s in segments if s.is_open("body")), None)
        if anchor is not None:
            content, segments = _splice(content, segments, anchor.start, anchor.start, _head_block() + "\n")
        else:
            html_open = next((s for s in segments if s.is_open("html")), None)
            if html_open is not None:
                content, segments = _splice(content, segments, html_open.end, html_open.end, "\n" + _head_block())
        actions.append("inserted <head>")
        outline = outline_markup(content, segments)

    if not outline.count_open("body"):
        head_close = next((s for s in reversed(segments) if s.is_close("head")), None)
        if head_close is not None:
            html_close = next((s for s in segments if s.is_close("html") and s.start > head_close.end), None)
            end = html_close.start if html_close is not None else len(content)
            inner_start = min(_leading_space_end(content, head_close.end), end)
            inner_end = max(inner_start, len(content[:end].rstrip()))
            closer = ("\n" if inner_end > inner_start else "") + "</body>" + ("\n" if html_close is not None else "")
            # closer first so the opening offsets stay valid
            content, segments = _splice(content, segments, inner_end, end, closer)
            content, segments = _splice(content, segments, head_close.end, inner_start, "\n<body>\n")
            actions.append("inserted <body>")
            outline = outline_markup(content, segments)

    if not outline.count_open("html"):
        first = segments[0] if segments else None
        if first is not None and first.kind is MarkupKind.DOCTYPE:
            content, segments = _splice(
                content, segments, first.end, _leading_space_end(content, first.end),
                f'\n<html lang="{settings.DOCUMENT_LANG}">\n'
            )
        else:
            content, segments = _splice(content, segments, 0, 0, f'<html lang="{settings.DOCUMENT_LANG}">\n')
        actions.append("inserted <html>")
        outline = outline_markup(content, segments)

    if not outline.has_doctype:
        content, segments = _splice(content, segments, 0, _leading_space_end(content, 0), "<!DOCTYPE html>\n")
        actions.append("inserted doctype")

    return _close_skeleton(content, segments, actions)


def _close_skeleton(content: str, segments: List[MarkupSegment], actions: List[str]) -> str:
    outline = outline_markup(content, segments)
    if outline.count_close("body") < outline.count_open("body"):
        html_close = next((s for s in segments if s.is_close("html")), None)
        if html_close is not None:
            cut = len(content[:html_close.start].rstrip())
            content, segments = _splice(content, segments, cut, html_close.start, "\n</body>\n")
        else:
            content, segments = _append(content, segments, "\n</body>")
        actions.append("closed <body>")
    if outline.count_close("html") < outline.count_open("html"):
        content = content.rstrip() + "\n</html>"
        actions.append("closed <html>")
    return content


def repair_markup(content: str, truncated: bool = False) -> RepairOutcome:
    """
    Make a markup file a complete document.

    Complete documents only get missing `</body>` / `</html>` closers;
    truncated content and fragments get the full skeleton. The markup is
    segmented once; each edit only segments the text it inserts.
    """
    actions: List[str] = []
    segments = split_markup(content)
    repaired = content
    if truncated:
        repaired, segments = _close_open_tail(content, segments, actions)

    outline = outline_markup(repaired, segments)
    if outline.is_fragment():
        repaired = _wrap_fragment(repaired, segments)
        actions.append("wrapped fragment in document skeleton")
    elif truncated:
        repaired = _complete_skeleton(repaired, segments, actions)
    else:
        repaired = _close_skeleton(repaired, segments, actions)

    return RepairOutcome(content=repaired, actions=actions)


# =============================================================================
# Bundle
# =============================================================================

def repair_file(content: str, kind: FileKind, truncated: bool = False) -> RepairOutcome:
    """Repair one file, substituting the safe default when nothing is salvageable"""
    if is_safe_default(kind, content):
        return RepairOutcome(content=content)
    if not is_recognizable(content, kind):
        return RepairOutcome(content=safe_default(kind), actions=["replaced unrecognisable content"], replaced=True)
    if kind is FileKind.MARKUP:
        return repair_markup(content, truncated)
    return repair_code(content, kind, truncated)


def repair_bundle(bundle: RawBundle) -> RawBundle:
    """Repair every file of a bundle in place and return it"""
    for kind, name in canonical_file_names().items():
        content = bundle.files.get(name)
        if content is None or len(content.strip()) < settings.MIN_FILE_CONTENT_LENGTH:
            continue

        outcome = repair_file(content, kind, truncated=name in bundle.truncated)
        for action in outcome.actions:
            logger.log_repair(name, action)

        bundle.files[name] = outcome.content
        if outcome.replaced:
            bundle.replaced.add(name)
            bundle.warnings.append(f"{name} had no recognizable {kind.value} content and was replaced with a safe default")
            logger.warning(f"[Completeness] {name} unsalvageable, using safe default")

    return bundle
