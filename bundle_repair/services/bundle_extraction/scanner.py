"""
Structural Scanner - single-pass lexer shared by every extraction stage

Everything that needs to know whether a character is "real" structure or
sits inside a string / comment goes through `lex()`:

1. Document scanning: find the bracket that closes a `{` in LLM output
2. Bracket accounting for script and stylesheet repair
3. Blanked "structural views" for pattern checks that must ignore strings
4. String segmentation for the JSON repair normalizer
5. Markup segmentation (tags, comments, raw script/style bodies)

All functions are pure. Every loop is bounded by SCAN_CHAR_LIMIT.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.logging_config import logger
from bundle_repair.services.bundle_extraction.models import CandidateRegion


class Role(Enum):
    """Lexical role of a single character"""
    CODE = "code"
    ESCAPED = "escaped"
    STRING = "string"
    COMMENT = "comment"


class CommentKind(str, Enum):
    LINE = "line"
    BLOCK = "block"


DOCUMENT_QUOTES: Tuple[str, ...] = ('"', "'", '`')
SCRIPT_QUOTES: Tuple[str, ...] = ('"', "'", '`')
STYLESHEET_QUOTES: Tuple[str, ...] = ('"', "'")

ALL_COMMENTS: Tuple[CommentKind, ...] = (CommentKind.LINE, CommentKind.BLOCK)
BLOCK_COMMENTS: Tuple[CommentKind, ...] = (CommentKind.BLOCK,)
NO_COMMENTS: Tuple[CommentKind, ...] = ()

BRACKET_PAIRS: Dict[str, str] = {'{': '}', '(': ')', '[': ']'}


@dataclass
class LexState:
    """Scanner state for one scan; discarded afterwards"""
    position: int = 0
    depth: int = 0
    stack: List[str] = field(default_factory=list)
    string_delimiter: Optional[str] = None
    comment: Optional[CommentKind] = None
    escaped: bool = False
    processed: int = 0
    limit_reached: bool = False
    token_start: int = -1

    @property
    def in_string(self) -> bool:
        return self.string_delimiter is not None

    @property
    def in_comment(self) -> bool:
        return self.comment is not None

    @property
    def is_structural(self) -> bool:
        return not self.in_string and not self.in_comment


def lex(
    text: str,
    start: int = 0,
    *,
    quotes: Sequence[str] = SCRIPT_QUOTES,
    comments: Sequence[CommentKind] = ALL_COMMENTS,
    limit: Optional[int] = None,
    state: Optional[LexState] = None,
) -> Iterator[Tuple[int, str, Role]]:
    """
    Walk `text` from `start`, yielding (index, char, role) for every character.

    `state` is updated in place, so callers can inspect where the scan ended
    (still inside a string, limit reached, ...) after exhausting the iterator.
    """
    if state is None:
        state = LexState()
    if limit is None:
        limit = settings.SCAN_CHAR_LIMIT

    n = len(text)
    i = start
    while i < n:
        if state.processed >= limit:
            state.limit_reached = True
            state.position = i
            return
        state.processed += 1
        state.position = i
        ch = text[i]

        if state.comment is CommentKind.LINE:
            if ch == '\n':
                state.comment = None
                yield i, ch, Role.CODE
            else:
                yield i, ch, Role.COMMENT
            i += 1
            continue

        if state.comment is CommentKind.BLOCK:
            if ch == '*' and i + 1 < n and text[i + 1] == '/':
                state.comment = None
                state.processed += 1
                yield i, ch, Role.COMMENT
                yield i + 1, '/', Role.COMMENT
                i += 2
                continue
            yield i, ch, Role.COMMENT
            i += 1
            continue

        if state.escaped:
            state.escaped = False
            yield i, ch, Role.STRING if state.in_string else Role.ESCAPED
            i += 1
            continue

        if ch == '\\':
            state.escaped = True
            yield i, ch, Role.STRING if state.in_string else Role.ESCAPED
            i += 1
            continue

        if state.in_string:
            if ch == state.string_delimiter:
                state.string_delimiter = None
            yield i, ch, Role.STRING
            i += 1
            continue

        if ch == '/' and i + 1 < n:
            nxt = text[i + 1]
            kind = None
            if nxt == '/' and CommentKind.LINE in comments:
                kind = CommentKind.LINE
            elif nxt == '*' and CommentKind.BLOCK in comments:
                kind = CommentKind.BLOCK
            if kind is not None:
                state.comment = kind
                state.token_start = i
                state.processed += 1
                yield i, ch, Role.COMMENT
                yield i + 1, nxt, Role.COMMENT
                i += 2
                continue

        if ch in quotes:
            state.string_delimiter = ch
            state.token_start = i
            yield i, ch, Role.STRING
            i += 1
            continue

        yield i, ch, Role.CODE
        i += 1

    state.position = n


# =============================================================================
# Document regions
# =============================================================================

_DOCUMENT_START_PATTERNS = [
    re.compile(r'```json\s*\{', re.IGNORECASE),
    re.compile(r'```\s*\{'),
    re.compile(r'\{\s*"files"'),
    re.compile(r'^\s*\{', re.MULTILINE),
    re.compile(r'\{'),
]


def locate_document_starts(text: str, max_candidates: Optional[int] = None) -> List[int]:
    """Offsets of `{` characters likely to open the bundle document, best first"""
    if max_candidates is None:
        max_candidates = settings.MAX_CANDIDATE_REGIONS

    starts: List[int] = []
    for pattern in _DOCUMENT_START_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        offset = match.start() + match.group(0).index('{')
        if offset not in starts:
            starts.append(offset)
        if len(starts) >= max_candidates:
            break
    return starts


def find_matching_close(
    text: str,
    start: int,
    opener: str = '{',
    closer: str = '}',
    *,
    quotes: Sequence[str] = DOCUMENT_QUOTES,
    comments: Sequence[CommentKind] = ALL_COMMENTS,
    limit: Optional[int] = None,
) -> Optional[int]:
    """
    Find the offset of the bracket closing the one at `start`.

    Only characters outside strings and comments move the depth counter.
    If the processing cap is hit, the last `closer` after `start` is used
    instead of scanning further.
    """
    if start < 0 or start >= len(text) or text[start] != opener:
        return None

    state = LexState(position=start)
    for i, ch, role in lex(text, start, quotes=quotes, comments=comments, limit=limit, state=state):
        if role is not Role.CODE:
            continue
        if ch == opener:
            state.depth += 1
        elif ch == closer:
            state.depth -= 1
            if state.depth == 0:
                return i

    if state.limit_reached:
        last = text.rfind(closer, start + 1)
        logger.warning(
            f"Scan limit reached after {state.processed} chars, using last '{closer}'",
            extra={"scan_start": start, "fallback_end": last}
        )
        return last if last > start else None

    return None


def find_document_region(text: str, start: int, limit: Optional[int] = None) -> Optional[CandidateRegion]:
    """Region from `start` to its matching `}` or None"""
    end = find_matching_close(text, start, limit=limit)
    if end is None:
        return None
    return CandidateRegion(start=start, end=end)


# =============================================================================
# Bracket accounting
# =============================================================================

@dataclass
class BracketReport:
    """Unmatched brackets left after scanning a file"""
    unclosed: List[str]
    stray_closers: int
    state: LexState

    @property
    def open_token(self) -> bool:
        """Scan ended inside a string or block comment"""
        return self.state.in_string or self.state.comment is CommentKind.BLOCK

    @property
    def balanced(self) -> bool:
        return not self.unclosed and self.stray_closers == 0 and not self.open_token


def scan_brackets(
    text: str,
    pairs: Optional[Dict[str, str]] = None,
    *,
    quotes: Sequence[str] = SCRIPT_QUOTES,
    comments: Sequence[CommentKind] = ALL_COMMENTS,
    limit: Optional[int] = None,
) -> BracketReport:
    """Track open brackets outside strings/comments"""
    pairs = pairs or BRACKET_PAIRS
    openers_for = {close: open_ for open_, close in pairs.items()}
    state = LexState()
    stray = 0

    for _, ch, role in lex(text, 0, quotes=quotes, comments=comments, limit=limit, state=state):
        if role is not Role.CODE:
            continue
        if ch in pairs:
            state.stack.append(ch)
        elif ch in openers_for:
            if state.stack and state.stack[-1] == openers_for[ch]:
                state.stack.pop()
            else:
                stray += 1

    return BracketReport(unclosed=list(state.stack), stray_closers=stray, state=state)


def closing_sequence(unclosed: Sequence[str], pairs: Optional[Dict[str, str]] = None) -> str:
    """Closers for `unclosed`, innermost first"""
    pairs = pairs or BRACKET_PAIRS
    return ''.join(pairs[opener] for opener in reversed(unclosed))


def structural_view(
    text: str,
    *,
    quotes: Sequence[str] = SCRIPT_QUOTES,
    comments: Sequence[CommentKind] = ALL_COMMENTS,
    limit: Optional[int] = None,
    keep_strings: bool = False,
) -> str:
    """
    Same-length copy of `text` with string and comment characters blanked.

    Newlines are kept so line-based checks still line up. With `keep_strings`
    only comments are blanked.
    """
    kept = (Role.CODE, Role.ESCAPED, Role.STRING) if keep_strings else (Role.CODE,)
    chars = list(text)
    for i, ch, role in lex(text, 0, quotes=quotes, comments=comments, limit=limit):
        if role not in kept and ch != "\n":
            chars[i] = ' '
    return ''.join(chars)


# =============================================================================
# String segmentation
# =============================================================================

@dataclass(frozen=True)
class Segment:
    """Run of code (`delimiter` is None) or one string literal including quotes"""
    start: int
    end: int
    delimiter: Optional[str] = None
    terminated: bool = True

    @property
    def is_string(self) -> bool:
        return self.delimiter is not None

    def text(self, source: str) -> str:
        return source[self.start:self.end]


def split_string_segments(
    text: str,
    quotes: Sequence[str] = ('"',),
    limit: Optional[int] = None,
) -> List[Segment]:
    """Split `text` into alternating code and string segments"""
    segments: List[Segment] = []
    state = LexState()
    seg_start = 0

    for i, ch, role in lex(text, 0, quotes=quotes, comments=NO_COMMENTS, limit=limit, state=state):
        if role is not Role.STRING:
            continue
        if state.token_start == i and state.string_delimiter == ch:
            if i > seg_start:
                segments.append(Segment(seg_start, i))
            seg_start = i
        elif not state.in_string:
            segments.append(Segment(seg_start, i + 1, ch))
            seg_start = i + 1

    if seg_start < len(text):
        if state.in_string:
            segments.append(Segment(seg_start, len(text), state.string_delimiter, terminated=False))
        else:
            segments.append(Segment(seg_start, len(text)))

    return segments


# =============================================================================
# Markup segmentation
# =============================================================================

class MarkupKind(str, Enum):
    TEXT = "text"
    TAG = "tag"
    CLOSE_TAG = "close_tag"
    COMMENT = "comment"
    DOCTYPE = "doctype"
    RAW = "raw"


RAW_TEXT_ELEMENTS = ("script", "style")

_TAG_NAME_PATTERN = re.compile(r'^</?\s*([A-Za-z][\w:-]*)')
_ATTRIBUTE_PATTERN = re.compile(
    r'([^\s=/>"\']+)(?:\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|([^\s>]+)))?'
)


@dataclass(frozen=True)
class MarkupSegment:
    kind: MarkupKind
    start: int
    end: int
    name: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)
    self_closing: bool = False
    terminated: bool = True

    def text(self, source: str) -> str:
        return source[self.start:self.end]

    def is_open(self, name: str) -> bool:
        return self.kind is MarkupKind.TAG and self.name == name

    def is_close(self, name: str) -> bool:
        return self.kind is MarkupKind.CLOSE_TAG and self.name == name


# `>` ends a tag; a quote only opens a value right after `=`
_TAG_TOKEN_PATTERN = re.compile(r'>|=\s*(["\'])')


def _charge(budget: LexState, count: int, limit: int) -> bool:
    """Spend `count` characters of the scan budget; False once it is exhausted"""
    budget.processed += count
    if budget.processed > limit:
        budget.limit_reached = True
    return not budget.limit_reached


def _find_tag_end(html: str, start: int, budget: LexState, limit: int) -> Optional[int]:
    """
    Offset of the `>` closing the tag opened at `start`, or None when the
    input or the scan budget runs out first.

    Follows the browser tokenizer: quotes delimit only attribute values
    (directly after `=`), and `<` inside a tag is an ordinary character.
    """
    n = len(html)
    pos = start + 1
    while pos < n:
        match = _TAG_TOKEN_PATTERN.search(html, pos)
        if match is None:
            _charge(budget, n - pos, limit)
            return None
        if match.group(1) is None:
            if not _charge(budget, match.end() - pos, limit):
                return None
            return match.start()

        close = html.find(match.group(1), match.end())
        if close == -1:
            _charge(budget, n - pos, limit)
            return None
        if not _charge(budget, close + 1 - pos, limit):
            return None
        pos = close + 1
    return None


def _parse_tag(html: str, start: int, end: int, terminated: bool = True) -> MarkupSegment:
    tag_text = html[start:end]
    if tag_text[:9].lower() == '<!doctype':
        return MarkupSegment(MarkupKind.DOCTYPE, start, end, name="!doctype", terminated=terminated)

    is_close = tag_text.startswith('</')
    match = _TAG_NAME_PATTERN.match(tag_text)
    name = match.group(1).lower() if match else ""
    body = tag_text[match.end():] if match else tag_text[1:]
    if terminated and body.endswith('>'):
        body = body[:-1]
    self_closing = body.rstrip().endswith('/')

    attrs: Dict[str, str] = {}
    if not is_close:
        for attr in _ATTRIBUTE_PATTERN.finditer(body):
            key = attr.group(1).lower()
            value = next((g for g in attr.groups()[1:] if g is not None), "")
            attrs.setdefault(key, value)

    return MarkupSegment(
        MarkupKind.CLOSE_TAG if is_close else MarkupKind.TAG,
        start, end, name=name, attrs=attrs,
        self_closing=self_closing, terminated=terminated,
    )


def split_markup(html: str, limit: Optional[int] = None) -> List[MarkupSegment]:
    """
    Segment markup into text, tags, comments and raw script/style bodies.

    Script and style bodies are opaque RAW segments, so tags or comments that
    only appear inside script strings are never treated as markup. A tag that
    never closes runs to the end of the input. The whole call shares one
    character budget; whatever is left when it runs out becomes one TEXT
    segment.
    """
    if limit is None:
        limit = settings.SCAN_CHAR_LIMIT
    budget = LexState()
    segments: List[MarkupSegment] = []
    n = len(html)
    i = 0

    while i < n:
        if budget.limit_reached:
            logger.warning(
                f"Markup scan limit reached after {budget.processed} chars",
                extra={"scan_stop": i, "markup_chars": n}
            )
            segments.append(MarkupSegment(MarkupKind.TEXT, i, n))
            break

        if html.startswith('<!--', i):
            close = html.find('-->', i + 4)
            if close == -1:
                segments.append(MarkupSegment(MarkupKind.COMMENT, i, n, terminated=False))
                break
            _charge(budget, close + 3 - i, limit)
            segments.append(MarkupSegment(MarkupKind.COMMENT, i, close + 3))
            i = close + 3
            continue

        if html[i] == '<' and i + 1 < n and (html[i + 1].isalpha() or html[i + 1] in '/!'):
            end = _find_tag_end(html, i, budget, limit)
            if end is None:
                if budget.limit_reached:
                    continue
                segments.append(_parse_tag(html, i, n, terminated=False))
                break

            segment = _parse_tag(html, i, end + 1)
            segments.append(segment)
            i = end + 1

            if segment.kind is MarkupKind.TAG and segment.name in RAW_TEXT_ELEMENTS and not segment.self_closing:
                close_match = re.compile(rf'</\s*{segment.name}\s*>', re.IGNORECASE).search(html, i)
                if close_match is None:
                    segments.append(MarkupSegment(MarkupKind.RAW, i, n, name=segment.name, terminated=False))
                    break
                _charge(budget, close_match.start() - i, limit)
                if close_match.start() > i:
                    segments.append(MarkupSegment(MarkupKind.RAW, i, close_match.start(), name=segment.name))
                i = close_match.start()
            continue

        next_lt = html.find('<', i + 1)
        if next_lt == -1:
            next_lt = n
        _charge(budget, next_lt - i, limit)
        segments.append(MarkupSegment(MarkupKind.TEXT, i, next_lt))
        i = next_lt

    return segments


@dataclass
class MarkupOutline:
    """Presence and balance of the document skeleton tags"""
    has_doctype: bool = False
    opened: Dict[str, int] = field(default_factory=dict)
    closed: Dict[str, int] = field(default_factory=dict)
    unterminated: List[MarkupSegment] = field(default_factory=list)

    def count_open(self, name: str) -> int:
        return self.opened.get(name, 0)

    def count_close(self, name: str) -> int:
        return self.closed.get(name, 0)

    def is_fragment(self) -> bool:
        return not any(self.count_open(name) for name in ("html", "head", "body"))


SKELETON_TAGS = ("html", "head", "body")


def outline_markup(html: str, segments: Optional[List[MarkupSegment]] = None) -> MarkupOutline:
    """Summarise doctype / html / head / body tags found in markup"""
    if segments is None:
        segments = split_markup(html)
    outline = MarkupOutline()
    for segment in segments:
        if not segment.terminated:
            outline.unterminated.append(segment)
        if segment.kind is MarkupKind.DOCTYPE:
            outline.has_doctype = True
        elif segment.kind is MarkupKind.TAG and segment.name in SKELETON_TAGS:
            outline.opened[segment.name] = outline.opened.get(segment.name, 0) + 1
        elif segment.kind is MarkupKind.CLOSE_TAG and segment.name in SKELETON_TAGS:
            outline.closed[segment.name] = outline.closed.get(segment.name, 0) + 1
    return outline
