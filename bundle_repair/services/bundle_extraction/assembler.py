"""
Validator & Assembler - turns a repaired RawBundle into an ExtractionResult

Order of operations:
1. Drop empty / too-short files
2. Fill missing files with safe defaults
3. Strip externally referenced resources from the markup and stylesheet
4. Safety pass (blocklisted script APIs, leaked documents, error text,
   bracket and tag balance); failures become safe defaults
5. Inline stylesheet and script into delimited blocks in the markup

Inlining first removes any block a previous pass left behind, so running the
assembler over its own output never duplicates content.
"""

import re
from typing import Dict, List, Optional, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.logging_config import logger
from bundle_repair.schemas.bundle import (
    ExtractionResult,
    ExtractionStrategy,
    FileKind,
    canonical_file_names,
)
from bundle_repair.services.bundle_extraction.completeness import lexical_profile
from bundle_repair.services.bundle_extraction.models import RawBundle
from bundle_repair.services.bundle_extraction.scanner import (
    MarkupKind,
    MarkupSegment,
    outline_markup,
    scan_brackets,
    split_markup,
    structural_view,
    SKELETON_TAGS,
)
from bundle_repair.services.bundle_extraction.templates import safe_default


INLINE_MARKER = "bundle:inline"

# (pattern, description); matched against code with strings and comments blanked
BLOCKED_SCRIPT_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'(?<![\w$.])eval\s*\('), "eval call"),
    (re.compile(r'(?<![\w$.])Function\s*\('), "Function constructor"),
    (re.compile(r'\bdocument\s*\.\s*write(ln)?\s*\('), "document.write"),
    (re.compile(r'\bwindow\s*\.\s*open\s*\('), "window.open"),
    # Bare `location` may be a local binding
    (re.compile(
        r'(?<![\w$.])(?:(?:window|document|self|top)\s*\.\s*location(?:\s*\.\s*href)?|location\s*\.\s*href)\s*=(?!=)'
    ), "location assignment"),
    (re.compile(r'\blocation\s*\.\s*(assign|replace)\s*\('), "location navigation"),
]

# Matched with strings kept, only comments blanked
STRING_TIMER_PATTERN = re.compile(r'\bset(Timeout|Interval)\s*\(\s*["\'`]')

ERROR_TEXT_PATTERNS = [
    re.compile(r'\b(SyntaxError|ReferenceError|TypeError):\s'),
    re.compile(r'Unexpected (token|end of input)'),
    re.compile(r'Unterminated string'),
]

LEAKED_DOCUMENT_PATTERN = re.compile(
    r'"(files|index\.html|styles?\.css|script\.js|usedModel)"\s*:'
)

# Attributes that make the browser fetch something, per element
EXTERNAL_URL_ATTRIBUTES: Dict[str, Tuple[str, ...]] = {
    "link": ("href",),
    "script": ("src",),
    "img": ("src", "srcset"),
    "iframe": ("src",),
    "frame": ("src",),
    "video": ("src", "poster"),
    "audio": ("src",),
    "source": ("src", "srcset"),
    "track": ("src",),
    "embed": ("src",),
    "object": ("data",),
}

# Elements whose close tag goes together with a removed open tag
PAIRED_EXTERNAL_ELEMENTS = ("iframe", "frame", "video", "audio", "object")

CSS_IMPORT_PATTERN = re.compile(r'@import\b[^;{}]*;?', re.IGNORECASE)
CSS_URL_PATTERN = re.compile(r'url\(\s*([\'"]?)(.*?)\1\s*\)', re.IGNORECASE | re.DOTALL)

# Tag-like text the segmenter could not read as a tag
UNPARSED_RESOURCE_TAG = re.compile(r'<(script|link|iframe|frame|embed|object)\b', re.IGNORECASE)


def _is_external(url: str) -> bool:
    url = url.strip().lower()
    return bool(url) and not url.startswith(("data:", "#", "about:blank"))


def _external_attribute(name: str, attrs: Dict[str, str]) -> Optional[str]:
    for attribute in EXTERNAL_URL_ATTRIBUTES.get(name, ()):
        if attribute in attrs and _is_external(attrs[attribute]):
            return attribute
    return None


# =============================================================================
# External references
# =============================================================================

def strip_external_css(css: str) -> Tuple[str, List[str]]:
    """
    Remove `@import` rules and turn `url(...)` pointing outside the document
    into `none`.

    Returns:
        (cleaned stylesheet, descriptions of what was removed)
    """
    removed: List[str] = []

    def _drop_import(match: re.Match) -> str:
        removed.append(match.group(0).strip())
        return ""

    def _drop_url(match: re.Match) -> str:
        if not _is_external(match.group(2)):
            return match.group(0)
        removed.append(f"url({match.group(2).strip()})")
        return "none"

    cleaned = CSS_IMPORT_PATTERN.sub(_drop_import, css)
    cleaned = CSS_URL_PATTERN.sub(_drop_url, cleaned)
    if not removed:
        return css, removed
    return cleaned, removed


def strip_external_references(html: str) -> Tuple[str, List[str]]:
    """
    Remove elements that load resources from outside the document: `<link>`,
    `<script src>` (with body and close tag), `<img>`, `<iframe>`, media
    elements, `<embed>` and `<object>`. Stylesheet imports and `url(...)`
    references in `<style>` bodies and `style` attributes are removed too.

    Returns:
        (cleaned markup, descriptions of what was removed)
    """
    segments = split_markup(html)
    parts: List[str] = []
    removed: List[str] = []
    skip_script_close = False
    pending_close: Dict[str, int] = {}

    for segment in segments:
        if skip_script_close:
            if segment.kind is MarkupKind.RAW and segment.name == "script":
                continue
            skip_script_close = False
            if segment.is_close("script"):
                continue

        if segment.kind is MarkupKind.CLOSE_TAG and pending_close.get(segment.name):
            pending_close[segment.name] -= 1
            continue

        if segment.kind is MarkupKind.TAG:
            attribute = _external_attribute(segment.name, segment.attrs)
            if attribute is not None:
                removed.append(f"<{segment.name} {attribute}=\"{segment.attrs[attribute]}\">")
                if segment.name == "script":
                    skip_script_close = not segment.self_closing
                elif segment.name in PAIRED_EXTERNAL_ELEMENTS and not segment.self_closing:
                    pending_close[segment.name] = pending_close.get(segment.name, 0) + 1
                continue
            if "style" in segment.attrs:
                tag_text, css_removed = strip_external_css(segment.text(html))
                if css_removed:
                    removed.extend(css_removed)
                    parts.append(tag_text)
                    continue

        if segment.kind is MarkupKind.RAW and segment.name == "style":
            body, css_removed = strip_external_css(segment.text(html))
            if css_removed:
                removed.extend(css_removed)
                parts.append(body)
                continue

        parts.append(segment.text(html))

    if not removed:
        return html, removed
    return ''.join(parts), removed


# =============================================================================
# Safety pass
# =============================================================================

def check_script(content: str) -> Optional[str]:
    """Reason the script is unsafe or broken, or None"""
    code = structural_view(content)
    for pattern, description in BLOCKED_SCRIPT_PATTERNS:
        if pattern.search(code):
            return description
    if STRING_TIMER_PATTERN.search(structural_view(content, keep_strings=True)):
        return "string argument to setTimeout/setInterval"
    for pattern in ERROR_TEXT_PATTERNS:
        if pattern.search(code):
            return "error text in code"
    if LEAKED_DOCUMENT_PATTERN.search(content):
        return "leaked response document"

    quotes, comments, pairs = lexical_profile(FileKind.SCRIPT)
    if not scan_brackets(content, pairs, quotes=quotes, comments=comments).balanced:
        return "unbalanced brackets"
    return None


def check_stylesheet(content: str) -> Optional[str]:
    if LEAKED_DOCUMENT_PATTERN.search(content):
        return "leaked response document"
    quotes, comments, pairs = lexical_profile(FileKind.STYLESHEET)
    if not scan_brackets(content, pairs, quotes=quotes, comments=comments).balanced:
        return "unbalanced brackets"
    return None


def check_markup(content: str) -> Optional[str]:
    segments = split_markup(content)

    for segment in segments:
        if segment.kind is MarkupKind.TEXT:
            text = segment.text(content)
            if LEAKED_DOCUMENT_PATTERN.search(text):
                return "leaked response document"
            if UNPARSED_RESOURCE_TAG.search(text):
                return "unparsed resource tag"
        if segment.kind is MarkupKind.RAW and segment.name == "script":
            reason = check_script(segment.text(content))
            if reason is not None:
                return f"inline script: {reason}"

    outline = outline_markup(content, segments)
    if outline.unterminated:
        return f"unterminated {outline.unterminated[0].kind.value}"
    for tag in SKELETON_TAGS:
        if outline.count_open(tag) > 1 or outline.count_open(tag) != outline.count_close(tag):
            return f"unbalanced <{tag}>"
    return None


SAFETY_CHECKS = {
    FileKind.MARKUP: check_markup,
    FileKind.STYLESHEET: check_stylesheet,
    FileKind.SCRIPT: check_script,
}


# =============================================================================
# Inlining
# =============================================================================

def _marker(name: str, edge: str) -> str:
    return f"<!-- {INLINE_MARKER} {name} {edge} -->"


def _marker_name(segment: MarkupSegment, html: str, edge: str) -> Optional[str]:
    if segment.kind is not MarkupKind.COMMENT:
        return None
    match = re.fullmatch(rf'<!--\s*{re.escape(INLINE_MARKER)}\s+(\S+)\s+{edge}\s*-->', segment.text(html))
    return match.group(1) if match else None


def remove_inlined_blocks(html: str) -> str:
    """Remove every delimited block (and the newline after it) left by a previous pass"""
    segments = split_markup(html)
    spans: List[Tuple[int, int]] = []
    open_block: Optional[Tuple[str, int]] = None

    for segment in segments:
        if open_block is None:
            name = _marker_name(segment, html, "begin")
            if name is not None:
                open_block = (name, segment.start)
        elif _marker_name(segment, html, "end") == open_block[0]:
            end = segment.end
            if html.startswith("\n", end):
                end += 1
            spans.append((open_block[1], end))
            open_block = None

    for start, end in reversed(spans):
        html = html[:start] + html[end:]
    return html


def _inline_block(name: str, tag: str, content: str) -> str:
    # Keep the content from closing its own element early
    content = re.sub(rf'</(?={tag})', r'<\\/', content, flags=re.IGNORECASE)
    return f"{_marker(name, 'begin')}\n<{tag}>\n{content}\n</{tag}>\n{_marker(name, 'end')}\n"


def _first(segments: List[MarkupSegment], predicate) -> Optional[MarkupSegment]:
    return next((s for s in segments if predicate(s)), None)


def inline_assets(html: str, stylesheet: str, script: str) -> str:
    """
    Put the stylesheet before `</head>` and the script before `</body>`,
    each inside a delimited block.
    """
    names = canonical_file_names()
    html = remove_inlined_blocks(html)

    style_block = _inline_block(names[FileKind.STYLESHEET], "style", stylesheet)
    segments = split_markup(html)
    anchor = _first(segments, lambda s: s.is_close("head")) or _first(segments, lambda s: s.is_open("body"))
    if anchor is not None:
        html = html[:anchor.start] + style_block + html[anchor.start:]
    else:
        html_open = _first(segments, lambda s: s.is_open("html"))
        at = html_open.end if html_open is not None else 0
        html = html[:at] + style_block + html[at:]

    script_block = _inline_block(names[FileKind.SCRIPT], "script", script)
    segments = split_markup(html)
    anchor = _first(segments, lambda s: s.is_close("body")) or _first(segments, lambda s: s.is_close("html"))
    at = anchor.start if anchor is not None else len(html)
    return html[:at] + script_block + html[at:]


# =============================================================================
# Assembly
# =============================================================================

def validate_bundle(bundle: RawBundle) -> RawBundle:
    """Steps 1-4: the bundle ends up with three safe, self-contained files"""
    names = canonical_file_names()

    for kind, name in names.items():
        content = bundle.files.get(name)
        if content is not None and len(content.strip()) < settings.MIN_FILE_CONTENT_LENGTH:
            del bundle.files[name]
            bundle.warnings.append(f"Dropped {name}: fewer than {settings.MIN_FILE_CONTENT_LENGTH} characters")

    for kind, name in names.items():
        if name not in bundle.files:
            bundle.files[name] = safe_default(kind)
            bundle.replaced.add(name)
            bundle.warnings.append(f"{name} was missing; using a safe default")

    markup_name = names[FileKind.MARKUP]
    cleaned, removed = strip_external_references(remove_inlined_blocks(bundle.files[markup_name]))
    bundle.files[markup_name] = cleaned
    if removed:
        bundle.warnings.append(f"Removed {len(removed)} external reference(s) from {markup_name}")
        logger.log_repair(markup_name, f"stripped external references: {', '.join(removed)}")

    stylesheet_name = names[FileKind.STYLESHEET]
    if stylesheet_name not in bundle.replaced:
        cleaned, removed = strip_external_css(bundle.files[stylesheet_name])
        bundle.files[stylesheet_name] = cleaned
        if removed:
            bundle.warnings.append(f"Removed {len(removed)} external reference(s) from {stylesheet_name}")
            logger.log_repair(stylesheet_name, f"stripped external references: {', '.join(removed)}")

    for kind, name in names.items():
        if name in bundle.replaced:
            continue
        reason = SAFETY_CHECKS[kind](bundle.files[name])
        if reason is not None:
            bundle.files[name] = safe_default(kind)
            bundle.replaced.add(name)
            bundle.warnings.append(f"{name} failed the safety check ({reason}); using a safe default")
            logger.warning(f"[Assembler] {name} replaced: {reason}")

    return bundle


def build_result(
    bundle: RawBundle,
    strategy: ExtractionStrategy,
    model: Optional[str] = None,
) -> ExtractionResult:
    """Step 5 plus metadata: inline and wrap into the public result"""
    names = canonical_file_names()
    markup_name = names[FileKind.MARKUP]

    files: Dict[str, str] = bundle.ordered_files()
    files[markup_name] = inline_assets(
        files[markup_name],
        files[names[FileKind.STYLESHEET]],
        files[names[FileKind.SCRIPT]],
    )

    metadata = {key: value for key, value in bundle.metadata.items() if key != "usedModel"}
    used_model = model or bundle.metadata.get("usedModel") or settings.DEFAULT_MODEL_NAME

    return ExtractionResult(
        files=files,
        used_model=used_model,
        warnings=list(bundle.warnings),
        strategy=strategy,
        **metadata,
    )


def assemble(
    bundle: RawBundle,
    strategy: ExtractionStrategy = ExtractionStrategy.STRUCTURAL,
    model: Optional[str] = None,
) -> ExtractionResult:
    """Validate and inline a repaired bundle"""
    return build_result(validate_bundle(bundle), strategy, model)


def reassemble(result: ExtractionResult) -> ExtractionResult:
    """Run the assembler again over a finished result"""
    bundle = RawBundle(
        files=dict(result.files),
        metadata={
            "description": result.description,
            "instructions": result.instructions,
            "framework": result.framework,
            "language": result.language,
            "styling": result.styling,
        },
    )
    reassembled = assemble(bundle, strategy=result.strategy, model=result.used_model)
    warnings = list(result.warnings)
    warnings.extend(w for w in reassembled.warnings if w not in warnings)
    return reassembled.model_copy(update={"warnings": warnings})
