"""
Unit Tests for the Structural Scanner
Tests lexing, bracket matching, string segmentation and markup segmentation
"""
import pytest

from bundle_repair.services.bundle_extraction.scanner import (
    BLOCK_COMMENTS,
    CommentKind,
    LexState,
    MarkupKind,
    Role,
    Segment,
    closing_sequence,
    find_document_region,
    find_matching_close,
    lex,
    locate_document_starts,
    outline_markup,
    scan_brackets,
    split_markup,
    split_string_segments,
    structural_view,
)


class TestLex:
    """Tests for the character lexer"""

    def test_string_characters_marked(self):
        """Test quotes and string interiors get the STRING role"""
        roles = [role for _, _, role in lex('a"b"c', quotes=('"',))]

        assert roles == [Role.CODE, Role.STRING, Role.STRING, Role.STRING, Role.CODE]

    def test_escaped_quote_stays_in_string(self):
        """Test an escaped quote does not close the string"""
        state = LexState()
        roles = [role for _, _, role in lex('"a\\"b"', quotes=('"',), state=state)]

        assert all(role is Role.STRING for role in roles)
        assert not state.in_string

    def test_only_same_delimiter_closes(self):
        """Test a single quote inside a double-quoted string is content"""
        state = LexState()
        list(lex('"it\'s', state=state))

        assert state.string_delimiter == '"'

    def test_line_comment_closed_by_newline(self):
        """Test line comments end at the newline"""
        result = list(lex('x // hi\ny'))
        roles = {ch: role for _, ch, role in result if ch in 'xhy\n'}

        assert roles['x'] is Role.CODE
        assert roles['h'] is Role.COMMENT
        assert roles['\n'] is Role.CODE
        assert roles['y'] is Role.CODE

    def test_block_comment(self):
        """Test block comment interior and delimiters are COMMENT"""
        state = LexState()
        result = list(lex('a /* { */ b', state=state))
        brace = [role for _, ch, role in result if ch == '{']

        assert brace == [Role.COMMENT]
        assert not state.in_comment

    def test_disabled_comment_kinds(self):
        """Test `//` is plain code when line comments are disabled"""
        roles = [role for _, _, role in lex('url(http://x)', comments=BLOCK_COMMENTS)]

        assert Role.COMMENT not in roles

    def test_limit_stops_scan(self):
        """Test the processing cap stops the scan and is flagged"""
        state = LexState()
        result = list(lex('abcdefghij', limit=4, state=state))

        assert len(result) == 4
        assert state.limit_reached is True

    def test_unterminated_block_comment_state(self):
        """Test scan ending inside a block comment keeps the comment kind"""
        state = LexState()
        list(lex('x /* never closed', state=state))

        assert state.comment is CommentKind.BLOCK


class TestDocumentRegions:
    """Tests for locating and bounding the embedded document"""

    def test_fenced_json_first(self):
        """Test a ```json fence is the first candidate"""
        text = 'Sure!\n```json\n{"files": {}}\n```'

        starts = locate_document_starts(text)

        assert starts == [text.index('{')]

    def test_files_key_before_first_brace(self):
        """Test `{"files"` outranks an earlier stray brace"""
        text = 'noise { not json } then {"files": {}}'

        starts = locate_document_starts(text)

        assert starts == [text.index('{"files"'), text.index('{')]

    def test_max_candidates(self):
        """Test the candidate cap"""
        text = 'noise { not json } then {"files": {}}'

        assert len(locate_document_starts(text, max_candidates=1)) == 1

    def test_no_brace(self):
        """Test plain prose has no candidates"""
        assert locate_document_starts("no structure here") == []

    def test_matching_close_ignores_strings(self):
        """Test braces inside strings do not move the depth"""
        text = '{"a": "}", "b": {"c": 1}} trailing'

        end = find_matching_close(text, 0)

        assert end == text.index('} trailing')

    def test_matching_close_ignores_literal_blocks(self):
        """Test braces inside backtick blocks are ignored"""
        text = '{"a": `function() { return 1; `}'

        assert find_matching_close(text, 0) == len(text) - 1

    def test_unbalanced_returns_none(self):
        """Test a document missing its closer"""
        assert find_matching_close('{"a": 1', 0) is None

    def test_start_not_opener(self):
        """Test a start offset that is not the opener"""
        assert find_matching_close('abc', 0) is None

    def test_limit_falls_back_to_last_closer(self):
        """Test hitting the cap uses the last closer in the text"""
        text = '{ "a": [1, 2, 3] }'

        assert find_matching_close(text, 0, limit=2) == len(text) - 1

    def test_find_document_region(self):
        """Test region covers start to closing bracket inclusive"""
        text = 'x {"a": 1} y'

        region = find_document_region(text, 2)

        assert region.slice(text) == '{"a": 1}'


class TestBracketScanning:
    """Tests for bracket accounting"""

    def test_unclosed_stack(self):
        """Test unmatched openers are reported in nesting order"""
        report = scan_brackets('function a() { if (x) { return [1, 2')

        assert report.unclosed == ['{', '{', '[']
        assert closing_sequence(report.unclosed) == ']}}'

    def test_brackets_in_strings_and_comments_ignored(self):
        """Test strings and comments never count"""
        report = scan_brackets('const s = "{{{"; // {{\n/* { */')

        assert report.balanced is True

    def test_stray_closers(self):
        """Test closers without openers are counted"""
        report = scan_brackets('a)}')

        assert report.stray_closers == 2
        assert report.balanced is False

    def test_open_string_is_unbalanced(self):
        """Test ending inside a string"""
        report = scan_brackets('const s = "abc')

        assert report.open_token is True
        assert report.balanced is False


class TestStructuralView:
    """Tests for the blanked structural view"""

    def test_blanks_strings_and_comments(self):
        """Test only code survives, length and newlines kept"""
        text = 'a "b" // c\nd'

        view = structural_view(text)

        assert len(view) == len(text)
        assert '"' not in view
        assert 'c' not in view
        assert view.endswith('\nd')

    def test_keep_strings(self):
        """Test strings survive when requested"""
        view = structural_view('f("x") // y', keep_strings=True)

        assert '"x"' in view
        assert 'y' not in view


class TestStringSegments:
    """Tests for code/string segmentation"""

    def test_alternating_segments(self):
        """Test code and string runs alternate"""
        segments = split_string_segments('a "b" c')

        assert segments == [Segment(0, 2), Segment(2, 5, '"'), Segment(5, 7)]

    def test_empty_string(self):
        """Test an empty string literal is its own segment"""
        segments = split_string_segments('a""b')

        assert Segment(1, 3, '"') in segments

    def test_unterminated_string(self):
        """Test a trailing open string is flagged"""
        segments = split_string_segments('x "abc')

        assert segments[-1] == Segment(2, 6, '"', terminated=False)

    def test_backtick_segments(self):
        """Test literal blocks are segmented when requested"""
        text = '{"a": `x "y"`}'

        segments = split_string_segments(text, quotes=('"', '`'))
        strings = [s.text(text) for s in segments if s.is_string]

        assert strings == ['"a"', '`x "y"`']


class TestMarkupSegments:
    """Tests for the markup segmenter"""

    def test_tag_attributes_with_quoted_gt(self):
        """Test a `>` inside an attribute value does not end the tag"""
        html = '<div class="a>b">hi</div>'

        segments = split_markup(html)

        assert [s.kind for s in segments] == [MarkupKind.TAG, MarkupKind.TEXT, MarkupKind.CLOSE_TAG]
        assert segments[0].attrs == {'class': 'a>b'}

    def test_script_body_is_raw(self):
        """Test tags inside a script body are not markup"""
        html = '<script>if (a < b) { x("</div>"); }</script>'

        segments = split_markup(html)

        assert [s.kind for s in segments] == [MarkupKind.TAG, MarkupKind.RAW, MarkupKind.CLOSE_TAG]
        assert segments[1].name == 'script'

    def test_unterminated_raw_body(self):
        """Test a script cut off before its close tag"""
        segments = split_markup('<script>let a = 1;')

        assert segments[-1].kind is MarkupKind.RAW
        assert segments[-1].terminated is False

    def test_comment(self):
        """Test comments hide the tags inside them"""
        segments = split_markup('<!-- <b> -->text')

        assert [s.kind for s in segments] == [MarkupKind.COMMENT, MarkupKind.TEXT]

    def test_unterminated_trailing_tag(self):
        """Test a tag cut off at the end of the text"""
        segments = split_markup('<p>hello <a href="x')

        assert segments[-1].kind is MarkupKind.TAG
        assert segments[-1].name == 'a'
        assert segments[-1].terminated is False

    def test_doctype(self):
        """Test the doctype declaration"""
        segments = split_markup('<!DOCTYPE html><html>')

        assert segments[0].kind is MarkupKind.DOCTYPE
        assert segments[1].is_open('html')

    def test_self_closing(self):
        """Test self-closing detection"""
        segments = split_markup('<br/><img src="a.png" />')

        assert segments[0].self_closing is True
        assert segments[1].attrs['src'] == 'a.png'

    @pytest.mark.parametrize("html,fragment", [
        ('<div>x</div>', True),
        ('<html></html>', False),
        ('<body><p>x</p></body>', False),
    ])
    def test_outline_fragment(self, html, fragment):
        """Test fragment detection"""
        assert outline_markup(html).is_fragment() is fragment

    def test_outline_counts(self):
        """Test skeleton tag counts"""
        outline = outline_markup('<!DOCTYPE html><html><body></body>')

        assert outline.has_doctype is True
        assert outline.count_open('html') == 1
        assert outline.count_close('html') == 0
        assert outline.count_close('body') == 1

    def test_apostrophe_in_unquoted_value(self):
        """Test a quote inside an unquoted value does not open a string"""
        html = "<script src=https://evil.example/x.js title=it's></script><p>x</p>"

        segments = split_markup(html)

        assert segments[0].kind is MarkupKind.TAG
        assert segments[0].attrs["src"] == "https://evil.example/x.js"
        assert segments[0].text(html) == "<script src=https://evil.example/x.js title=it's>"
        assert segments[1].is_close("script")

    def test_angle_bracket_inside_tag(self):
        """Test `<` inside a tag is an ordinary character"""
        html = '<script src="https://evil.example/x.js" <b></script>'

        segments = split_markup(html)

        assert segments[0].kind is MarkupKind.TAG
        assert segments[0].attrs["src"] == "https://evil.example/x.js"
        assert segments[1].is_close("script")

    def test_unclosed_tag_runs_to_end(self):
        """Test a tag whose quoted value never closes swallows the rest of the input"""
        segments = split_markup('<p>a <b title="x>y <i>b</i>')

        assert segments[-1].kind is MarkupKind.TAG
        assert segments[-1].name == "b"
        assert segments[-1].terminated is False
        assert len(segments) == 3

    def test_shared_scan_budget(self):
        """Test one budget covers the whole call"""
        html = "<p>x</p>" * 50

        segments = split_markup(html, limit=40)

        assert segments[-1].kind is MarkupKind.TEXT
        assert segments[-1].end == len(html)
        assert segments[-1].start < len(html) // 2
