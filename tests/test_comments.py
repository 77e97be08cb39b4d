"""Tests for comment extraction."""

import pytest

from codelingo.comments import (
    C_FAMILY,
    CommentKind,
    extract_comments,
    syntax_for,
)


def _texts(code: str, language: str | None) -> list[str]:
    return [c.text for c in extract_comments(code, language)]


def test_single_line_comments_javascript():
    """Line comments are found with their zero-based line and column."""
    code = "// hello world\nconst x = 1; // set x\n"
    comments = extract_comments(code, "javascript")

    assert [(c.line, c.column, c.text) for c in comments] == [
        (0, 0, "hello world"),
        (1, 13, "set x"),
    ]
    assert all(c.kind == CommentKind.SINGLE for c in comments)


def test_block_comment_spanning_lines():
    """Continuation stars are dropped and whitespace is collapsed."""
    code = "/*\n * First line\n * second   line\n */\nlet y;"
    comments = extract_comments(code, "typescript")

    assert len(comments) == 1
    assert comments[0].kind == CommentKind.BLOCK
    assert comments[0].line == 0
    assert comments[0].text == "First line second line"


def test_doc_comment_markers_are_stripped():
    """Extra marker characters of ``///`` and ``/**`` are not part of the text."""
    code = "/// triple\n/** Docs here */"
    assert _texts(code, "javascript") == ["triple", "Docs here"]


def test_inline_block_then_line_comment():
    """Several comments on one line come out in column order."""
    code = "a(/* first */ 1); // second"
    comments = extract_comments(code, "java")

    assert [c.text for c in comments] == ["first", "second"]
    assert [c.column for c in comments] == [2, 18]


def test_python_hash_and_docstring():
    """Python uses ``#`` for lines and triple quotes for blocks."""
    code = 'def f():\n    """Return one."""\n    return 1  # one\n'
    comments = extract_comments(code, "python")

    assert [(c.line, c.kind, c.text) for c in comments] == [
        (1, CommentKind.BLOCK, "Return one."),
        (2, CommentKind.SINGLE, "one"),
    ]


def test_language_alias():
    """Short editor names resolve to the full language."""
    assert _texts("x = 1  # set x\n", "py") == ["set x"]


def test_lua_long_marker_wins_over_short():
    """``--[[`` opens a block even though ``--`` is a line marker."""
    code = "--[[ long\ncomment ]]\n-- short"
    comments = extract_comments(code, "lua")

    assert [(c.line, c.kind, c.text) for c in comments] == [
        (0, CommentKind.BLOCK, "long comment"),
        (2, CommentKind.SINGLE, "short"),
    ]


def test_html_comment():
    assert _texts("<div><!-- note --></div>", "html") == ["note"]


def test_empty_comments_are_skipped():
    """Markers with nothing but whitespace produce no comment."""
    assert extract_comments("//\n/* */\n//   \n", "javascript") == []


def test_unterminated_block_is_returned():
    """A block still open at the end of the buffer keeps its text."""
    comments = extract_comments("/* open\nstill going", "c")

    assert len(comments) == 1
    assert comments[0].text == "open still going"
    assert comments[0].kind == CommentKind.BLOCK


def test_marker_inside_string_is_reported():
    """String literals are not tracked; a marker inside one starts a comment."""
    comments = extract_comments('const url = "http://example.com";', "javascript")

    assert len(comments) == 1
    assert comments[0].kind == CommentKind.SINGLE


def test_no_comments():
    assert extract_comments("const x = 1;\nlet y = 2;", "javascript") == []


@pytest.mark.parametrize(
    ("language", "expected"),
    [
        ("javascript", C_FAMILY),
        ("JavaScript", C_FAMILY),
        ("cobol", C_FAMILY),
        (None, C_FAMILY),
        ("", C_FAMILY),
    ],
    ids=["exact", "case-insensitive", "unknown", "none", "empty"],
)
def test_syntax_for_defaults_to_c_family(language, expected):
    assert syntax_for(language) == expected


def test_syntax_for_hash_languages():
    assert syntax_for("bash").single == ("#",)
    assert syntax_for("ruby").blocks == ()


def test_mixed_single_and_block():
    code = "// hello\ncode();\n/* multi\nline */\n"
    comments = extract_comments(code, "javascript")

    assert [(c.line, c.text, c.kind) for c in comments] == [
        (0, "hello", CommentKind.SINGLE),
        (2, "multi line", CommentKind.BLOCK),
    ]
