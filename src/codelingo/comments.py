"""Comment extraction from source code.

``extract_comments`` scans a buffer line by line and column by column with a
two-state machine (normal code / inside a block comment). It does not know
about string literals, so a marker inside a string (``"http://"``) is
reported as a comment.

Examples
--------
>>> [c.text for c in extract_comments("x = 1  # set x\\n", "python")]
['set x']
"""

import enum
import re
from dataclasses import dataclass, field

__all__ = ["Comment", "CommentKind", "CommentSyntax", "extract_comments", "syntax_for"]


class CommentKind(str, enum.Enum):
    SINGLE = "single"
    BLOCK = "block"


@dataclass(frozen=True)
class Comment:
    """A comment found in a buffer.

    ``line`` and ``column`` are zero-based and point at the opening marker.
    """

    line: int
    text: str
    kind: CommentKind
    column: int = 0


@dataclass(frozen=True)
class CommentSyntax:
    single: tuple[str, ...] = ()
    blocks: tuple[tuple[str, str], ...] = ()


C_FAMILY = CommentSyntax(single=("//",), blocks=(("/*", "*/"),))
HASH = CommentSyntax(single=("#",))

SYNTAXES: dict[str, CommentSyntax] = {
    **dict.fromkeys(
        (
            "javascript",
            "typescript",
            "java",
            "c",
            "cpp",
            "csharp",
            "go",
            "rust",
            "kotlin",
            "swift",
            "scala",
            "dart",
            "php",
        ),
        C_FAMILY,
    ),
    "python": CommentSyntax(single=("#",), blocks=(('"""', '"""'), ("'''", "'''"))),
    **dict.fromkeys(
        ("ruby", "shell", "r", "perl", "yaml", "toml", "dockerfile"), HASH
    ),
    "lua": CommentSyntax(single=("--",), blocks=(("--[[", "]]"),)),
    "sql": CommentSyntax(single=("--",), blocks=(("/*", "*/"),)),
    "haskell": CommentSyntax(single=("--",), blocks=(("{-", "-}"),)),
    "css": CommentSyntax(blocks=(("/*", "*/"),)),
    "html": CommentSyntax(blocks=(("<!--", "-->"),)),
    "xml": CommentSyntax(blocks=(("<!--", "-->"),)),
}

ALIASES: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "python3": "python",
    "rb": "ruby",
    "sh": "shell",
    "bash": "shell",
    "zsh": "shell",
    "c++": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "h": "c",
    "hpp": "cpp",
    "cs": "csharp",
    "c#": "csharp",
    "golang": "go",
    "rs": "rust",
    "kt": "kotlin",
    "pl": "perl",
    "yml": "yaml",
    "hs": "haskell",
    "htm": "html",
    "svg": "xml",
    "scss": "css",
    "less": "css",
}

_WHITESPACE = re.compile(r"\s+")
_CONTINUATION = re.compile(r"^\s*\*(?!/)\s?")


def syntax_for(language: str | None) -> CommentSyntax:
    """Return the comment syntax for ``language``; C-family when unknown."""
    key = (language or "").strip().lower()
    key = ALIASES.get(key, key)
    return SYNTAXES.get(key, C_FAMILY)


def _normalize(text: str, marker: str) -> str:
    # ///, ##, /** and friends
    text = text.lstrip(marker[-1])
    return _WHITESPACE.sub(" ", text).strip()


@dataclass
class _OpenBlock:
    start: str
    end: str
    line: int
    column: int
    pieces: list[str] = field(default_factory=list)

    def add(self, text: str, line_no: int) -> None:
        if line_no != self.line:
            text = _CONTINUATION.sub("", text, count=1)
        self.pieces.append(text)

    def close(self) -> Comment | None:
        text = _normalize(" ".join(self.pieces), self.start)
        if not text:
            return None
        return Comment(
            line=self.line, text=text, kind=CommentKind.BLOCK, column=self.column
        )


def extract_comments(code: str, language: str | None) -> list[Comment]:
    """Extract every non-empty comment of ``code`` in source order.

    Parameters
    ----------
    code : str
        Full buffer.
    language : str | None
        Editor language (``javascript``, ``python``, ``py``, ...).

    Returns
    -------
    list[Comment]
        Comments ordered by start line, then column. An unterminated block
        comment at the end of the buffer is returned with the text collected
        so far.
    """
    syntax = syntax_for(language)
    markers: list[tuple[str, str | None]] = [(m, None) for m in syntax.single]
    markers.extend(syntax.blocks)
    # longest first so "--[[" wins over "--"
    markers.sort(key=lambda marker: len(marker[0]), reverse=True)

    comments: list[Comment] = []
    block: _OpenBlock | None = None

    for line_no, line in enumerate(code.split("\n")):
        col = 0
        while True:
            if block is not None:
                end_at = line.find(block.end, col)
                if end_at == -1:
                    block.add(line[col:], line_no)
                    break
                block.add(line[col:end_at], line_no)
                comment = block.close()
                if comment is not None:
                    comments.append(comment)
                col = end_at + len(block.end)
                block = None
                continue

            if col >= len(line):
                break
            marker = next((m for m in markers if line.startswith(m[0], col)), None)
            if marker is None:
                col += 1
                continue

            start, end = marker
            if end is None:
                text = _normalize(line[col + len(start) :], start)
                if text:
                    comments.append(
                        Comment(
                            line=line_no,
                            text=text,
                            kind=CommentKind.SINGLE,
                            column=col,
                        )
                    )
                break
            block = _OpenBlock(start=start, end=end, line=line_no, column=col)
            col += len(start)

    if block is not None:
        comment = block.close()
        if comment is not None:
            comments.append(comment)
    return comments
