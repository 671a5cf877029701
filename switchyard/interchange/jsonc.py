"""JSON-with-comments support for the Kilocode/OpenCode config dialect.

The scanner is a small state machine over the whole buffer. It removes
``// ...`` and ``/* ... */`` comments that sit outside double-quoted strings
and leaves everything else byte-for-byte intact, so the result can be handed
to :func:`json.loads`. With ``drop_trailing_commas`` it also removes a comma
whose next significant character is ``}`` or ``]``; string contents are
never touched.

Known limitation: a quote is treated as escaped whenever the character right
before it is a backslash. A string that ends in an escaped backslash
(``"C:\\\\"``) therefore keeps the scanner inside the string.
"""

import json
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from ..errors import DocumentError


class ScanState(Enum):
    """Lexical position of the scanner."""

    NORMAL = auto()
    IN_STRING = auto()
    IN_LINE_COMMENT = auto()
    IN_BLOCK_COMMENT = auto()


class CommentScanner:
    """Single left-to-right pass that drops comments outside string literals."""

    def __init__(self, text: str, drop_trailing_commas: bool = False):
        self.text = text
        self.pos = 0
        self.state = ScanState.NORMAL
        self.drop_trailing_commas = drop_trailing_commas
        self._out: List[str] = []
        self._pending_comma: Optional[int] = None
        self.transitions: Dict[ScanState, Callable[[str], None]] = {
            ScanState.NORMAL: self._scan_normal,
            ScanState.IN_STRING: self._scan_string,
            ScanState.IN_LINE_COMMENT: self._scan_line_comment,
            ScanState.IN_BLOCK_COMMENT: self._scan_block_comment,
        }

    def run(self) -> str:
        while self.pos < len(self.text):
            self.transitions[self.state](self.text[self.pos])
        return "".join(self._out)

    def _peek(self) -> str:
        nxt = self.pos + 1
        return self.text[nxt] if nxt < len(self.text) else ""

    def _settle_comma(self, ch: str) -> None:
        # ch is the first significant character after a buffered comma.
        if self._pending_comma is not None and ch in "}]":
            self._out[self._pending_comma] = ""
        self._pending_comma = None

    def _scan_normal(self, ch: str) -> None:
        if ch == "/" and self._peek() == "/":
            self.state = ScanState.IN_LINE_COMMENT
            self.pos += 2
            return
        if ch == "/" and self._peek() == "*":
            self.state = ScanState.IN_BLOCK_COMMENT
            self.pos += 2
            return
        if not ch.isspace():
            self._settle_comma(ch)
        self._out.append(ch)
        if ch == '"':
            self.state = ScanState.IN_STRING
        elif ch == "," and self.drop_trailing_commas:
            self._pending_comma = len(self._out) - 1
        self.pos += 1

    def _scan_string(self, ch: str) -> None:
        self._out.append(ch)
        if ch == '"' and self.text[self.pos - 1] != "\\":
            self.state = ScanState.NORMAL
        self.pos += 1

    def _scan_line_comment(self, ch: str) -> None:
        if ch == "\n":
            self._out.append(ch)
            self.state = ScanState.NORMAL
        self.pos += 1

    def _scan_block_comment(self, ch: str) -> None:
        if ch == "*" and self._peek() == "/":
            self.state = ScanState.NORMAL
            self.pos += 2
        else:
            self.pos += 1


def strip_comments(text: str) -> str:
    """Return ``text`` with JSONC comments removed."""
    return CommentScanner(text).run()


def loads(text: str) -> Dict[str, Any]:
    """Parse JSONC text into a plain document tree.

    Trailing commas are tolerated. Blank input yields an empty document.
    Raises DocumentError when the text is not JSON even after cleanup.
    """
    cleaned = CommentScanner(text, drop_trailing_commas=True).run()
    if not cleaned.strip():
        return {}
    try:
        document = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise DocumentError(f"Invalid JSON content: {exc}") from exc
    if not isinstance(document, dict):
        raise DocumentError("Config document must be a JSON object")
    return document


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
