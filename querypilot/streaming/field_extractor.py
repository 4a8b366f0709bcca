"""
Incremental Field Extractor

Surfaces the content of a single JSON string field while the document that
contains it is still being generated token by token.

The extractor is a small scanner automaton:

    SEARCHING -> IN_FIELD -> COMPLETE

While SEARCHING it waits for ``"<field>"`` followed by a colon and an opening
quote. Once IN_FIELD it decodes JSON string escapes character by character and
forwards every newly revealed piece of the value to the sink. The unescaped
closing quote moves it to COMPLETE, after which chunks are only recorded in
the full-document buffer.

Escape sequences split across chunks (a trailing backslash, a partial
``\\uXXXX``, half of a surrogate pair) are held back until complete, so the
concatenation of all emissions equals the decoded field value for any
chunking of the input.

Usage:
    extractor = IncrementalFieldExtractor("reasoning", on_content)
    async for chunk in stream:
        extractor.process_chunk(chunk)
    document = extractor.full_document()
"""

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)

ContentCallback = Callable[[str, str], None]

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}
_HEX_DIGITS = set("0123456789abcdefABCDEF")


class ScannerState(str, Enum):
    """Scanner automaton states."""

    SEARCHING = "searching"
    IN_FIELD = "in_field"
    COMPLETE = "complete"


def _is_hex(text: str) -> bool:
    return all(ch in _HEX_DIGITS for ch in text)


def _decode_unicode_escape(buffer: str, index: int) -> tuple[str, int] | None:
    """
    Decode a ``\\uXXXX`` escape whose ``u`` sits at ``buffer[index]``.

    Returns:
        (decoded text, characters consumed starting at ``index``), or None when
        the buffer ends before the escape (or its surrogate partner) is complete.
    """
    digits = buffer[index + 1 : index + 5]
    if len(digits) < 4:
        return None if _is_hex(digits) else ("u", 1)
    if not _is_hex(digits):
        return "u", 1

    code_point = int(digits, 16)
    if not 0xD800 <= code_point <= 0xDBFF:
        return chr(code_point), 5

    # High surrogate: pair it with a following \uDC00-\uDFFF escape if present.
    tail = buffer[index + 5 : index + 11]
    if len(tail) < 6:
        expected_prefix = "\\u"[: len(tail)]
        if tail[:2] == expected_prefix and _is_hex(tail[2:]):
            return None
        return chr(code_point), 5
    if tail.startswith("\\u") and _is_hex(tail[2:]):
        low = int(tail[2:], 16)
        if 0xDC00 <= low <= 0xDFFF:
            combined = 0x10000 + ((code_point - 0xD800) << 10) + (low - 0xDC00)
            return chr(combined), 11
    return chr(code_point), 5


class IncrementalFieldExtractor:
    """
    Stream the decoded value of one JSON string field as it arrives.

    Args:
        field_name: Name of the top-level string field to surface
        sink: Callback receiving ``(text, "content")`` for every newly
            revealed piece of the field value

    Only the first occurrence of the field is honored. If the field never
    appears, nothing is emitted and ``is_complete()`` stays False.
    """

    def __init__(self, field_name: str, sink: ContentCallback):
        self.field_name = field_name
        self._sink = sink
        self._pattern = f'"{field_name}"'
        self._state = ScannerState.SEARCHING
        self._document: list[str] = []
        self._buffer = ""
        self._escaped = False
        self._value: list[str] = []

    @property
    def state(self) -> ScannerState:
        return self._state

    def is_complete(self) -> bool:
        """Whether the closing quote of the field has been seen."""
        return self._state is ScannerState.COMPLETE

    def full_document(self) -> str:
        """Every chunk received so far, concatenated."""
        return "".join(self._document)

    def field_value(self) -> str:
        """Decoded field content emitted so far."""
        return "".join(self._value)

    def process_chunk(self, chunk: str) -> None:
        """
        Feed the next token chunk.

        Args:
            chunk: Raw text fragment of the document being generated
        """
        if not chunk:
            return
        self._document.append(chunk)
        if self._state is ScannerState.COMPLETE:
            return

        self._buffer += chunk
        if self._state is ScannerState.SEARCHING and not self._locate_field():
            return
        self._scan_field()

    # ------------------------------------------------------------------
    # Scanner steps
    # ------------------------------------------------------------------

    def _locate_field(self) -> bool:
        """Look for key, colon and opening quote; enter IN_FIELD when all are found."""
        key_at = self._buffer.find(self._pattern)
        if key_at == -1:
            # Keep just enough tail to match a key split across chunks.
            keep = len(self._pattern) - 1
            if len(self._buffer) > keep:
                self._buffer = self._buffer[-keep:]
            return False

        self._buffer = self._buffer[key_at:]
        colon_at = self._buffer.find(":", len(self._pattern))
        if colon_at == -1:
            return False
        quote_at = self._buffer.find('"', colon_at + 1)
        if quote_at == -1:
            return False

        self._buffer = self._buffer[quote_at + 1 :]
        self._value = []
        self._escaped = False
        self._state = ScannerState.IN_FIELD
        logger.debug(f"Streaming field '{self.field_name}' located")
        return True

    def _scan_field(self) -> None:
        buffer = self._buffer
        revealed: list[str] = []
        index = 0
        closed = False

        while index < len(buffer):
            char = buffer[index]
            if self._escaped:
                if char == "u":
                    decoded = _decode_unicode_escape(buffer, index)
                    if decoded is None:
                        break  # hold back until the escape is complete
                    text, consumed = decoded
                    revealed.append(text)
                    index += consumed
                else:
                    revealed.append(_SIMPLE_ESCAPES.get(char, char))
                    index += 1
                self._escaped = False
            elif char == "\\":
                self._escaped = True
                index += 1
            elif char == '"':
                closed = True
                index += 1
                break
            else:
                revealed.append(char)
                index += 1

        self._buffer = "" if closed else buffer[index:]

        text = "".join(revealed)
        if text:
            self._value.append(text)
            self._sink(text, "content")
        if closed:
            self._state = ScannerState.COMPLETE
            logger.debug(
                f"Streaming field '{self.field_name}' complete",
                extra={"field": self.field_name, "length": len(self.field_value())},
            )
