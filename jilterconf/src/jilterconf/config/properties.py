"""Reader and writer for the line-oriented ``key=value`` properties syntax.

What:
  Convert between properties text and ordered ``(key, value)`` pairs using the
  same rules as the JVM tooling that also reads and writes the filter
  configuration file.

Why:
  The file is shared with external management tooling, so comments, escapes,
  continuation lines and the ``\\uXXXX`` encoding must behave identically on
  both sides. Keeping the text rules here lets the codec deal purely with keys
  and values.

How:
  :func:`parse_properties` joins continuation lines, drops comments, splits
  each logical line at the first unescaped separator and unescapes both halves.
  :func:`format_properties` writes ``#`` header lines, then the pairs sorted by
  category and numeric suffix, escaping everything outside printable ASCII.

Interfaces:
  :func:`parse_properties`, :func:`format_properties`,
  :class:`PropertiesSyntaxError`.

Invariants:
  - Written output is pure ASCII; non-ASCII text survives as ``\\uXXXX``.
  - ``parse_properties(format_properties(pairs))`` returns the same pairs.
  - Later duplicates of a key override earlier ones when parsing.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from string import hexdigits
from typing import Dict, Iterable, Iterator, Optional, Tuple


class PropertiesSyntaxError(ValueError):
    """Raised when properties text contains a malformed escape sequence."""


_WHITESPACE = " \t\f"
_NEWLINES = re.compile(r"\r\n|\r|\n")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_SAVE_ESCAPES = {"\t": "\\t", "\n": "\\n", "\r": "\\r", "\f": "\\f"}


def _continues(line: str) -> bool:
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _logical_lines(text: str) -> Iterator[str]:
    buffer: Optional[str] = None
    for natural in _NEWLINES.split(text):
        line = natural.lstrip(_WHITESPACE)
        if buffer is None:
            if not line or line[0] in "#!":
                continue
            buffer = ""
        if _continues(line):
            buffer += line[:-1]
            continue
        yield buffer + line
        buffer = None
    if buffer is not None:
        yield buffer


def _unescape(text: str) -> str:
    if "\\" not in text:
        return text
    out = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        index += 1
        if char != "\\":
            out.append(char)
            continue
        if index >= length:
            break
        char = text[index]
        index += 1
        if char == "u":
            digits = text[index:index + 4]
            if len(digits) != 4 or any(digit not in hexdigits for digit in digits):
                raise PropertiesSyntaxError(f"Malformed \\uxxxx encoding: {text!r}")
            out.append(chr(int(digits, 16)))
            index += 4
        else:
            out.append(_ESCAPES.get(char, char))
    # Recombine UTF-16 surrogate pairs written by the escaper.
    try:
        return "".join(out).encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError as exc:
        raise PropertiesSyntaxError(f"Unpaired surrogate escape: {text!r}") from exc


def _split(line: str) -> Tuple[str, str]:
    index = 0
    escaped = False
    while index < len(line):
        char = line[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in "=:" or char in _WHITESPACE:
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip(_WHITESPACE)
    if rest and rest[0] in "=:":
        rest = rest[1:].lstrip(_WHITESPACE)
    return _unescape(key), _unescape(rest)


def parse_properties(text: str) -> Dict[str, str]:
    """Parse properties ``text`` into an insertion-ordered dictionary.

    Raises:
      PropertiesSyntaxError: If a ``\\u`` escape is not followed by four hex
        digits.
    """

    result: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split(line)
        result[key] = value
    return result


def _escape_char(char: str) -> str:
    code = ord(char)
    if code > 0xFFFF:
        code -= 0x10000
        high = 0xD800 + (code >> 10)
        low = 0xDC00 + (code & 0x3FF)
        return f"\\u{high:04X}\\u{low:04X}"
    return f"\\u{code:04X}"


def _escape(text: str, *, is_key: bool) -> str:
    out = []
    for index, char in enumerate(text):
        if char == " ":
            out.append("\\ " if is_key or index == 0 else " ")
        elif char in _SAVE_ESCAPES:
            out.append(_SAVE_ESCAPES[char])
        elif char in "\\=:#!":
            out.append("\\" + char)
        elif " " < char <= "~":
            out.append(char)
        else:
            out.append(_escape_char(char))
    return "".join(out)


def _comment_lines(comment: str) -> Iterator[str]:
    for line in _NEWLINES.split(comment):
        escaped = "".join(char if " " <= char <= "~" else _escape_char(char) for char in line)
        yield "#" + escaped


def sort_key(key: str) -> Tuple[str, int, int, str]:
    """Order keys by category, then numerically by a ``.<digits>`` suffix."""

    head, dot, tail = key.rpartition(".")
    if dot and tail.isdigit():
        return (head, 1, int(tail), key)
    return (key, 0, 0, key)


def format_properties(
    pairs: Iterable[Tuple[str, str]],
    comment: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> str:
    """Render ``pairs`` as properties text with a comment and timestamp header.

    Args:
      pairs: Key/value pairs; keys must be unique.
      comment: Free text written as leading ``#`` lines, one per input line.
      timestamp: Time recorded in the header, ``now`` in UTC by default.

    Returns:
      ASCII text terminated by a newline.
    """

    lines = []
    if comment is not None:
        lines.extend(_comment_lines(comment))
    when = timestamp or datetime.now(timezone.utc)
    lines.append("#" + when.strftime("%a %b %d %H:%M:%S %Z %Y").replace("  ", " "))
    for key, value in sorted(pairs, key=lambda pair: sort_key(pair[0])):
        lines.append(f"{_escape(key, is_key=True)}={_escape(value, is_key=False)}")
    return "\n".join(lines) + "\n"
