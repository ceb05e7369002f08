"""Completion of truncated JSON text.

Models emit JSON one token at a time, so the text seen mid-stream is almost
never valid: strings are open, arrays unterminated, a comma or colon may be
dangling. ``repair_json`` scans such a prefix once, left to right, keeping a
stack of scanner states, and returns the shortest valid JSON document that
is consistent with it.

Two pieces of state drive the result:

* ``last_valid_index`` marks the end of the longest prefix that can be
  completed by appending closers alone. Tokens that might still turn into
  something else (a bare ``-``, a trailing ``.`` or exponent marker, a
  dangling ``,`` or ``:``, an object key without its value) never advance
  it, which is how they get rolled back.
* the state stack, which after the scan is drained innermost first to
  append closing quotes, brackets, braces and the rest of partial literals.

Text that is malformed for reasons other than truncation has no such
completion. The candidate is checked with ``json.loads`` and an empty
string is returned in that case, so the function never raises and its
output is always either ``""`` or valid JSON.
"""

from __future__ import annotations

import json
import logging
from enum import Enum, StrEnum, auto
from typing import Any

logger = logging.getLogger(__name__)

_LITERALS = ("true", "false", "null")
_DIGITS = frozenset("0123456789")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
# Characters that may continue a number but cannot end one
_NUMBER_CONTINUATION = frozenset("+-.eE")


class Container(StrEnum):
    """A JSON structure that has been opened but not closed."""

    ARRAY = "array"
    OBJECT = "object"


class _State(Enum):
    ROOT = auto()
    FINISH = auto()
    STRING = auto()
    STRING_ESCAPE = auto()
    UNICODE_ESCAPE = auto()
    LITERAL = auto()
    NUMBER = auto()
    OBJECT_START = auto()
    OBJECT_KEY = auto()
    OBJECT_AFTER_KEY = auto()
    OBJECT_BEFORE_VALUE = auto()
    OBJECT_AFTER_VALUE = auto()
    OBJECT_AFTER_COMMA = auto()
    ARRAY_START = auto()
    ARRAY_AFTER_VALUE = auto()
    ARRAY_AFTER_COMMA = auto()


_OBJECT_STATES = frozenset({
    _State.OBJECT_START,
    _State.OBJECT_KEY,
    _State.OBJECT_AFTER_KEY,
    _State.OBJECT_BEFORE_VALUE,
    _State.OBJECT_AFTER_VALUE,
    _State.OBJECT_AFTER_COMMA,
})

_ARRAY_STATES = frozenset({
    _State.ARRAY_START,
    _State.ARRAY_AFTER_VALUE,
    _State.ARRAY_AFTER_COMMA,
})


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def strict_loads(text: str) -> Any:
    """``json.loads`` without the NaN/Infinity extensions."""
    return json.loads(text, parse_constant=_reject_constant)


class _Scanner:
    """Single pass over partial JSON text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.stack: list[_State] = [_State.ROOT]
        self.last_valid_index = -1
        self.literal_start = 0
        self.unicode_digits = 0

    def scan(self) -> _Scanner:
        for index, char in enumerate(self.text):
            self._step(char, index)
        return self

    def containers(self) -> list[Container]:
        opened: list[Container] = []
        for state in self.stack:
            if state in _OBJECT_STATES:
                opened.append(Container.OBJECT)
            elif state in _ARRAY_STATES:
                opened.append(Container.ARRAY)
        return opened

    def completion(self) -> str:
        """Closing text for everything still open, innermost first."""
        parts: list[str] = []
        for state in reversed(self.stack):
            if state is _State.STRING:
                parts.append('"')
            elif state in _OBJECT_STATES:
                parts.append("}")
            elif state in _ARRAY_STATES:
                parts.append("]")
            elif state is _State.LITERAL:
                partial = self.text[self.literal_start:]
                for literal in _LITERALS:
                    if literal.startswith(partial):
                        parts.append(literal[len(partial):])
                        break
        return "".join(parts)

    # ── Transitions ───────────────────────────────────────────

    def _step(self, char: str, index: int) -> None:
        state = self.stack[-1]

        if state is _State.ROOT:
            self._value_start(char, index, _State.FINISH)
        elif state is _State.STRING:
            self._string(char, index)
        elif state is _State.STRING_ESCAPE:
            self._string_escape(char, index)
        elif state is _State.UNICODE_ESCAPE:
            self._unicode_escape(char, index)
        elif state is _State.NUMBER:
            self._number(char, index)
        elif state is _State.LITERAL:
            self._literal(char, index)
        elif state is _State.OBJECT_START:
            if char == '"':
                self._swap(_State.OBJECT_KEY)
            elif char == "}":
                self._close(index)
        elif state is _State.OBJECT_AFTER_COMMA:
            if char == '"':
                self._swap(_State.OBJECT_KEY)
        elif state is _State.OBJECT_KEY:
            if char == '"':
                self._swap(_State.OBJECT_AFTER_KEY)
            elif char == "\\":
                self.stack.append(_State.STRING_ESCAPE)
        elif state is _State.OBJECT_AFTER_KEY:
            if char == ":":
                self._swap(_State.OBJECT_BEFORE_VALUE)
        elif state is _State.OBJECT_BEFORE_VALUE:
            self._value_start(char, index, _State.OBJECT_AFTER_VALUE)
        elif state is _State.OBJECT_AFTER_VALUE:
            self._after_object_value(char, index)
        elif state is _State.ARRAY_START:
            if char == "]":
                self._close(index)
            else:
                self._value_start(char, index, _State.ARRAY_AFTER_VALUE)
        elif state is _State.ARRAY_AFTER_VALUE:
            self._after_array_value(char, index)
        elif state is _State.ARRAY_AFTER_COMMA:
            self._value_start(char, index, _State.ARRAY_AFTER_VALUE)
        # FINISH: anything after the top-level value is ignored

    def _swap(self, state: _State) -> None:
        self.stack[-1] = state

    def _close(self, index: int) -> None:
        self.last_valid_index = index
        self.stack.pop()

    def _value_start(self, char: str, index: int, after: _State) -> None:
        """Open a value, leaving ``after`` to resume once it ends."""
        if char == '"':
            opened = _State.STRING
        elif char in "tfn":
            opened = _State.LITERAL
            self.literal_start = index
        elif char == "-":
            # A lone minus sign is not a number yet
            self._swap(after)
            self.stack.append(_State.NUMBER)
            return
        elif char in _DIGITS:
            opened = _State.NUMBER
        elif char == "{":
            opened = _State.OBJECT_START
        elif char == "[":
            opened = _State.ARRAY_START
        else:
            return

        self.last_valid_index = index
        self._swap(after)
        self.stack.append(opened)

    def _after_value(self, char: str, index: int) -> None:
        state = self.stack[-1]
        if state is _State.OBJECT_AFTER_VALUE:
            self._after_object_value(char, index)
        elif state is _State.ARRAY_AFTER_VALUE:
            self._after_array_value(char, index)

    def _after_object_value(self, char: str, index: int) -> None:
        if char == ",":
            self._swap(_State.OBJECT_AFTER_COMMA)
        elif char == "}":
            self._close(index)

    def _after_array_value(self, char: str, index: int) -> None:
        if char == ",":
            self._swap(_State.ARRAY_AFTER_COMMA)
        elif char == "]":
            self._close(index)

    def _string(self, char: str, index: int) -> None:
        if char == '"':
            self._close(index)
        elif char == "\\":
            self.stack.append(_State.STRING_ESCAPE)
        else:
            self.last_valid_index = index

    def _string_escape(self, char: str, index: int) -> None:
        self.stack.pop()
        # Escapes inside object keys never move the valid index; the whole
        # key is rolled back until its value starts.
        if self.stack[-1] is not _State.STRING:
            return
        if char == "u":
            self.unicode_digits = 0
            self.stack.append(_State.UNICODE_ESCAPE)
        else:
            self.last_valid_index = index

    def _unicode_escape(self, char: str, index: int) -> None:
        if char in _HEX_DIGITS:
            self.unicode_digits += 1
            if self.unicode_digits == 4:
                self.stack.pop()
                self.last_valid_index = index
        else:
            # Malformed escape; left for the final validity check
            self.stack.pop()
            self.last_valid_index = index

    def _number(self, char: str, index: int) -> None:
        if char in _DIGITS:
            self.last_valid_index = index
        elif char not in _NUMBER_CONTINUATION:
            self.stack.pop()
            self._after_value(char, index)

    def _literal(self, char: str, index: int) -> None:
        partial = self.text[self.literal_start:index + 1]
        if any(literal.startswith(partial) for literal in _LITERALS):
            self.last_valid_index = index
        else:
            self.stack.pop()
            self._after_value(char, index)


def repair_json(partial: str) -> str:
    """Complete a prefix of a JSON document into valid JSON.

    Open strings, arrays and objects are closed, partial ``true``/``false``/
    ``null`` literals are finished, and anything that only more input could
    complete (a dangling separator, a key without a value, a half-written
    number suffix or escape) is dropped.

    Args:
        partial: Text accumulated so far, typically a model's streamed output.

    Returns:
        Valid JSON text, or ``""`` when no value can be recovered yet.

    Examples:
        >>> repair_json('{"k1": 1, "k2":')
        '{"k1": 1}'
        >>> repair_json('[[1], [2')
        '[[1], [2]]'
    """
    scanner = _Scanner(partial).scan()
    repaired = partial[:scanner.last_valid_index + 1] + scanner.completion()
    if not repaired:
        return ""

    try:
        strict_loads(repaired)
    except (ValueError, RecursionError):
        logger.debug("No valid completion for partial JSON %.80r", partial)
        return ""
    return repaired


def container_stack(partial: str) -> list[Container]:
    """Return the containers left open by ``partial``, outermost first."""
    return _Scanner(partial).scan().containers()
