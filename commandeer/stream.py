"""
Commandeer token stream: a forward-only cursor over an input line.

The stream is the only state shared between consecutive decode calls of one
dispatch. It knows nothing about grammar; decoders drive it through a handful
of primitives:

- peek()          next character without consuming it ("" once exhausted)
- get()           consume and return the next character ("" once exhausted)
- skip()          consume any run of whitespace
- match(pattern)  consume the regex prefix matching at the cursor, or nothing

There is no sticky failure flag and no mode switch on the stream itself:
decoders raise faults on their own and pick quoted/unquoted reading locally.
"""
import re

from .utils import *


class TokenStream:
    """
    Cursor over a string.

    position is the index of the next unread character. It only moves forward
    and never goes past len(source), so exhausted is simply position == len.
    """
    __slots__ = ("_source", "_position")

    source = mirror("source")
    position = mirror("position")

    def __init__(self, source="", /):
        if not isinstance(source, str):
            raise TypeError("TokenStream() argument must be a string")
        self._source = source
        self._position = 0

    @property
    def exhausted(self):
        return self._position >= len(self._source)

    @property
    def remainder(self):
        """The unread tail of the source."""
        return self._source[self._position:]

    def peek(self):
        try:
            return self._source[self._position]
        except IndexError:
            return ""

    def get(self):
        if (char := self.peek()):
            self._position += 1
        return char

    def skip(self):
        """Consume whitespace and return the stream for chaining."""
        while (char := self.peek()) and char.isspace():
            self._position += 1
        return self

    def match(self, pattern, /):
        """
        Consume the longest prefix matched by pattern at the cursor.

        Returns the matched text, or None when nothing matches (or the match
        is empty); in both cases nothing is consumed on failure.
        """
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        if not (match := pattern.match(self._source, self._position)) or not match.group():
            return None
        self._position = match.end()
        return match.group()

    def __repr__(self):
        return f"{type(self).__name__}(source={self._source!r}, position={self._position!r})"


__all__ = (
    "TokenStream",
)
