r"""
Commandeer decoders: type-directed reading of values from a token stream.

Overview
- Decoder: abstract tag. Every concrete decoder knows how to read one value of
  its type from a TokenStream in two contexts:
  • decode(stream): a top-level read (one command argument).
  • element(stream): a read inside a bracketed literal; after the value, one
    optional ',' (with surrounding whitespace) is consumed.

- Scalars
  • Scalar(name, pattern, converter): consumes the longest prefix matching the
    pattern after skipping whitespace, like a formatted read. "3.5f" read as a
    float yields 3.5 and leaves "f" unread.
  • Ready-made: Integer, Floating, Character, Boolean.

- Strings (String)
  • '"' opens a quoted string: characters are copied verbatim up to the next
    unescaped '"'. '\"' is the only escape; any other backslash is kept.
  • Otherwise a bare word: everything up to whitespace, ',' or '}'.
  • parse_scalar_string() accepts an empty word; parse_element_string() does
    not ("missing element").

- Composites (all use the '{ e1, e2, ... }' literal)
  • Sequence(element, factory=list) and the ready-made List, Deque, Set,
    FrozenSet and MultiSet.
  • Array(element, size): exactly size elements, produced as a tuple.
  • Tuple(*decoders): one decoder per position, arity fixed by declaration.
  • Pair(key, value): a two-position Tuple.
  • Map(key, value) / MultiMap(key, value): sequences of pairs collected into
    a dict (first key wins) or a dict of lists (every value kept).

- Annotations
  • resolve(annotation) maps a closed table of Python annotations (int, float,
    str, bool, list[T], tuple[...], set[T], frozenset[T], deque[T], Counter[T],
    dict[K, V], Annotated[X, decoder]) to decoders. Anything else is rejected
    at registration time with TypeError.

Failures
- Every grammar violation raises a DecodeError subclass immediately. There is
  no backtracking; the stream position after a failure is unspecified.

Quick examples
    >>> decode("{1, 2, 3}", list[int])
    [1, 2, 3]
    >>> decode('{ "a b", c }', Pair(String, String))
    ('a b', 'c')
    >>> decode("{ {x, 1}, {y, 2} }", dict[str, int])
    {'x': 1, 'y': 2}
"""
import collections
import re
import typing
from abc import ABC, abstractmethod

from .faults import *
from .stream import TokenStream
from .utils import *

_BARE_WORD = re.compile(r"[^\s,}]+")


def _preview(stream):
    """Short excerpt of what sits at the cursor, for fault messages."""
    if stream.exhausted:
        return "end of input"
    return repr(stream.remainder[:12])


def _expect(stream, char, decoder, fault, code):
    position = stream.skip().position
    if stream.get() != char:
        raise fault(
            "%s must %s with %r but found %s" % (
                decoder.name, "start" if char == "{" else "end", char, _preview(_rewind(stream, position))
            ),
            position=position,
            title="missing bracket",
            code=code,
            hint="wrap %s values in braces, for example: %s" % (decoder.name, decoder.example),
            docs=getdoc(code),
        )


def _rewind(stream, position):
    # Fault messages show the input from where the bracket was expected.
    return TokenStream(stream.source[position:])


def parse_delimiter(stream, /):
    """Consume one optional ',' together with the whitespace around it."""
    if stream.skip().peek() == ",":
        stream.get()
        stream.skip()


def parse_quoted_string(stream, /):
    r"""
    Read a '"'-delimited string starting at the cursor.

    '\"' is unescaped to '"'; a backslash before anything else is kept as is.
    """
    position = stream.position
    if stream.get() != '"':
        raise MalformedScalarError(
            "quoted string must start with a quotation mark",
            position=position,
            title="malformed string",
            code=FaultCode.MALFORMED_SCALAR,
            hint='open the string with \'"\'',
            docs=getdoc(FaultCode.MALFORMED_SCALAR),
        )

    characters = []
    while True:
        if not (char := stream.get()):
            raise UnterminatedStringError(
                "unterminated string",
                position=position,
                title="unterminated string",
                code=FaultCode.UNTERMINATED_STRING,
                hint='close the string with \'"\' (write \\" for a literal quotation mark)',
                docs=getdoc(FaultCode.UNTERMINATED_STRING),
            )
        if char == '"':
            return "".join(characters)
        if char == "\\" and stream.peek() == '"':
            char = stream.get()
        characters.append(char)


def parse_scalar_string(stream, /):
    """
    Read a string argument: quoted if it starts with '"', else a bare word.

    An empty bare word is not an error here; reading an empty stream yields "".
    """
    if stream.skip().peek() == '"':
        return parse_quoted_string(stream)
    return stream.match(_BARE_WORD) or ""


def parse_element_string(stream, /):
    """
    Read a string inside a bracketed literal, then its trailing delimiter.

    Raises MissingElementError when no word is present (the next character is
    a ',', a '}' or the end of input).
    """
    if stream.skip().peek() == '"':
        value = parse_quoted_string(stream)
    elif not (value := stream.match(_BARE_WORD)):
        raise MissingElementError(
            "missing element, found %s" % _preview(stream),
            position=stream.position,
            title="missing element",
            code=FaultCode.MISSING_ELEMENT,
            hint='write a word or a quoted string (use "" for an empty one)',
            docs=getdoc(FaultCode.MISSING_ELEMENT),
        )
    parse_delimiter(stream)
    return value


class Decoder(ABC):
    """
    Base tag of the closed decoder family.

    Subclasses implement decode(); element() defaults to decode() followed by
    parse_delimiter(). name is used in messages and reprs, example in hints.
    """
    __slots__ = ()

    @property
    @abstractmethod
    def name(self): ...

    @property
    def example(self):
        return self.name

    @abstractmethod
    def decode(self, stream, /): ...

    def element(self, stream, /):
        value = self.decode(stream)
        parse_delimiter(stream)
        return value

    def __repr__(self):
        return self.name


class Scalar(Decoder):
    """
    Prefix-matching scalar decoder.

    pattern is matched at the cursor after skipping whitespace; the matched
    text is handed to converter. A converter ValueError/OverflowError counts as
    a malformed scalar.
    """
    __slots__ = ("_name", "_pattern", "_converter", "_example")

    def __init__(self, name, pattern, converter, /, example=Unset):
        if not isinstance(name, str):
            raise TypeError("Scalar() 'name' must be a string")
        if not (name := name.strip()):
            raise ValueError("Scalar() 'name' must be a non-empty string")
        if not callable(converter):
            raise TypeError("Scalar() 'converter' must be callable")
        self._name = name
        self._pattern = re.compile(pattern)
        self._converter = converter
        self._example = coalesce(example, name)

    @property
    def name(self):
        return self._name

    @property
    def example(self):
        return self._example

    def decode(self, stream, /):
        position = stream.skip().position
        if (token := stream.match(self._pattern)) is not None:
            try:
                return self._converter(token)
            except (ValueError, OverflowError):
                pass
        raise MalformedScalarError(
            "expected %s but found %s" % (self._name, _preview(_rewind(stream, position))),
            position=position,
            title="malformed %s" % self._name,
            code=FaultCode.MALFORMED_SCALAR,
            hint="write a %s here, for example: %s" % (self._name, self._example),
            docs=getdoc(FaultCode.MALFORMED_SCALAR),
        )


class StringDecoder(Decoder):
    __slots__ = ()

    @property
    def name(self):
        return "string"

    @property
    def example(self):
        return '"hello world"'

    def decode(self, stream, /):
        return parse_scalar_string(stream)

    def element(self, stream, /):
        return parse_element_string(stream)


class Sequence(Decoder):
    """
    Dynamically sized '{ e1, e2, ... }' literal.

    The collected list is passed to factory (list by default). {} and { } are
    empty; commas between elements are optional and a trailing one is allowed.
    """
    __slots__ = ("_element", "_factory")
    __factory__ = list
    __label__ = "sequence"

    def __init__(self, element, /, factory=Unset):
        self._element = resolve(element)
        self._factory = coalesce(factory, type(self).__factory__)
        if not callable(self._factory):
            raise TypeError(f"{type(self).__name__}() 'factory' must be callable")

    @property
    def name(self):
        return f"{type(self).__label__}[{self._element.name}]"

    @property
    def example(self):
        return "{%s, %s}" % (self._element.example, self._element.example)

    def _collect(self, stream):
        _expect(stream, "{", self, MissingOpenerError, FaultCode.MISSING_OPENER)
        stream.skip()
        values = []
        while not stream.exhausted and stream.peek() != "}":
            values.append(self._element.element(stream))
        _expect(stream, "}", self, MissingCloserError, FaultCode.MISSING_CLOSER)
        return values

    def decode(self, stream, /):
        return self._factory(self._collect(stream))


class List(Sequence):
    __slots__ = ()
    __label__ = "list"


class Deque(Sequence):
    __slots__ = ()
    __factory__ = collections.deque
    __label__ = "deque"


class Set(Sequence):
    __slots__ = ()
    __factory__ = set
    __label__ = "set"


class FrozenSet(Sequence):
    __slots__ = ()
    __factory__ = frozenset
    __label__ = "frozenset"


class MultiSet(Sequence):
    """Counts repeated elements (collections.Counter)."""
    __slots__ = ()
    __factory__ = collections.Counter
    __label__ = "multiset"


class Array(Sequence):
    """
    Fixed-size sequence; decodes to a tuple of exactly size elements.

    Both surplus and missing elements raise ElementCountError.
    """
    __slots__ = ("_size",)
    __factory__ = tuple
    __label__ = "array"

    def __init__(self, element, size, /):
        if not isinstance(size, int) or isinstance(size, bool):
            raise TypeError("Array() 'size' must be an integer")
        if size < 0:
            raise ValueError("Array() 'size' must be a non-negative integer")
        super().__init__(element)
        self._size = size

    @property
    def size(self):
        return self._size

    @property
    def name(self):
        return f"array[{self._element.name}, {self._size}]"

    @property
    def example(self):
        return "{%s}" % ", ".join([self._element.example] * self._size)

    def decode(self, stream, /):
        position = stream.skip().position
        if len(values := self._collect(stream)) != self._size:
            raise ElementCountError(
                "%s expects %d elements but %d were given" % (self.name, self._size, len(values)),
                position=position,
                title="wrong number of elements",
                code=FaultCode.ELEMENT_COUNT,
                hint="write exactly %d elements, for example: %s" % (self._size, self.example),
                docs=getdoc(FaultCode.ELEMENT_COUNT),
            )
        return tuple(values)


class Tuple(Decoder):
    """
    Heterogeneous '{ e1, ..., en }' literal; the i-th element uses the i-th decoder.

    Missing elements fail while decoding the absent position; surplus elements
    fail when the closing brace is expected.
    """
    __slots__ = ("_decoders",)

    def __init__(self, *decoders):
        self._decoders = tuple(map(resolve, decoders))

    @property
    def decoders(self):
        return self._decoders

    @property
    def name(self):
        return "tuple[%s]" % ", ".join(decoder.name for decoder in self._decoders)

    @property
    def example(self):
        return "{%s}" % ", ".join(decoder.example for decoder in self._decoders)

    def decode(self, stream, /):
        _expect(stream, "{", self, MissingOpenerError, FaultCode.MISSING_OPENER)
        stream.skip()
        values = tuple(decoder.element(stream) for decoder in self._decoders)
        _expect(stream, "}", self, MissingCloserError, FaultCode.MISSING_CLOSER)
        return values


class Pair(Tuple):
    __slots__ = ()

    def __init__(self, key, value, /):
        super().__init__(key, value)

    @property
    def name(self):
        return "pair[%s, %s]" % tuple(decoder.name for decoder in self._decoders)


def _first_wins(pairs):
    mapping = {}
    for key, value in pairs:
        mapping.setdefault(key, value)
    return mapping


def _grouped(pairs):
    mapping = collections.defaultdict(list)
    for key, value in pairs:
        mapping[key].append(value)
    return dict(mapping)


class Map(Sequence):
    """'{ {k1, v1}, {k2, v2} }' into a dict; a repeated key keeps its first value."""
    __slots__ = ()
    __factory__ = staticmethod(_first_wins)
    __label__ = "map"

    def __init__(self, key, value, /):
        super().__init__(Pair(key, value))

    @property
    def name(self):
        return "map[%s, %s]" % tuple(decoder.name for decoder in self._element.decoders)


class MultiMap(Map):
    """Like Map, but every value of a repeated key is kept, in input order."""
    __slots__ = ()
    __factory__ = staticmethod(_grouped)
    __label__ = "multimap"

    @property
    def name(self):
        return "multimap[%s, %s]" % tuple(decoder.name for decoder in self._element.decoders)


Integer = Scalar("integer", r"[+-]?\d+", int, example="42")
Floating = Scalar("float", r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", float, example="3.5")
Character = Scalar("character", r"[^\s,}]", str, example="x")
Boolean = Scalar("boolean", r"(?i:true|false)|[01]", lambda token: token.lower() in ("true", "1"), example="true")
String = StringDecoder()

_SCALARS = {
    int: Integer,
    float: Floating,
    str: String,
    bool: Boolean,
}

_COLLECTIONS = {
    list: List,
    set: Set,
    frozenset: FrozenSet,
    collections.deque: Deque,
    collections.Counter: MultiSet,
}


def resolve(annotation, /):
    """
    Return the decoder for an annotation (or the decoder itself).

    Raises
    - TypeError: the annotation is outside the supported table, or a generic
      container is used without its element type (bare list, dict, ...).
    """
    if isinstance(annotation, Decoder):
        return annotation
    if isinstance(annotation, type) and annotation in _SCALARS:
        return _SCALARS[annotation]

    origin, args = typing.get_origin(annotation), typing.get_args(annotation)

    if origin is typing.Annotated:
        for metadata in reversed(args[1:]):
            if isinstance(metadata, Decoder):
                return metadata
        return resolve(args[0])
    if origin in _COLLECTIONS and len(args) == 1:
        return _COLLECTIONS[origin](resolve(args[0]))
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return Sequence(resolve(args[0]), factory=tuple)
        return Tuple(*args)
    if origin is dict and len(args) == 2:
        return Map(*args)

    raise TypeError(f"cannot decode values of type {annotation!r}")


def decode(source, decoder, /):
    """
    Decode one value from source (a str or a TokenStream) with decoder.

    decoder may be any Decoder or an annotation accepted by resolve(). When a
    TokenStream is given it is left positioned right after the value.
    """
    if isinstance(source, str):
        source = TokenStream(source)
    elif not isinstance(source, TokenStream):
        raise TypeError("decode() first argument must be a string or a token stream")
    return resolve(decoder).decode(source)


__all__ = (
    # Types
    "Decoder",
    "Scalar",
    "StringDecoder",
    "Sequence",
    "List",
    "Deque",
    "Set",
    "FrozenSet",
    "MultiSet",
    "Array",
    "Tuple",
    "Pair",
    "Map",
    "MultiMap",

    # Constants
    "Integer",
    "Floating",
    "Character",
    "Boolean",
    "String",

    # Functions
    "parse_delimiter",
    "parse_quoted_string",
    "parse_scalar_string",
    "parse_element_string",
    "resolve",
    "decode",
)
