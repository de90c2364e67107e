"""
Commandeer utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the stream, decoder and command layers.

Overview
- UnsetType / Unset
  • Singleton sentinel for “value not provided”, distinct from None.
  • Falsey, printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; None/0/""/[] are kept as given.

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated closures (invocation thunks)
    so tracebacks read like the command they belong to.

- mirror("attr")
  • Read-only property exposing a private backing field (self._attr).

- ordinal(number)
  • Human ordinal for 1-based positions, used in fault messages
    (“bad integer for second argument”).

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
    >>> ordinal(2), ordinal(12), ordinal(23)
    ('second', '12th', '23rd')
"""
import functools
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel.

    Unset stands for "not provided" wherever None is itself a meaningful value
    (a handler default, a command without callback). The type can be used in
    unions (str | Unset) and cannot be subclassed or instantiated twice.
    """
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __or__(self, other, /):
        return type(self) | other

    def __ror__(self, other, /):
        return other | type(self)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, /, **options):
        raise TypeError(f"type {cls.__name__!r} cannot derive from the Unset sentinel type")


def coalesce(object, default=None, /):
    """The object itself, or default when it is Unset (falsey values are kept)."""
    if object is Unset:
        return default
    return object


def _renamed(function, name):
    if not callable(function):
        raise TypeError("rename() target must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() name must be a string")
    try:
        function.__name__ = function.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError(f"rename() cannot rename {function!r}") from None
    return function


def rename(*parameters):
    """
    Give a callable a new __name__/__qualname__.

    rename(function, name) renames in place and returns function; rename(name)
    returns a decorator doing the same. Used on generated invocation thunks
    so tracebacks show which command they belong to.
    """
    if len(parameters) == 2:
        return _renamed(*parameters)
    if len(parameters) != 1:
        raise TypeError(f"rename() takes 1 or 2 arguments ({len(parameters)} given)")
    if not isinstance(name := parameters[0], str):
        raise TypeError("rename() name must be a string")
    return _renamed(lambda function: _renamed(function, name), "rename")


def mirror(name, /):
    """
    Read-only property returning self._{name}.

    Everything stored behind a mirrored property is immutable already (tuples,
    mapping proxies, scalars), so no copy is made.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() name must be a string")
    attribute = "_" + name
    return property(_renamed(lambda self: getattr(self, attribute), name))


_ORDINAL_WORDS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.lru_cache(maxsize=None, typed=True)
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are words ("first"…"tenth").
    - Other numbers use numeric ordinals with English suffixes (11th, 21st, 112th).
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError("ordinal() argument must be an integer")
    if number < 1:
        raise ValueError("ordinal() argument must be a positive integer")

    if number <= len(_ORDINAL_WORDS):
        return _ORDINAL_WORDS[number - 1]
    # teens take "th" whatever their last digit (11th, 112th)
    suffix = "th" if number % 100 in range(11, 20) else {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Pair with coalesce(value, default) to materialize a fallback only when the
caller passed nothing.
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
