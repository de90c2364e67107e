"""
Commandeer command layer: register commands and dispatch lines to them.

What this module provides
- Command: a typed command. Wraps a callable together with one decoder per
  positional parameter (explicit, or resolved from annotations) and a thunk,
  built once, that decodes the arguments left to right and calls the handler.
- NamedCommand: a raw command. Declares parameter names only; dispatching it
  binds raw argument strings to those names positionally (ArgumentMap).
- Dispatcher: ordered registry plus dispatch. The first command whose name
  matches wins.
- Helpers: command(...) factory/decorator, invoke(dispatcher, argv) runner,
  requote(argument) and parse_args(argv) for process argument vectors.

Quick start
    from commandeer import Dispatcher, Array, Integer

    dispatcher = Dispatcher()

    @dispatcher.command
    def scale(factor: float, points: list[int]) -> None:
        print([factor * point for point in points])

    dispatcher.register("corner", lambda x, y: print(x, y), Integer, Integer)
    dispatcher.register("login", ["user", "password"])

    dispatcher.dispatch("scale 1.5 {1, 2, 3}")     # typed dispatch
    dispatcher.dispatch("login", ["eiko"])         # ArgumentMap(command='login', params={'user': 'eiko', 'password': ''})

Dispatch rules
- dispatch(line): the first token (a bare word or a quoted string) names the
  command; the rest of the line is the argument stream.
- dispatch(name, remainder): remainder is a str or TokenStream for typed
  commands, or a sequence of raw strings for named ones. Each mode adapts the
  other form (raw strings are re-quoted and joined; a stream is split).
- No match: logged and None is returned. Dispatchers built with strict=True
  raise UnknownCommandError instead (rendered and exiting in shell mode).
- Decode failures propagate with the command name attached; the handler is
  not called unless every argument decoded.
"""
import collections
import copy
import difflib
import inspect
import logging
import re
import sys
import typing
from collections.abc import Iterable
from inspect import Parameter
from types import MappingProxyType

from .decoders import Decoder, parse_quoted_string, parse_scalar_string, resolve
from .faults import *
from .stream import TokenStream
from .utils import *

logger = logging.getLogger(__name__)

_RAW_WORD = re.compile(r"\S+")
_DELIMITERS = re.compile(r"[,}]")


class CommandType(type):
    """
    Metaclass giving commands a stable, introspectable shape.

    - __typename__ is derived from the class name (camel-case split with
      hyphens) for labels in messages.
    - Every name in __introspectable__ becomes a read-only property backed by
      "_{name}".
    - __repr__/__rich_repr__ list those properties in declaration order.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join("%s=%r" % pair for pair in self.__rich_repr__()),
            )
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_name(cls, name):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    if not name:
        raise ValueError(f"{cls.__typename__} 'name' must be a non-empty string")
    return name


def _resolve_decoders(cls, callback, decoders):
    """
    Produce the ordered decoder tuple for a typed command.

    Explicit decoders win; they are checked against the callback's signature
    when it can be inspected. Otherwise every positional parameter must carry
    an annotation accepted by resolve(). Keyword-only parameters are left to
    their defaults; variadic parameters are rejected.
    """
    try:
        signature = inspect.signature(callback, eval_str=True)
    except ValueError:
        signature = None
    except NameError as error:
        raise TypeError(f"{cls.__typename__} 'callback' has unresolvable annotations: {error}") from None

    if decoders:
        decoders = tuple(map(resolve, decoders))
        if signature is not None:
            try:
                signature.bind(*range(len(decoders)))
            except TypeError:
                raise TypeError(
                    f"{cls.__typename__} 'callback' cannot take {len(decoders)} positional arguments"
                ) from None
        return decoders

    if signature is None:
        raise TypeError(f"{cls.__typename__} 'callback' is not inspectable, pass its decoders explicitly")

    resolved = []
    for name, parameter in signature.parameters.items():
        if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} cannot be variadic")
        if parameter.kind is Parameter.KEYWORD_ONLY:
            if parameter.default is Parameter.empty:
                raise TypeError(f"{cls.__typename__} 'callback' keyword-only parameter {name!r} must have a default")
            continue
        if parameter.annotation is Parameter.empty:
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} must be annotated")
        try:
            resolved.append(resolve(parameter.annotation))
        except TypeError as error:
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r}: {error}") from None
    return tuple(resolved)


def _invoker(name, callback, decoders):
    """
    Build the invocation thunk of a typed command.

    The thunk reads exactly one value per decoder from the stream, strictly
    left to right, and only then calls the callback once with all of them. A
    DecodeError leaves with the command name and the 1-based argument index
    attached, and the callback is not called.
    """
    @rename(f"invoke[{name}]")
    def invoke(stream):
        arguments = []
        for index, decoder in enumerate(decoders, 1):
            try:
                arguments.append(decoder.decode(stream))
            except DecodeError as fault:
                raise copy.replace(fault, command=name, argument=index) from None
        return callback(*arguments)

    return invoke


def _stream(remainder):
    if isinstance(remainder, TokenStream):
        return remainder
    if isinstance(remainder, str):
        return TokenStream(remainder)
    raise TypeError("remainder must be a string or a token stream")


def _split(stream):
    """
    Cut the rest of a stream into raw arguments.

    A quoted string is one argument (quotes removed, \\" unescaped); anything
    else runs up to the next whitespace.
    """
    arguments = []
    while not stream.skip().exhausted:
        if stream.peek() == '"':
            arguments.append(parse_quoted_string(stream))
        else:
            arguments.append(stream.match(_RAW_WORD))
    return arguments


def _is_callback(source):
    # Types and generic aliases (int, list[int]) are callable, but here they
    # always stand for decoders.
    return (
        callable(source) and
        not isinstance(source, Decoder | type) and
        typing.get_origin(source) is None
    )


def _sanitized(iterable, what):
    """Materialize an iterable of strings, validating element types."""
    if isinstance(iterable, str) or not isinstance(iterable, Iterable):
        raise TypeError(f"{what} must be an iterable of strings")
    items = tuple(iterable)
    for item in items:
        if not isinstance(item, str):
            raise TypeError(f"{what} must be an iterable of strings")
    return items


class Command(metaclass=CommandType):
    """
    Typed command: name, handler and ordered decoders.

    Construction
    - Command(callback, /, *decoders, name=Unset)
      • decoders: Decoder instances or annotations; when omitted they are
        resolved from the callback's positional parameter annotations.
      • name: defaults to callback.__name__.

    Behavior
    - Calling the command calls the callback directly (decorated functions keep
      working as plain functions).
    - invoke(remainder) decodes the arguments from remainder (str or
      TokenStream) and runs the callback, returning its result.
    """
    __slots__ = ("_name", "_callback", "_decoders", "_invoke")

    __introspectable__ = (
        "name",
        "callback",
        "decoders",
    )

    def __init__(self, callback, /, *decoders, name=Unset):
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} 'callback' must be callable")
        name = coalesce(name, getattr(callback, "__name__", Unset))
        if name is Unset:
            raise TypeError(f"{type(self).__typename__} 'name' is required for callbacks without a __name__")
        self._name = _sanitize_name(type(self), name)
        self._callback = callback
        self._decoders = _resolve_decoders(type(self), callback, decoders)
        self._invoke = _invoker(self._name, callback, self._decoders)

    def __call__(self, *args, **kwargs):
        return self._callback(*args, **kwargs)

    def invoke(self, remainder="", /):
        return self._invoke(_stream(remainder))


class ArgumentMap(collections.namedtuple("ArgumentMap", ("command", "params"))):
    """
    Outcome of a named dispatch: the command name and a read-only mapping from
    every declared parameter name to its raw value ("" when not supplied).
    """
    __slots__ = ()

    def __new__(cls, command, params):
        return super().__new__(cls, command, MappingProxyType(dict(params)))


class ArgumentList(collections.namedtuple("ArgumentList", ("command", "params"))):
    """A process argument vector split into a command name and raw parameters."""
    __slots__ = ()

    def __new__(cls, command, params=()):
        return super().__new__(cls, command, tuple(params))


class NamedCommand(metaclass=CommandType):
    """
    Raw command: declared parameter names, no decoding.

    bind(args) maps args[i] onto params[i], defaulting missing ones to "" and
    dropping surplus ones. invoke(args) binds, passes the map to the callback
    when there is one, and returns the map.
    """
    __slots__ = ("_name", "_params", "_callback")

    __introspectable__ = (
        "name",
        "params",
        "callback",
    )

    def __init__(self, name, params=(), /, callback=Unset):
        self._name = _sanitize_name(type(self), name)
        self._params = _sanitized(params, f"{type(self).__typename__} 'params'")
        if len(set(self._params)) != len(self._params):
            raise ValueError(f"{type(self).__typename__} 'params' must not repeat names")
        if callback is not Unset and not callable(callback):
            raise TypeError(f"{type(self).__typename__} 'callback' must be callable")
        self._callback = callback

    def bind(self, args=(), /):
        args = _sanitized(args, f"{type(self).__typename__} arguments")
        if len(args) > len(self._params):
            logger.debug("command %r ignores %d surplus argument(s)", self._name, len(args) - len(self._params))
        return ArgumentMap(self._name, {
            name: args[index] if index < len(args) else "" for index, name in enumerate(self._params)
        })

    def invoke(self, args=(), /):
        arguments = self.bind(args)
        if self._callback is not Unset:
            self._callback(arguments)
        return arguments


def requote(argument, /):
    """
    Quote one process argument so the decoder reads it back as a single token.

    Arguments that are empty, contain whitespace, start with a quotation mark,
    or hold a ',' or '}' outside a brace literal are wrapped in '"'; embedded
    quotation marks are escaped as \\".
    """
    if not isinstance(argument, str):
        raise TypeError("requote() argument must be a string")
    if (
        argument and
        not any(char.isspace() for char in argument) and
        not argument.startswith('"') and
        (argument.startswith("{") or not _DELIMITERS.search(argument))
    ):
        return argument
    return '"%s"' % argument.replace('"', '\\"')


def parse_args(argv, /):
    """
    Split a process argument vector (program name first) into an ArgumentList.

    An argv holding only the program name (or nothing) gives command "".
    """
    argv = _sanitized(argv, "parse_args() argument")
    return ArgumentList(argv[1] if len(argv) > 1 else "", argv[2:])


class Dispatcher:
    """
    Ordered command registry and dispatcher.

    Options (keyword-only)
    - strict: raise UnknownCommandError for unmatched names instead of
      logging and returning None.
    - shell: surface faults through the rich console and exit(1) instead of
      raising them.
    - fancy / colorful: rendering flags used in shell mode.

    Registration is expected to finish before dispatching starts; nothing here
    locks, and dispatching never mutates the registry.
    """
    strict = mirror("strict")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(self, commands=(), /, *, strict=False, shell=False, fancy=False, colorful=False):
        for name, value in (("strict", strict), ("shell", shell), ("fancy", fancy), ("colorful", colorful)):
            if not isinstance(value, bool):
                raise TypeError(f"dispatcher {name!r} must be a boolean")
        self._strict = strict
        self._shell = shell
        self._fancy = fancy
        self._colorful = colorful
        self._commands = []
        for command in commands:
            self.register(command)

    @property
    def commands(self):
        return tuple(self._commands)

    def __iter__(self):
        return iter(self.commands)

    def __len__(self):
        return len(self._commands)

    def __repr__(self):
        return f"dispatcher(commands={self.commands!r}, strict={self._strict!r}, shell={self._shell!r})"

    def register(self, source, /, *args, callback=Unset):
        """
        Add a command to the registry and return it.

        Forms
        - register(command): a prebuilt Command or NamedCommand.
        - register(name, callback, *decoders): a typed Command.
        - register(name, params, callback=Unset): a NamedCommand.
        - register(name, callback=Unset): a NamedCommand without parameters.

        A name already taken is still registered, but can never be reached
        (first match wins); a ShadowedCommandWarning is triggered for it.
        """
        if isinstance(source, Command | NamedCommand):
            if args or callback is not Unset:
                raise TypeError("register() takes no further arguments when given a command")
            command = source
        elif not args:
            command = NamedCommand(source, (), callback=callback)
        elif callable(args[0]):
            if callback is not Unset:
                raise TypeError("register() 'callback' is only accepted with parameter names")
            command = Command(args[0], *args[1:], name=source)
        elif len(args) == 1:
            command = NamedCommand(source, args[0], callback=callback)
        else:
            raise TypeError("register() takes parameter names and an optional callback")

        if self.find(command.name) is not None:
            self.trigger(ShadowedCommandWarning(
                "command %r is already registered, the new one is unreachable" % command.name,
                title="shadowed command",
                code=FaultCode.SHADOWED_COMMAND,
                hint="rename one of the %r commands" % command.name,
                command=command.name,
                docs=getdoc(FaultCode.SHADOWED_COMMAND),
            ))

        self._commands.append(command)
        logger.debug("registered %r", command)
        return command

    def command(self, source=Unset, /, *decoders):
        """
        Register a callable as a typed command (decorator friendly).

        - @dispatcher.command: name taken from the function's __name__.
        - @dispatcher.command("name", *decoders): explicit name and decoders.
        - dispatcher.command(bound_method): methods work the same way.

        Returns the registered Command, which stays callable like the function.
        """
        if _is_callback(source):
            return self.register(Command(source, *decoders))
        if source is not Unset and not isinstance(source, str):
            raise TypeError("command() argument must be a callable or a command name")

        @rename("command")
        def wrapper(callback, /):
            if not callable(callback):
                raise TypeError("@command() must be applied to a callable")
            return self.register(Command(callback, *decoders, name=source))

        return wrapper

    def find(self, name, /):
        """Return the first command named exactly name, or None."""
        for command in self._commands:
            if command.name == name:
                return command
        return None

    def trigger(self, fault, /, **options):
        trigger(fault, **options, shell=self._shell, fancy=self._fancy, colorful=self._colorful)

    def _miss(self, name):
        if not self._strict:
            logger.info("no command named %r, nothing dispatched", name)
            return None
        suggestions = difflib.get_close_matches(name, [command.name for command in self._commands], 3)
        try:
            hint = "did you mean %r?" % suggestions[0]
        except IndexError:
            hint = "registered commands: %s" % (", ".join(repr(command.name) for command in self._commands) or "none")
        self.trigger(UnknownCommandError(
            "unknown command %r" % name,
            title="unknown command",
            code=FaultCode.UNKNOWN_COMMAND,
            hint=hint,
            command=name,
            suggestions=suggestions,
            docs=getdoc(FaultCode.UNKNOWN_COMMAND),
        ))
        return None

    def dispatch(self, source, remainder=Unset, /):
        """
        Resolve a command and run it.

        Forms
        - dispatch(line): the first token of line names the command.
        - dispatch(name, remainder): remainder is a str/TokenStream (typed) or a
          sequence of raw strings (named).

        Returns
        - the invoked Command for typed commands;
        - the ArgumentMap for named commands;
        - None when no command matched (or the line was blank).

        Raises
        - DecodeError subclasses when an argument cannot be decoded.
        - UnknownCommandError for unmatched names in strict mode.
        """
        if remainder is Unset:
            if not isinstance(source, str):
                raise TypeError("dispatch() argument must be a string")
            stream = TokenStream(source)
            if stream.skip().exhausted:
                logger.debug("blank line, nothing dispatched")
                return None
            try:
                name = parse_scalar_string(stream)
            except DecodeError as fault:
                return self.trigger(fault)
            remainder = stream
        elif not isinstance(name := source, str):
            raise TypeError("dispatch() first argument must be a command name")

        if (command := self.find(name)) is None:
            return self._miss(name)
        logger.debug("dispatching %r", command.name)

        if isinstance(command, NamedCommand):
            if not isinstance(remainder, str | TokenStream):
                return command.invoke(remainder)
            try:
                arguments = _split(_stream(remainder))
            except DecodeError as fault:
                return self.trigger(fault, command=command.name)
            return command.invoke(arguments)

        if not isinstance(remainder, str | TokenStream):
            remainder = " ".join(map(requote, _sanitized(remainder, "dispatch() raw arguments")))
        try:
            command.invoke(remainder)
        except DecodeError as fault:
            self.trigger(fault)
        return command

    def __invoke__(self, argv=Unset, /):
        """
        Dispatch a process argument vector.

        Parameters
        - argv:
          • Unset: sys.argv[1:].
          • str: a ready command line.
          • Iterable[str]: arguments; each is re-quoted (see requote) and the
            results are joined with spaces.
        """
        if argv is Unset:
            argv = sys.argv[1:]
        if isinstance(argv, str):
            line = argv
        else:
            line = " ".join(map(requote, _sanitized(argv, "__invoke__() argument")))
        return self.dispatch(line)


def command(source=Unset, /, *decoders, name=Unset):
    """
    Create a Command or return a decorator that creates one.

    - command(func, *decoders, name=...) -> Command
    - @command / @command(*decoders, name=...) -> decorator

    The Command is not registered anywhere; hand it to Dispatcher(...) or
    Dispatcher.register().
    """
    if _is_callback(source):
        return Command(source, *decoders, name=name)
    if source is not Unset:
        decoders = (source, *decoders)

    @rename("command")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@command() must be applied to a callable")
        return Command(callback, *decoders, name=name)

    return wrapper


def invoke(object, argv=Unset, /):
    """
    Convenience runner: object.__invoke__(argv).

    argv follows Dispatcher.__invoke__ (Unset reads sys.argv[1:]).
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(argv)
    target = "argument" if argv is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method")


__all__ = (
    "Command",
    "NamedCommand",
    "ArgumentMap",
    "ArgumentList",
    "Dispatcher",
    "command",
    "invoke",
    "requote",
    "parse_args",
)

# The metaclass is an implementation detail; keep it out of star-imports and docs.
del CommandType
