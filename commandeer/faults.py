"""
Commandeer faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain so logs and searches stay predictable.
- Fault: message plus read-only options, rich rendering and copy.replace().
- CommandException / CommandWarning: the raising and warning flavours of Fault,
  each with its own palette.
- DecodeError and its subclasses: grammar violations raised by the decoders.
  Each one carries a reason, the command being dispatched (when known) and a
  best-effort stream position.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Integration
- Decoders raise faults directly; they do not know about shell mode.
- The dispatcher re-surfaces them through trigger(fault, **ctx), which raises
  outside shell mode and renders via rich (then exits) inside it.
- Hosts customize rendering through __main__ attributes: __prog__, __styles__,
  __codes__ and __docs__.
"""
import copy
import os.path
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, UnsetType, ordinal

console = Console(stderr=True)
_PACKAGE = os.path.join(os.path.dirname(__file__), "")


def _host(name, default):
    # Hosts customize faults through attributes of their __main__ module.
    return getattr(sys.modules.get("__main__"), name, default)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (111xx)
      • UNKNOWN_COMMAND
    - decoding (112xx)
      • MALFORMED_SCALAR, UNTERMINATED_STRING, MISSING_OPENER, MISSING_CLOSER,
        MISSING_ELEMENT, ELEMENT_COUNT
    - warnings (121xx)
      • SHADOWED_COMMAND

    gaps between values leave room for additions without renumbering.
    """
    # --- routing errors ---
    UNKNOWN_COMMAND     = 11101

    # --- decoding errors ---
    MALFORMED_SCALAR    = 11201
    UNTERMINATED_STRING = 11202
    MISSING_OPENER      = 11203
    MISSING_CLOSER      = 11204
    MISSING_ELEMENT     = 11205
    ELEMENT_COUNT       = 11206

    # --- warnings ---
    SHADOWED_COMMAND    = 12101

    def normalize(self):
        """label of this code: the host's __codes__ entry, or the number."""
        return str(_host("__codes__", {}).get(self, self.value))


def _render(fault):
    """
    Build the rich renderable of a fault.

    The header reads "[ prog | code | title ]", followed by the message and a
    single hint line. With fancy=True the body sits in a Panel titled by the
    header instead.
    """
    styles = defaultdict(str, type(fault).__palette__ | _host("__styles__", {}))
    colorful = fault.options.get("colorful", False)

    def text(fragment, style):
        if fragment is None or fragment == "":
            return Text("")
        return Text(str(fragment), styles[style] if colorful else "")

    code = fault.options.get("code")
    program = _host("__prog__", os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "commandeer")
    header = Text.assemble(
        "[ ",
        text(program, "prog-name"),
        " | ",
        text(code.normalize() if isinstance(code, FaultCode) else code, "code"),
        " | ",
        text(str(fault.options.get("title", type(fault).__name__)).title(), "title"),
        " ]",
    )
    body = (text(str(fault), "message"), Text.assemble(text("→ ", "hint-arrow"), text(fault.options.get("hint"), "hint")))

    if fault.options.get("fancy", False):
        return Panel(Group(*body), title=header, title_align="left")
    return Group(header, *body)


class Fault:
    """
    Behavior shared by command errors and warnings.

    A fault is a message plus read-only options: presentation (title, code,
    hint, docs), surfacing (shell, fancy, colorful) and free context such as
    command or position. copy.replace() builds a new fault of the same type
    with the options merged.
    """
    __palette__ = {}

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | UnsetType):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self)

    def __str__(self):
        return str(self.message)

    def __replace__(self, /, **changes):
        return type(self)(self.message, **(dict(self.options) | changes))

    def __trigger__(self):
        raise NotImplementedError


class CommandException(Fault, Exception):
    __palette__ = {
        "prog-name": "bold bright_white",
        "code": "bold cyan",
        "title": "bold bright_red",
        "message": "grey82",
        "hint-arrow": "dim green",
        "hint": "italic green",
    }

    def __trigger__(self):
        if self.options.get("shell", False):
            console.print(self)
            sys.exit(1)
        raise self from None


class UnknownCommandError(CommandException):
    @property
    def command(self):
        return self.options.get("command")


class DecodeError(CommandException):
    """
    A grammar violation met while decoding one value.

    reason is always set (it is the message). command is filled in by the
    dispatcher once the failure leaves the invocation thunk; position is the
    stream index where the violation was noticed, when the decoder knew it.
    """

    @property
    def reason(self):
        return self.message

    @property
    def command(self):
        return self.options.get("command")

    @property
    def position(self):
        return self.options.get("position")

    @property
    def argument(self):
        """1-based index of the command argument being decoded, when known."""
        return self.options.get("argument")

    def __str__(self):
        parts = [str(self.message)]
        if self.position is not None:
            parts.append(f"at position {self.position}")
        if self.argument is not None:
            parts.append(f"of the {ordinal(self.argument)} argument")
        if self.command is not None:
            parts.append(f"of command {self.command!r}")
        return " ".join(parts)


class MalformedScalarError(DecodeError): ...
class UnterminatedStringError(DecodeError): ...
class MissingOpenerError(DecodeError): ...
class MissingCloserError(DecodeError): ...
class MissingElementError(DecodeError): ...
class ElementCountError(DecodeError): ...


class CommandWarning(Fault, Warning):
    __palette__ = {
        "prog-name": "bold bright_white",
        "code": "bold yellow",
        "title": "bold magenta",
        "message": "grey85",
        "hint-arrow": "dim green",
        "hint": "italic green",
    }

    def __trigger__(self):
        if self.options.get("shell", False):
            console.print(self)
        else:
            # Attribute the warning to the first caller outside this package.
            warnings.warn(self, skip_file_prefixes=(_PACKAGE,))


class ShadowedCommandWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    options are merged into the fault with copy.replace() first. outside shell
    mode exceptions are raised and warnings go through the warnings module; in
    shell mode both are printed on the rich console, and exceptions then exit
    with status 1.

    typical options: shell, fancy, colorful, title, code, hint, command, position.
    """
    if not isinstance(fault, Fault):
        raise TypeError("trigger() argument must be a command exception or warning")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """documentation the host registered for code in __main__.__docs__, or None."""
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault code")
    return _host("__docs__", {}).get(code)


__all__ = (
    "Fault",
    "CommandException",
    "UnknownCommandError",
    "DecodeError",
    "MalformedScalarError",
    "UnterminatedStringError",
    "MissingOpenerError",
    "MissingCloserError",
    "MissingElementError",
    "ElementCountError",
    "CommandWarning",
    "ShadowedCommandWarning",
    "FaultCode",
    "trigger",
    "getdoc",
)
