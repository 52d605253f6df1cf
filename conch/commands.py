"""
Conch command layer: patterned commands, bound arguments, and input matching.

What this module provides
- Command: a pattern string plus an execute(arguments, output) operation.
  • Built from a callback (most common) or subclassed with execute() overridden.
- command(pattern, ...): create a Command or return a decorator that builds one.
- Arguments: read-only mapping of argument name → value bound from the input line,
  with typed accessors (get, get_int, has).
- CommandMatch: the (command, arguments) pair resolved from an input line.
- CommandSet: ordered collection of commands (optionally nesting other sets) that
  resolves raw input to a CommandMatch.

Patterns
- Literal words must be typed verbatim: "start flow".
- "<name>" binds exactly one input word under "name" (quote the word to include spaces).
- "[...]" marks an optional sub-pattern: "stop [remotely]" accepts "stop" and "stop remotely".

Quick start
    from rich.console import Console
    from conch import command, CommandSet

    @command("start flow <flow-id>", descr="start a flow")
    def start_flow(arguments, output):
        output.print(f"starting {arguments.get('flow-id')}")

    match = CommandSet([start_flow]).find_match("start flow purchases")
    match.command.execute(match.arguments, Console())

Matching rules
- Input is split with shell quoting rules; an unterminated quote is an invalid command.
- Every optional-group alternative of every pattern is tried; all words must be consumed.
- The alternative with the most literal words wins; ties go to registration order.
- No match (or blank input) raises InvalidCommandError.
"""
import logging
import shlex
from collections.abc import Iterable, Mapping
from typing import NamedTuple

from rich.text import Text

from .faults import *
from .patterns import ArgumentToken, LiteralToken, expand, tokenize
from .utils import *

logger = logging.getLogger(__name__)


class Command:
    """
    A command the shell can match and run.

    Responsibilities
    - Owns an immutable pattern; the pattern is what matching and completion are built from.
    - execute(arguments, output) runs the command. The default implementation forwards to
      the callback given at construction; subclasses may override it instead.

    Parameters
    - pattern: str
      Non-empty pattern such as "start flow <flow-id>".
    - callback: Callable[[Arguments, Console], Any] (optional when subclassing)
    - descr: str | Text (optional)
      Short description, shown by hosts that list their commands.
    """

    def __init__(self, pattern, callback=Unset, /, *, descr=Unset):
        if not isinstance(pattern, str):
            raise TypeError(f"{type(self).__name__} 'pattern' must be a string")
        elif not (pattern := pattern.strip()):
            raise ValueError(f"{type(self).__name__} 'pattern' cannot be empty")
        if callback is not Unset and not callable(callback):
            raise TypeError(f"{type(self).__name__} 'callback' must be callable")
        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{type(self).__name__} 'descr' must be a string")

        self._pattern = pattern
        self._callback = callback
        self._descr = coalesce(descr)

    @property
    def pattern(self):
        return self._pattern

    @property
    def descr(self):
        return self._descr

    @property
    def name(self):
        return getattr(self._callback, "__name__", type(self).__name__)

    def execute(self, arguments, output, /):
        if self._callback is Unset:
            raise NotImplementedError(f"{type(self).__name__} must override execute() or be given a callback")
        return self._callback(arguments, output)

    def __repr__(self):
        return f"{type(self).__name__}({self._pattern!r})"


def command(pattern, callback=Unset, /, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct:
        cmd = command("start flow <flow-id>", start_flow)
    - Decorator:
        @command("start flow <flow-id>", descr="start a flow")
        def start_flow(arguments, output): ...

    Returns
    - Command | Callable[[Callable], Command]
    """
    @rename("command")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@command() must be applied to a callable")
        return Command(pattern, callback, **kwargs)

    return wrapper(callback) if callback is not Unset else wrapper


class Arguments(Mapping):
    """
    Argument values bound from an input line, keyed by argument name.

    Values are the raw words typed by the user (quotes removed). Accessors raise
    conch faults, so a command that reads a missing or malformed argument fails
    with a readable message through the shell's exception handler.
    """

    def __init__(self, values=None, /):
        self._values = dict(values or {})

    def __getitem__(self, name, /):
        return self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def get(self, name, default=Unset, /):
        """
        Return the value bound to name; without a default, a missing name raises
        MissingArgumentError.
        """
        try:
            return self._values[name]
        except KeyError:
            if default is Unset:
                raise MissingArgumentError(name) from None
            return default

    def get_int(self, name, default=Unset, /):
        """
        Return the value bound to name converted to int.

        Errors
        - MissingArgumentError when missing and no default is given.
        - ArgumentTypeError when the value is not an integer literal.
        """
        if name not in self._values and default is not Unset:
            return default
        value = self.get(name)
        try:
            return int(value)
        except ValueError:
            raise ArgumentTypeError(name, value, "an integer") from None

    def has(self, name, /):
        return name in self._values

    def __repr__(self):
        return f"Arguments({self._values!r})"


class CommandMatch(NamedTuple):
    command: Command
    arguments: Arguments


def _bind(alternative, words):
    """
    Bind input words against one expanded pattern alternative, or return None.
    """
    if len(alternative) != len(words):
        return None
    bound = {}
    for token, word in zip(alternative, words):
        if isinstance(token, ArgumentToken):
            bound[token.name] = word
        elif token.text != word:
            return None
    return bound


def _is_command(object):
    return isinstance(getattr(object, "pattern", None), str) and callable(getattr(object, "execute", None))


class CommandSet:
    """
    Ordered collection of commands, optionally composed of nested command sets.

    Iteration yields this set's own commands first, then those of each child set,
    depth first. Any object exposing a string `pattern` and a callable `execute`
    is accepted as a command.
    """

    def __init__(self, commands=(), /, *children):
        if not isinstance(commands, Iterable):
            raise TypeError("CommandSet() first argument must be an iterable of commands")
        commands = tuple(commands)
        for object in commands:
            if not _is_command(object):
                raise TypeError(f"{type(object).__name__!r} object is not a command")
        for child in children:
            if not isinstance(child, CommandSet):
                raise TypeError("CommandSet() children must be command sets")
        self._commands = commands
        self._children = children

    @property
    def commands(self):
        return self._commands

    @property
    def children(self):
        return self._children

    @property
    def patterns(self):
        return tuple(object.pattern for object in self)

    def __iter__(self):
        yield from self._commands
        for child in self._children:
            yield from child

    def __len__(self):
        return sum(1 for _ in self)

    def find_match(self, input, /):
        """
        Resolve raw input to a CommandMatch.

        Raises
        - InvalidCommandError when the input is blank, badly quoted, or matches no pattern.
        """
        if not isinstance(input, str):
            raise TypeError("find_match() argument must be a string")
        try:
            words = shlex.split(input)
        except ValueError:
            raise InvalidCommandError(input) from None
        if not words:
            raise InvalidCommandError(input)

        best = None
        score = -1
        for object in self:
            for alternative in expand(tokenize(object.pattern)):
                if (bound := _bind(alternative, words)) is None:
                    continue
                literals = sum(isinstance(token, LiteralToken) for token in alternative)
                if literals > score:
                    best = CommandMatch(object, Arguments(bound))
                    score = literals

        if best is None:
            logger.debug("no pattern matched %r", input)
            raise InvalidCommandError(input)

        logger.debug("matched %r to %r with %r", input, best.command, best.arguments)
        return best

    def __repr__(self):
        return f"CommandSet({list(self)!r})"


__all__ = (
    "Command",
    "command",
    "Arguments",
    "CommandMatch",
    "CommandSet",
)
