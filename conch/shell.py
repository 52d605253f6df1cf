"""
Conch shell: line editing, dispatch with failure isolation, and the interactive loop.

What this module provides
- ConsoleReader: prompt_toolkit-backed line editor (prompt, completers, interrupt policy).
- Dispatcher: resolve an input line to a command and run it; failures of the command go
  to a pluggable exception handler, unmatched input propagates.
- CLI: ties commands, argument completers, reader and dispatcher together; offers
  execute() for one-shot use and start_interactive_mode() for a REPL.

Loop states
    Idle → ReadingLine → (Empty | Dispatching) → ReadingLine, terminal Closed.

- interrupted read (Ctrl-C)  → discarded, read again
- end of input (Ctrl-D)      → print an empty line, close
- blank line                 → skipped
- anything else              → stripped, dispatched, followed by an empty separator line

Quick start
    from conch import CLI, command

    @command("start flow <flow-id>")
    def start(arguments, output):
        output.print("started", arguments.get("flow-id"))

    CLI([start], {"flow-id": ["purchases", "refunds"]}).start_interactive_mode()
"""
import logging

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import DummyCompleter, merge_completers
from rich.console import Console

from .commands import CommandSet
from .completers import CompleterSet, PromptCompleter, synthesize
from .faults import *
from .patterns import PatternTree
from .utils import *

logger = logging.getLogger(__name__)


def _console(output):
    if output is Unset:
        return Console()
    if isinstance(output, Console):
        return output
    if hasattr(output, "write") and callable(output.write):
        return Console(file=output)
    raise TypeError("output must be a rich console or a writable text stream")


class ConsoleReader:
    """
    Line editor backed by a prompt_toolkit PromptSession.

    Attributes
    - prompt: str shown before every line.
    - handle_interrupt: when True, Ctrl-C during a read raises Interrupted instead of
      KeyboardInterrupt, so a loop can discard the line and carry on.

    The session is created on first read unless one is given, so a reader can be
    built (and configured) without a terminal attached.
    """

    def __init__(self, prompt="> ", /, *, session=Unset, handle_interrupt=False):
        if not isinstance(prompt, str):
            raise TypeError("ConsoleReader 'prompt' must be a string")
        self.prompt = prompt
        self.handle_interrupt = bool(handle_interrupt)
        self._session = session
        self._completers = []

    @property
    def session(self):
        if self._session is Unset:
            self._session = PromptSession()
        return self._session

    @property
    def completers(self):
        return tuple(self._completers)

    def add_completer(self, completer, /):
        if not any(completer is installed for installed in self._completers):
            self._completers.append(completer)

    def remove_completer(self, completer, /):
        self._completers = [installed for installed in self._completers if installed is not completer]

    def _completer(self):
        match len(self._completers):
            case 0:
                # None would leave the session's previous completer in place.
                return DummyCompleter()
            case 1:
                return PromptCompleter(self._completers[0])
            case _:
                return merge_completers([PromptCompleter(completer) for completer in self._completers])

    def read_line(self):
        """
        Read one line.

        Returns
        - str: the line as typed.
        - None: end of input (Ctrl-D or a closed stream).

        Raises
        - Interrupted: Ctrl-C while handle_interrupt is True.
        - KeyboardInterrupt: Ctrl-C while handle_interrupt is False.
        """
        try:
            return self.session.prompt(self.prompt, completer=self._completer())
        except KeyboardInterrupt:
            if self.handle_interrupt:
                raise Interrupted from None
            raise
        except EOFError:
            return None


class Dispatcher:
    """
    Resolve input to a command and invoke it with failure isolation.

    - InvalidCommandError from the matcher propagates to the caller.
    - Any Exception raised by the command itself is handed to exception_handler(output,
      exception) and does not propagate.
    """

    def __init__(self, commands, /, *, exception_handler=default_handler):
        if not isinstance(commands, CommandSet):
            raise TypeError("Dispatcher 'commands' must be a command set")
        if not callable(exception_handler):
            raise TypeError("Dispatcher 'exception_handler' must be callable")
        self.commands = commands
        self.exception_handler = exception_handler

    def execute(self, input, output, /):
        match = self.commands.find_match(input)
        try:
            match.command.execute(match.arguments, output)
        except Exception as exception:
            logger.warning("command %r failed: %s", match.command.pattern, exception)
            self.exception_handler(output, exception)


class CLI:
    """
    Command-line interface with auto-completion and interactive/non-interactive modes.

    Commands hold the patterns; completers holds argument completers keyed by argument
    name. With a command "start flow <flow-id>" and a completer registered under
    "flow-id", typing "start flow " and pressing TAB offers that completer's candidates.

    Parameters
    - commands: CommandSet | Iterable[Command]
    - completers: CompleterSet | Mapping[str, completer-like] | None
    - prompt: str (default "cli> ")
    - reader: line editor (default: a new ConsoleReader)
    - exception_handler: Callable[[Console, Exception], Any] (default: default_handler)
    """

    def __init__(self, commands=(), completers=None, /, *, prompt="cli> ", reader=Unset,
                 exception_handler=default_handler):
        self._commands = commands if isinstance(commands, CommandSet) else CommandSet(commands)
        self._completers = completers if isinstance(completers, CompleterSet) else CompleterSet(completers)
        self._reader = ConsoleReader() if reader is Unset else reader
        self._reader.prompt = prompt
        self._dispatcher = Dispatcher(self._commands, exception_handler=exception_handler)
        self._engine = None
        self._running = False

    @property
    def reader(self):
        return self._reader

    @property
    def commands(self):
        return self._commands

    @property
    def exception_handler(self):
        return self._dispatcher.exception_handler

    @property
    def completer(self):
        """
        The completion engine synthesized from the current commands (built once, cached).
        """
        if self._engine is None:
            tree = PatternTree.build(self._commands.patterns)
            self._engine = synthesize(tree, self._completers)
        return self._engine

    def register(self, *commands):
        """
        Add commands. The completion engine is rebuilt on next use.

        Raises
        - RuntimeError while an interactive session is running.
        """
        if self._running:
            raise RuntimeError("cannot register commands while an interactive session is running")
        self._commands = CommandSet((), self._commands, CommandSet(commands))
        self._dispatcher = Dispatcher(self._commands, exception_handler=self._dispatcher.exception_handler)
        if self._engine is not None:
            self._reader.remove_completer(self._engine)
            self._engine = None
        return self

    def execute(self, input, output=Unset, /):
        """
        Execute one line of input.

        Raises
        - InvalidCommandError when the input matches no command; failures inside the
          command are reported through the exception handler instead.
        """
        self._dispatcher.execute(input, _console(output))

    def start_interactive_mode(self, output=Unset, /):
        """
        Run the read-eval-print loop until end of input.
        """
        output = _console(output)
        self._reader.handle_interrupt = True
        self._reader.add_completer(self.completer)

        self._running = True
        logger.debug("interactive session started")
        try:
            while True:
                try:
                    line = self._reader.read_line()
                except Interrupted:
                    continue

                if line is None:
                    output.print()
                    break

                if not (line := line.strip()):
                    continue

                try:
                    self._dispatcher.execute(line, output)
                except Exception as exception:
                    self._dispatcher.exception_handler(output, exception)
                output.print()
        finally:
            self._running = False
            logger.debug("interactive session closed")


__all__ = (
    "ConsoleReader",
    "Dispatcher",
    "CLI",
)
