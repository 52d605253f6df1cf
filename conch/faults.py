"""
Conch faults (errors raised by the shell engine) and their rendering.

Taxonomy
- InvalidCommandError: the input matched no command pattern. Raised by the matcher and
  propagated by CLI.execute() so non-interactive callers can tell "bad input" apart
  from "command ran and failed". The interactive loop renders it and keeps going.
- MissingArgumentError / ArgumentTypeError: raised from inside a command while reading
  its bound arguments. They are ordinary command failures and reach the exception handler.
- Interrupted: the line editor's read was cancelled (Ctrl-C). Not an error; the loop
  discards it and reads again.

Rendering
- default_handler(output, exception) prints "Error: <message>" to the output console.
- Colours come from a small style table, overridable by the host application through a
  __styles__ mapping in __main__ (keys "error" and "error-message").
- Exceptions carry a __rich__ hook so they print nicely on a rich console as well.
"""
from collections import defaultdict

from rich.text import Text


def _styles():
    return defaultdict(str, {
        "error": "bold #FF4DA6",  # friendly pinky prefix
        "error-message": "#C8C8D0",  # soft light gray message
    } | getattr(__import__("__main__"), "__styles__", {}))


class CLIException(Exception):
    """
    Base of every fault raised by the shell engine.
    """

    def __init__(self, message, /):
        assert isinstance(message, str)
        super().__init__(message)
        self.message = message

    def __rich__(self):
        return Text(self.message, _styles()["error-message"])


class InvalidCommandError(CLIException):
    def __init__(self, input, /):
        super().__init__(f"invalid command: {input!r}" if input.strip() else "invalid command: empty input")
        self.input = input


class MissingArgumentError(CLIException):
    def __init__(self, name, /):
        super().__init__(f"missing argument {name!r}")
        self.name = name


class ArgumentTypeError(CLIException):
    def __init__(self, name, value, expected, /):
        super().__init__(f"argument {name!r} must be {expected}, got {value!r}")
        self.name = name
        self.value = value
        self.expected = expected


class Interrupted(Exception):
    """
    The current read was interrupted by the user (Ctrl-C).

    Raised by a line editor whose interrupt handling is enabled, instead of letting
    KeyboardInterrupt unwind the whole program.
    """


def default_handler(output, exception, /):
    """
    Render an exception as a one-line "Error: <message>" on the output console.

    The message is the exception's str(); when it is empty, the exception type
    name is shown instead so the user still sees what went wrong.
    """
    styles = _styles()
    message = str(exception) or type(exception).__name__
    output.print(Text.assemble(("Error: ", styles["error"]), (message, styles["error-message"])))


__all__ = (
    "CLIException",
    "InvalidCommandError",
    "MissingArgumentError",
    "ArgumentTypeError",
    "Interrupted",
    "default_handler",
)
