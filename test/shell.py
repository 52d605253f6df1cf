"""
Shell module behavioral tests (line reader, dispatcher, interactive loop).

Scope
- Validate ConsoleReader interrupt/end-of-input mapping and completer installation.
- Validate Dispatcher failure isolation and propagation of unmatched input.
- Validate the interactive loop: blank lines, interrupts, end of input, failing commands.

Conventions
- Test method names follow CamelCase per project convention.
- A scripted prompt_toolkit-like session stands in for the terminal.
"""

from __future__ import annotations

import io
import sys
import unittest
from unittest import TestCase, mock

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, DummyCompleter
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput
from rich.console import Console

from conch import (
    CLI,
    CommandSet,
    ConsoleReader,
    Dispatcher,
    Interrupted,
    InvalidCommandError,
    PromptCompleter,
    StringsCompleter,
    command,
    default_handler,
)


class ScriptedSession:
    """
    Replay a fixed script: strings are returned as lines, exception instances raised.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.prompts = []
        self.completers = []

    def prompt(self, message, *, completer=None):
        self.prompts.append(message)
        self.completers.append(completer)
        event = self.script.pop(0)
        if isinstance(event, BaseException):
            raise event
        return event


def _output():
    return Console(file=io.StringIO(), color_system=None, width=120)


class TestConsoleReader(TestCase):
    def testReturnsLineAndShowsPrompt(self):
        session = ScriptedSession("start flow f1")
        reader = ConsoleReader("cli> ", session=session)
        self.assertEqual(reader.read_line(), "start flow f1")
        self.assertEqual(session.prompts, ["cli> "])

    def testEndOfInputIsNone(self):
        self.assertIsNone(ConsoleReader(session=ScriptedSession(EOFError())).read_line())

    def testInterruptHandled(self):
        reader = ConsoleReader(session=ScriptedSession(KeyboardInterrupt()), handle_interrupt=True)
        with self.assertRaises(Interrupted):
            reader.read_line()

    def testInterruptUnhandledPropagates(self):
        reader = ConsoleReader(session=ScriptedSession(KeyboardInterrupt()))
        with self.assertRaises(KeyboardInterrupt):
            reader.read_line()

    def testCompletersInstalledOnce(self):
        session = ScriptedSession("a", "b")
        reader = ConsoleReader(session=session)
        reader.read_line()
        completer = StringsCompleter(["x"])
        reader.add_completer(completer)
        reader.add_completer(completer)
        reader.read_line()
        self.assertIsInstance(session.completers[0], DummyCompleter)
        self.assertIsInstance(session.completers[1], Completer)
        self.assertEqual(reader.completers, (completer,))

    def testRemoveCompleter(self):
        reader = ConsoleReader(session=ScriptedSession())
        completer = StringsCompleter(["x"])
        reader.add_completer(completer)
        reader.remove_completer(completer)
        self.assertEqual(reader.completers, ())

    def testRemovedCompleterStopsServing(self):
        with create_pipe_input() as pipe:
            session = PromptSession(input=pipe, output=DummyOutput())
            reader = ConsoleReader(session=session)
            completer = StringsCompleter(["stale"])
            reader.add_completer(completer)
            pipe.send_text("first\n")
            self.assertEqual(reader.read_line(), "first")
            self.assertIsInstance(session.completer, PromptCompleter)

            reader.remove_completer(completer)
            pipe.send_text("second\n")
            self.assertEqual(reader.read_line(), "second")
            self.assertIsInstance(session.completer, DummyCompleter)


class TestDispatcher(TestCase):
    def setUp(self):
        self.calls = []
        self.handled = []

        @command("greet <name>")
        def greet(arguments, output):
            self.calls.append(arguments.get("name"))
            output.print("hello", arguments.get("name"))

        @command("fail")
        def fail(arguments, output):
            raise RuntimeError("boom")

        self.dispatcher = Dispatcher(
            CommandSet([greet, fail]),
            exception_handler=lambda output, exception: self.handled.append(exception),
        )

    def testRunsMatchedCommand(self):
        output = _output()
        self.dispatcher.execute("greet ada", output)
        self.assertEqual(self.calls, ["ada"])
        self.assertEqual(output.file.getvalue(), "hello ada\n")

    def testCommandFailureGoesToHandler(self):
        self.dispatcher.execute("fail", _output())
        self.assertEqual(len(self.handled), 1)
        self.assertIsInstance(self.handled[0], RuntimeError)

    def testUnmatchedInputPropagates(self):
        with self.assertRaises(InvalidCommandError):
            self.dispatcher.execute("dance", _output())
        self.assertEqual(self.handled, [])

    def testRejectsNonCallableHandler(self):
        with self.assertRaises(TypeError):
            Dispatcher(CommandSet(), exception_handler="print")


class TestDefaultHandler(TestCase):
    def testRendersMessage(self):
        output = _output()
        default_handler(output, RuntimeError("boom"))
        self.assertEqual(output.file.getvalue(), "Error: boom\n")

    def testFallsBackToTypeName(self):
        output = _output()
        default_handler(output, RuntimeError())
        self.assertEqual(output.file.getvalue(), "Error: RuntimeError\n")

    def testHostStylesOverrideDefaults(self):
        output = Console(file=io.StringIO(), force_terminal=True, color_system="standard", width=120)
        styles = {"error": "red", "error-message": "green"}
        with mock.patch.object(sys.modules["__main__"], "__styles__", styles, create=True):
            default_handler(output, RuntimeError("boom"))
        rendered = output.file.getvalue()
        self.assertIn("\x1b[31mError: \x1b[0m", rendered)
        self.assertIn("\x1b[32mboom\x1b[0m", rendered)

    def testMarkupNotInterpreted(self):
        output = _output()
        default_handler(output, ValueError("bad [bold]value[/bold]"))
        self.assertEqual(output.file.getvalue(), "Error: bad [bold]value[/bold]\n")


class TestCLI(TestCase):
    def setUp(self):
        self.calls = []
        self.handled = []

        @command("start flow <flow-id>")
        def start(arguments, output):
            self.calls.append(arguments.get("flow-id"))
            output.print("started")

        @command("fail")
        def fail(arguments, output):
            raise RuntimeError("boom")

        self.start = start
        self.fail = fail

    def _cli(self, *script, **options):
        self.session = ScriptedSession(*script)
        options.setdefault("exception_handler", lambda output, exception: self.handled.append(exception))
        return CLI(
            [self.start, self.fail],
            {"flow-id": ["f1", "f2"]},
            reader=ConsoleReader(session=self.session),
            **options,
        )

    def testDefaultPrompt(self):
        cli = self._cli(EOFError())
        cli.start_interactive_mode(_output())
        self.assertEqual(self.session.prompts, ["cli> "])

    def testCustomPrompt(self):
        cli = self._cli(EOFError(), prompt="flows> ")
        self.assertEqual(cli.reader.prompt, "flows> ")

    def testLoopDispatchesOnceAndCloses(self):
        cli = self._cli("", "start flow f1", KeyboardInterrupt(), EOFError())
        output = _output()
        cli.start_interactive_mode(output)
        self.assertEqual(self.calls, ["f1"])
        self.assertEqual(self.handled, [])
        self.assertEqual(output.file.getvalue(), "started\n\n\n")

    def testLineIsTrimmed(self):
        cli = self._cli("   start flow f2   ", "  \t ", EOFError())
        cli.start_interactive_mode(_output())
        self.assertEqual(self.calls, ["f2"])

    def testFailureReportedOnceAndLoopContinues(self):
        cli = self._cli("fail", "start flow f1", EOFError())
        cli.start_interactive_mode(_output())
        self.assertEqual(len(self.handled), 1)
        self.assertEqual(str(self.handled[0]), "boom")
        self.assertEqual(self.calls, ["f1"])

    def testInvalidCommandReportedInLoop(self):
        cli = self._cli("dance", "start flow f1", EOFError())
        cli.start_interactive_mode(_output())
        self.assertEqual(len(self.handled), 1)
        self.assertIsInstance(self.handled[0], InvalidCommandError)
        self.assertEqual(self.calls, ["f1"])

    def testDefaultHandlerInLoop(self):
        cli = self._cli("fail", EOFError(), exception_handler=default_handler)
        output = _output()
        cli.start_interactive_mode(output)
        self.assertEqual(output.file.getvalue(), "Error: boom\n\n\n")

    def testInteractiveModeInstallsCompleter(self):
        cli = self._cli("start flow f1", EOFError())
        cli.start_interactive_mode(_output())
        self.assertTrue(cli.reader.handle_interrupt)
        self.assertEqual(cli.reader.completers, (cli.completer,))
        self.assertIsInstance(self.session.completers[0], Completer)

    def testCompleterBuiltFromCommands(self):
        cli = self._cli()
        self.assertEqual(cli.completer.complete("start flow "), ["f1", "f2"])
        self.assertEqual(cli.completer.complete(""), ["start", "fail"])
        self.assertIs(cli.completer, cli.completer)

    def testExecuteNonInteractive(self):
        cli = self._cli()
        cli.execute("start flow f2", _output())
        self.assertEqual(self.calls, ["f2"])
        with self.assertRaises(InvalidCommandError):
            cli.execute("dance", _output())

    def testExecuteAcceptsTextStream(self):
        cli = self._cli(exception_handler=default_handler)
        stream = io.StringIO()
        cli.execute("fail", stream)
        self.assertIn("Error: boom", stream.getvalue())

    def testRegisterRebuildsCompleter(self):
        cli = self._cli()
        before = cli.completer

        @command("stop [remotely]")
        def stop(arguments, output):
            pass

        cli.register(stop)
        self.assertIsNot(cli.completer, before)
        self.assertEqual(cli.completer.complete("stop "), ["remotely"])
        self.assertEqual(len(cli.commands), 3)

    def testRegisterDuringSessionRejected(self):
        @command("extend")
        def extend(arguments, output):
            cli.register(self.start)

        self.session = ScriptedSession("extend", EOFError())
        cli = CLI(
            [extend],
            reader=ConsoleReader(session=self.session),
            exception_handler=lambda output, exception: self.handled.append(exception),
        )
        cli.start_interactive_mode(_output())
        self.assertEqual(len(self.handled), 1)
        self.assertIsInstance(self.handled[0], RuntimeError)
        self.assertEqual(len(cli.commands), 1)


if __name__ == "__main__":
    unittest.main()
