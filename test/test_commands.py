"""
Commands module behavioral tests (registration, typed and named dispatch).

Scope
- Typed dispatch: argument decoding order, quoting, composites, decode faults.
- Named dispatch: defaulting, truncation, callbacks.
- Unmatched commands: permissive (None) and strict (UnknownCommandError).
- Host glue: requote, parse_args, __invoke__/invoke.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API only.
"""
from __future__ import annotations

import unittest
from unittest import TestCase

from commandeer import (
    Array,
    ArgumentList,
    ArgumentMap,
    Command,
    DecodeError,
    Dispatcher,
    ElementCountError,
    Integer,
    MalformedScalarError,
    NamedCommand,
    ShadowedCommandWarning,
    String,
    UnknownCommandError,
    UnterminatedStringError,
    command,
    invoke,
    parse_args,
    requote,
)


class Recorder:
    """Collects the arguments of every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


class TestTypedDispatch(TestCase):
    """Commands whose arguments are decoded into typed values."""

    def testRunWithNoArguments(self):
        dispatcher = Dispatcher()
        self.assertIsNone(dispatcher.dispatch(""))
        self.assertIsNone(dispatcher.dispatch("   "))

    def testRunSimpleCommand(self):
        executed = []
        dispatcher = Dispatcher()
        dispatcher.register("cmd", lambda: executed.append(True))
        self.assertIsInstance(dispatcher.dispatch("cmd"), Command)
        self.assertEqual(executed, [True])

    def testIntegerArgument(self):
        received = []

        def cmd(a: int):
            received.append(a)

        Dispatcher([command(cmd)]).dispatch("cmd 5")
        self.assertEqual(received, [5])

    def testMultipleArguments(self):
        received = []
        dispatcher = Dispatcher()

        @dispatcher.command
        def cmd(a: int, b: str, c: float):
            received.append((a, b, c))

        dispatcher.dispatch("cmd 123 abc 3.5")
        self.assertEqual(received, [(123, "abc", 3.5)])

    def testExplicitDecoders(self):
        recorder = Recorder()
        dispatcher = Dispatcher()
        dispatcher.register("cmd", recorder, Integer, String, Array(Integer, 2))
        dispatcher.dispatch('cmd 7 "two words" {1, 2}')
        self.assertEqual(recorder.calls, [(7, "two words", (1, 2))])

    def testQuotedArgumentWithWhitespace(self):
        received = []
        dispatcher = Dispatcher()

        @dispatcher.command("say")
        def speak(text: str):
            received.append(text)

        text = "hi there  !\t!\n what's\r up?"
        dispatcher.dispatch('say "%s"' % text)
        self.assertEqual(received, [text])

    def testQuotedCommandName(self):
        recorder = Recorder()
        dispatcher = Dispatcher()
        dispatcher.register("two words", recorder, int)
        dispatcher.dispatch('"two words" 3')
        self.assertEqual(recorder.calls, [(3,)])

    def testCompositeArguments(self):
        received = []
        dispatcher = Dispatcher()

        @dispatcher.command
        def place(points: list[tuple[int, int]], labels: dict[str, str], ratio: float):
            received.append((points, labels, ratio))

        dispatcher.dispatch('place {{1, 2}, {3, 4}} { {a, "x y"} } .5')
        self.assertEqual(received, [([(1, 2), (3, 4)], {"a": "x y"}, 0.5)])

    def testKeywordOnlyParametersKeepDefaults(self):
        received = []
        dispatcher = Dispatcher()

        @dispatcher.command
        def cmd(a: int, *, scale=10):
            received.append(a * scale)

        dispatcher.dispatch("cmd 4")
        self.assertEqual(received, [40])

    def testBoundMethod(self):
        class Math:
            def __init__(self):
                self.sums = []

            def sum(self, a: int, b: int):
                self.sums.append(a + b)

        math = Math()
        dispatcher = Dispatcher()
        dispatcher.command(math.sum)
        dispatcher.dispatch("sum 2 40")
        self.assertEqual(math.sums, [42])

    def testCommandStaysCallable(self):
        dispatcher = Dispatcher()

        @dispatcher.command
        def double(a: int):
            return 2 * a

        self.assertEqual(double(21), 42)
        self.assertEqual(double.name, "double")
        self.assertEqual(double.decoders, (Integer,))

    def testExplicitRemainder(self):
        recorder = Recorder()
        dispatcher = Dispatcher()
        dispatcher.register("cmd", recorder, int, int)
        dispatcher.dispatch("cmd", "1 2")
        dispatcher.dispatch("cmd", ["3", "4"])
        self.assertEqual(recorder.calls, [(1, 2), (3, 4)])

    def testFirstMatchWins(self):
        calls = []
        dispatcher = Dispatcher()
        dispatcher.register("cmd", lambda: calls.append("first"))
        with self.assertWarns(ShadowedCommandWarning) as context:
            dispatcher.register("cmd", lambda: calls.append("second"))
        self.assertEqual(context.filename, __file__)
        dispatcher.dispatch("cmd")
        self.assertEqual(calls, ["first"])

    def testNamesAreCaseSensitive(self):
        calls = []
        dispatcher = Dispatcher()
        dispatcher.register("cmd", lambda: calls.append(True))
        self.assertIsNone(dispatcher.dispatch("CMD"))
        self.assertEqual(calls, [])


class TestDecodeFaults(TestCase):
    """Decode failures propagate and the handler never runs."""

    def setUp(self):
        self.recorder = Recorder()
        self.dispatcher = Dispatcher()
        self.dispatcher.register("cmd", self.recorder, int, Array(Integer, 2))

    def testMalformedArgument(self):
        with self.assertRaises(MalformedScalarError) as context:
            self.dispatcher.dispatch("cmd abc {1, 2}")
        self.assertEqual(context.exception.command, "cmd")
        self.assertEqual(context.exception.argument, 1)
        self.assertEqual(context.exception.position, 4)
        self.assertEqual(self.recorder.calls, [])

    def testNoPartialApplication(self):
        for line in ("cmd 1 {1,6,7}", "cmd 1 {7}"):
            with self.subTest(line=line):
                with self.assertRaises(ElementCountError) as context:
                    self.dispatcher.dispatch(line)
                self.assertEqual(context.exception.argument, 2)
        self.assertEqual(self.recorder.calls, [])

    def testMissingArgument(self):
        with self.assertRaises(DecodeError):
            self.dispatcher.dispatch("cmd 1")
        self.assertEqual(self.recorder.calls, [])

    def testUnterminatedCommandName(self):
        with self.assertRaises(UnterminatedStringError):
            self.dispatcher.dispatch('"cmd 1')

    def testHandlerErrorsPropagate(self):
        def fail(a: int):
            raise RuntimeError(a)

        self.dispatcher.register("fail", fail)
        with self.assertRaises(RuntimeError):
            self.dispatcher.dispatch("fail 1")


class TestNamedDispatch(TestCase):
    """Commands binding raw strings to declared parameter names."""

    def testNoParameterCommand(self):
        dispatcher = Dispatcher()
        dispatcher.register("do_something")
        result = dispatcher.dispatch("do_something")
        self.assertEqual(result, ArgumentMap("do_something", {}))

    def testOnlyRegisteredCommands(self):
        dispatcher = Dispatcher([NamedCommand("my_command")])
        self.assertIsNone(dispatcher.dispatch("do_something"))

    def testMultipleViableCommands(self):
        names = ["do_this", "do_that", "print_status"]
        dispatcher = Dispatcher([NamedCommand(name) for name in names])
        for name in names:
            with self.subTest(name=name):
                self.assertEqual(dispatcher.dispatch(name, []).command, name)
        self.assertIsNone(dispatcher.dispatch("bad_command", []))

    def testNamedParameter(self):
        dispatcher = Dispatcher()
        dispatcher.register("cmd", ["param1"])
        result = dispatcher.dispatch("cmd", ["val1"])
        self.assertEqual(result.command, "cmd")
        self.assertEqual(dict(result.params), {"param1": "val1"})

    def testMissingParametersDefaultToEmpty(self):
        dispatcher = Dispatcher()
        dispatcher.register("cmd", ["p1", "p2", "p3"])
        result = dispatcher.dispatch("cmd", ["val1"])
        self.assertEqual(dict(result.params), {"p1": "val1", "p2": "", "p3": ""})

    def testSurplusParametersDiscarded(self):
        dispatcher = Dispatcher()
        dispatcher.register("cmd", ["p1", "p2", "p3"])
        result = dispatcher.dispatch("cmd", ["v1", "v2", "v3", "v4"])
        self.assertEqual(dict(result.params), {"p1": "v1", "p2": "v2", "p3": "v3"})

    def testParamsAreReadOnly(self):
        result = NamedCommand("cmd", ["p1"]).bind(["v1"])
        with self.assertRaises(TypeError):
            result.params["p1"] = "other"  # type: ignore[index]

    def testLineIsSplitIntoRawArguments(self):
        dispatcher = Dispatcher()
        dispatcher.register("cmd", ["path", "note"])
        result = dispatcher.dispatch('cmd c:\\dir,x "a \\"b\\" c" extra')
        self.assertEqual(dict(result.params), {"path": "c:\\dir,x", "note": 'a "b" c'})

    def testCallbackReceivesArgumentMap(self):
        received = []
        dispatcher = Dispatcher()
        dispatcher.register("cmd", ["user"], callback=received.append)
        dispatcher.dispatch("cmd", ["eiko"])
        self.assertEqual(received, [ArgumentMap("cmd", {"user": "eiko"})])

    def testRepeatedNamesRejected(self):
        with self.assertRaises(ValueError):
            NamedCommand("cmd", ["a", "a"])

    def testStringParamsRejected(self):
        with self.assertRaises(TypeError):
            NamedCommand("cmd", "abc")


class TestUnknownCommands(TestCase):
    """One policy for both modes: None by default, a fault when strict."""

    def testPermissiveReturnsNone(self):
        recorder = Recorder()
        dispatcher = Dispatcher()
        dispatcher.register("cmd", recorder, int, int)
        with self.assertLogs("commandeer.commands", level="INFO"):
            self.assertIsNone(dispatcher.dispatch("other 1 2"))
        self.assertIsNone(dispatcher.dispatch("other", ["1"]))
        self.assertEqual(recorder.calls, [])

    def testStrictRaises(self):
        dispatcher = Dispatcher(strict=True)
        dispatcher.register("build", lambda: None)
        with self.assertRaises(UnknownCommandError) as context:
            dispatcher.dispatch("biuld")
        self.assertEqual(context.exception.command, "biuld")
        self.assertIn("build", context.exception.options["hint"])

    def testStrictNamedRaises(self):
        dispatcher = Dispatcher(strict=True)
        with self.assertRaises(UnknownCommandError):
            dispatcher.dispatch("cmd", ["a"])

    def testStrictBlankLineIsNoop(self):
        self.assertIsNone(Dispatcher(strict=True).dispatch(""))


class TestRegistration(TestCase):
    """Registration validation."""

    def testUnannotatedParameterRejected(self):
        def cmd(a):
            pass

        with self.assertRaises(TypeError):
            Command(cmd)

    def testVariadicParameterRejected(self):
        def cmd(*args: int):
            pass

        with self.assertRaises(TypeError):
            Command(cmd)

    def testUnsupportedAnnotationRejected(self):
        def cmd(a: complex):
            pass

        with self.assertRaises(TypeError):
            Command(cmd)

    def testExplicitDecodersMustFitSignature(self):
        with self.assertRaises(TypeError):
            Command(lambda a: None, Integer, Integer, name="cmd")

    def testEmptyNameRejected(self):
        with self.assertRaises(ValueError):
            Command(lambda: None, name="")

    def testCommandDecoratorWithDecoders(self):
        @command(Integer, name="twice")
        def double(a):
            return 2 * a

        self.assertIsInstance(double, Command)
        self.assertEqual(double.name, "twice")
        self.assertEqual(double.invoke("21"), 42)

    def testCommandFieldsAreReadOnly(self):
        cmd = Command(lambda: None, name="cmd")
        with self.assertRaises(AttributeError):
            cmd.name = "other"  # type: ignore[misc]

    def testFlagsMustBeBoolean(self):
        with self.assertRaises(TypeError):
            Dispatcher(strict=1)  # type: ignore[arg-type]


class TestHostGlue(TestCase):
    """Process argument vectors."""

    def testRequote(self):
        self.assertEqual(requote("abc"), "abc")
        self.assertEqual(requote("a b"), '"a b"')
        self.assertEqual(requote(""), '""')
        self.assertEqual(requote('say "hi" now'), r'"say \"hi\" now"')

    def testParseEmptyArgv(self):
        self.assertEqual(parse_args(["test"]), ArgumentList("", ()))

    def testParseSingleCommand(self):
        self.assertEqual(parse_args(["test", "my_command"]), ArgumentList("my_command", ()))

    def testParseCommandWithParameters(self):
        args = parse_args(["test", "my_command", "param1", "param2"])
        self.assertEqual(args.command, "my_command")
        self.assertEqual(args.params, ("param1", "param2"))

    def testInvokeRequotesArguments(self):
        received = []
        dispatcher = Dispatcher()

        @dispatcher.command
        def upcase(text: str, values: list[float]):
            received.append((text.upper(), sorted(values)))

        invoke(dispatcher, ["upcase", "hello world", "{3,1.5,2}"])
        self.assertEqual(received, [("HELLO WORLD", [1.5, 2.0, 3.0])])

    def testRequoteDelimiters(self):
        self.assertEqual(requote("a,b"), '"a,b"')
        self.assertEqual(requote("a}"), '"a}"')
        self.assertEqual(requote("{1,2}"), "{1,2}")

    def testInvokeKeepsArgumentsWithCommas(self):
        received = []
        dispatcher = Dispatcher()
        dispatcher.register("cmd", lambda first, second: received.append((first, second)), str, str)

        invoke(dispatcher, ["cmd", "a,b", "c"])
        self.assertEqual(received, [("a,b", "c")])

    def testInvokeRejectsNonInvocables(self):
        with self.assertRaises(TypeError):
            invoke(object(), [])


if __name__ == "__main__":
    unittest.main()
