"""
Faults behavioral tests (codes, triggering, resolve() diagnostics).

Scope
- Validate that resolve() turns unresolvable input into the right fault class,
  with position-first messages, suggestions and stable codes.
- Validate shell mode: the fault is rendered to stderr and the process exits with 1.
- Validate trigger()/getdoc() contracts and fault rendering.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import io
import sys
import unittest
from unittest import TestCase, mock

from rich.console import Console

from arbor import Command
from arbor.faults import (
    CommandException,
    UnknownCommandError,
    UnknownSubcommandError,
    UnexpectedArgumentError,
    FaultCode,
    trigger,
    getdoc,
)


def _tree(**options):
    root = Command("root", "root command", **options)
    child1 = Command("child1", "child command", root).alias("ch1")
    Command("grandchild", "grandchild command", child1)
    Command("child2", "another child command", root)
    return root


class TestResolve(TestCase):
    """resolve() diagnostics in non-shell mode (faults are raised)."""

    def setUp(self):
        self.root = _tree()

    def testResolveReturnsFoundLookup(self):
        cmd, found, remaining = self.root.resolve(["ch1", "grandchild", "--dry-run"])
        self.assertTrue(found)
        self.assertEqual(cmd.name, "grandchild")
        self.assertEqual(remaining, ["--dry-run"])

    def testUnknownCommandAtRoot(self):
        with self.assertRaises(UnknownCommandError) as context:
            self.root.resolve(["chil1", "-v"])
        fault = context.exception
        self.assertEqual(fault.message, "unknown command 'chil1' at first position")
        self.assertIs(fault.options["code"], FaultCode.UNKNOWN_COMMAND)
        self.assertEqual(fault.options["input"], "chil1")
        self.assertEqual(fault.options["index"], 1)
        self.assertEqual(fault.options["suggestions"][0], "child1")
        self.assertIn("did you mean 'child1'?", fault.options["hint"])
        self.assertIn("'root --help'", fault.options["hint"])
        self.assertEqual(fault.options["tool"].name, "root")

    def testUnknownSubcommand(self):
        with self.assertRaises(UnknownSubcommandError) as context:
            self.root.resolve(["child1", "grandkid"])
        fault = context.exception
        self.assertEqual(fault.message, "unknown subcommand 'grandkid' at second position")
        self.assertIs(fault.options["code"], FaultCode.UNKNOWN_SUBCOMMAND)
        self.assertIn("grandchild", fault.options["suggestions"])
        self.assertIn("available subcommands", fault.options["hint"])
        self.assertEqual(fault.options["tool"].route, "root child1")

    def testUnknownSubcommandWithoutSuggestions(self):
        with self.assertRaises(UnknownSubcommandError) as context:
            self.root.resolve(["ch1", "zzzzzzzz"])
        fault = context.exception
        self.assertEqual(fault.options["suggestions"], [])
        self.assertEqual(fault.options["hint"], "run 'root child1 --help' to see available subcommands")

    def testUnexpectedArgumentOnLeaf(self):
        with self.assertRaises(UnexpectedArgumentError) as context:
            self.root.resolve(["child2", "badparam"])
        fault = context.exception
        self.assertEqual(fault.message, "unexpected argument 'badparam' at second position")
        self.assertIs(fault.options["code"], FaultCode.UNEXPECTED_ARGUMENT)
        self.assertIn("'root child2' takes no subcommands", fault.options["hint"])

    def testFlagBoundaryIsNotAFault(self):
        cmd, found, remaining = self.root.resolve(["child2", "-flag", "value", "notflag"])
        self.assertTrue(found)
        self.assertEqual(cmd.name, "child2")
        self.assertEqual(remaining, ["-flag", "value", "notflag"])

    def testFaultsAreCommandExceptions(self):
        for exception in (UnknownCommandError, UnknownSubcommandError, UnexpectedArgumentError):
            with self.subTest(exception=exception.__name__):
                self.assertTrue(issubclass(exception, CommandException))


class TestShellMode(TestCase):
    """resolve() diagnostics in shell mode (faults are printed, then exit 1)."""

    def testShellModeRendersAndExits(self):
        root = _tree(shell=True)
        stream = io.StringIO()
        with mock.patch.object(sys, "stderr", stream):
            with self.assertRaises(SystemExit) as context:
                root.resolve(["nope"])
        self.assertEqual(context.exception.code, 1)
        output = stream.getvalue()
        self.assertIn("usage: root", output)
        self.assertIn("11101", output)
        self.assertIn("unknown command 'nope' at first position", output)

    def testShellModeFromNestedCommand(self):
        root = _tree(shell=True, fancy=True)
        stream = io.StringIO()
        with mock.patch.object(sys, "stderr", stream):
            with self.assertRaises(SystemExit):
                root.resolve("child1 grandkid")
        output = stream.getvalue()
        self.assertIn("11102", output)
        self.assertIn("Unknown Subcommand", output)


class TestTrigger(TestCase):
    """trigger()/getdoc() contracts and fault rendering."""

    def testTriggerRaisesOutsideShell(self):
        with self.assertRaises(UnknownCommandError) as context:
            trigger(UnknownCommandError("unknown command 'x'"), code=FaultCode.UNKNOWN_COMMAND, shell=False)
        self.assertEqual(str(context.exception), "unknown command 'x'")
        self.assertIs(context.exception.options["code"], FaultCode.UNKNOWN_COMMAND)

    def testTriggerRejectsNonFaults(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("nope"))

    def testCommandTriggerRejectsNonFaults(self):
        with self.assertRaises(TypeError):
            Command("root").trigger(object())

    def testReplaceMergesOptions(self):
        fault = UnknownCommandError("message", title="a", hint="b")
        replaced = fault.__replace__(hint="c")
        self.assertIsInstance(replaced, UnknownCommandError)
        self.assertEqual(replaced.message, "message")
        self.assertEqual(dict(replaced.options), {"title": "a", "hint": "c"})
        self.assertEqual(fault.options["hint"], "b")

    def testNormalizeDefaultsToNumericCode(self):
        self.assertEqual(FaultCode.UNKNOWN_COMMAND.normalize(), "11101")
        self.assertEqual(FaultCode.UNEXPECTED_ARGUMENT.normalize(), "11121")

    def testGetdocWithoutHostDocs(self):
        self.assertIsNone(getdoc(FaultCode.UNKNOWN_COMMAND))
        with self.assertRaises(TypeError):
            getdoc(11101)

    def testFaultRendering(self):
        root = Command("tool")
        fault = UnknownCommandError(
            "unknown command 'x' at first position",
            tool=root,
            code=FaultCode.UNKNOWN_COMMAND,
            title="unknown command",
            hint="run 'tool --help' to see available commands",
        )
        console = Console(record=True, width=120, file=io.StringIO())
        console.print(fault)
        output = console.export_text()
        self.assertIn("[ tool — 11101 | Unknown Command ]", output)
        self.assertIn("unknown command 'x' at first position", output)
        self.assertIn("→ run 'tool --help' to see available commands", output)


if __name__ == "__main__":
    unittest.main()
