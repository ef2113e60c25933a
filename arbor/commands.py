"""
Arbor command layer: assemble a command tree and route argument vectors through it.

What this module provides
- Command: one node of a command hierarchy with:
  • A name, an optional description and any number of aliases.
  • Parent/children wiring with sibling-unique names (aliases included).
  • lookup(): walk the tree following argument tokens and report the deepest match,
    whether the path resolved, and the unconsumed tokens.
  • resolve(): lookup() plus friendly, position-first faults for unresolvable input.
  • Rich-based help rendering (route, description, aliases, subcommand table).

- Factories and helpers:
  • command(name, ...): create a Command (optionally under a parent).
  • lookup(command, args): functional form of Command.lookup().

Quick start
    from arbor import command

    root = command("git", "the stupid content tracker")
    remote = root.command("remote", "manage tracked repositories").alias("rmt")
    remote.command("add", "add a remote")

    cmd, found, remaining = root.lookup(["rmt", "add", "-f", "origin"])
    # cmd is the 'add' node, found is True, remaining == ["-f", "origin"]

Lookup rules
- Tokens are consumed left to right; each one must name a child (or alias) of the
  current node to descend.
- A token starting with '-' stops descent before any match is attempted; the result
  counts as found and the flag plus everything after it is left over.
- A token matching no child stops descent as well; the result is not found and that
  token plus everything after it is left over. The deepest node reached is returned.

Design notes
- Trees are assembled once and then only read; lookup never mutates anything.
- The parent link is only used for assembly and for upward helpers (root, path, route).
"""
import difflib
import functools
import operator
import re
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .faults import *
from .utils import *

FLAG_SENTINEL = "-"


class CommandType(type):
    """
    Metaclass that gives Command classes introspectable, read-only fields.

    Responsibilities
    - Expose selected fields as read-only properties using mirror() for all names
      listed in __introspectable__.
    - Provide stable, readable __repr__/__rich_repr__ for diagnostics and rich UI.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      for consistent, human-friendly labels in error messages.
    - __displayable__ (if set) narrows which attributes are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

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
            **options
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - command(route='git remote', descr='manage tracked repositories', ...)
            """
            fields = ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            return f"{type(self).__typename__}({fields})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield (name, object) pairs for pretty printers.
            """
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class Lookup(NamedTuple):
    """
    Outcome of Command.lookup().

    - command: deepest command reached (never None).
    - found: False only when descent stopped on a token that names no child.
    - remaining: unconsumed tokens, in their original order.
    """
    command: "Command"
    found: bool
    remaining: list[str]


def _process_strings(cls, metadata):
    """
    Normalize scalar string/Text metadata fields (name, descr).

    - Validates type: each value must be str | Text | Unset.
    - Trims strings; empty strings are rejected.
    - The name is mandatory and stored as a plain string, since lookup compares it
      with raw tokens.
    """
    for name in ("name", "descr"):
        if not isinstance(object := metadata[name], str | Text | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)

    if metadata["name"] is None:
        raise TypeError(f"{cls.__typename__} 'name' is required")
    elif not (name := str(metadata["name"]).strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    metadata["name"] = name


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names.

    Every name of the command (canonical name and aliases) must be free among
    its future siblings, whether they use it as a name or as an alias.
    """
    if not parent:
        return

    for name in self.names:
        if (sibling := parent.child(name)) is not None and sibling is not self:
            typeof = "subcommand" if parent.parent else "command"
            raise ValueError(f"{type(self).__typename__} {typeof} name {name!r} is already in use")

    parent._children.append(self)


def _tokenize(prompt):
    """
    Normalize a prompt into a list of tokens.

    - Unset: read tokens from sys.argv[1:].
    - str: shell-like string; split via shlex.split.
    - Iterable[str]: pre-tokenized sequence, kept verbatim.
    """
    if prompt is Unset:
        return sys.argv[1:]
    elif isinstance(prompt, str):
        return shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("lookup() argument must be a string or an iterable of strings")
        return tokens
    raise TypeError("lookup() argument must be a string or an iterable of strings")


class Command(metaclass=CommandType):
    """
    One node of a command tree.

    Responsibilities
    - Identity: name, description and aliases exposed as read-only properties.
    - Composition: parent/child hierarchies to model subcommands.
    - Routing: lookup()/resolve() walk the tree following argument tokens.
    - Rendering: help via Rich (__rich__/helper).

    Lifecycle
    - Nodes are attached to their parent at construction time and never detached.
    - Aliases may be added fluently after construction (alias()).
    - Once assembled, the tree is only read.
    """

    # Properties mirrored to read-only attributes.
    __introspectable__ = (
        "name",
        "descr",
        "parent",
        "children",
        "shell",
        "fancy",
        "colorful",
    )

    # Compact, high-signal fields for __repr__; parents and children are shown
    # through the route to keep the representation finite.
    __displayable__ = (
        "route",
        "descr",
        "names",
        "shell",
        "fancy",
        "colorful",
    )

    def __init__(
            self,
            name,
            /,
            descr=Unset,
            parent=Unset,
            *,
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Construct a command and attach it under its parent.

        Parameters
        - name: str | Text
          Canonical name, unique among siblings (aliases included).
        - descr: str | Text | Unset
          Human-readable description used by help output.
        - parent: Command | None | Unset
          Parent under which to attach this command. Unset or None makes it a root.
        - shell, fancy, colorful: bool | Unset
          Runtime flags. If Unset, values inherit from parent (or default False).

        Raises
        - TypeError on an invalid parent or metadata types.
        - ValueError on empty names or sibling name conflicts.
        """
        if not isinstance(parent, Command | Unset | None):
            raise TypeError(f"{type(self).__typename__} 'parent' must be a command")

        metadata = {
            "name": name,
            "descr": descr,
            # Runtime flags (inherit from parent when Unset)
            "shell": bool(coalesce(shell, getattr(parent, "shell", False))),
            "fancy": bool(coalesce(fancy, getattr(parent, "fancy", False))),
            "colorful": bool(coalesce(colorful, getattr(parent, "colorful", False))),
            # Parent/children wiring
            "parent": parent or None,
            "children": [],
        }
        _process_strings(type(self), metadata)

        self._aliases = set()
        for name, object in metadata.items():
            setattr(self, "_" + name, coalesce(object))

        _attach_to_parent(self, self.parent)

    @property
    def aliases(self):
        """
        Alternate names resolving to this command (read-only snapshot).
        """
        return frozenset(self._aliases)

    @property
    def names(self):
        """
        Every name this command answers to: the canonical one first, then the aliases sorted.
        """
        return (self._name, *sorted(self._aliases))

    @property
    def root(self):
        """
        Return the topmost command in the current command hierarchy.
        """
        child, parent = self, self._parent
        while parent:
            child, parent = parent, parent._parent
        return child

    @property
    def path(self):
        """
        Return the full ancestry from root to this command as a tuple.

        The first element is the root command, the last is the current node.
        """
        path = [command := self]
        while command._parent:
            path.append(command := command._parent)
        return tuple(reversed(path))

    @property
    def route(self):
        """
        User-facing route from the root, e.g. 'git remote add'.
        """
        return " ".join(step.name for step in self.path)

    def alias(self, *names):
        """
        Register alternate names for this command and return the command itself.

        Rules
        - Each alias must be a non-empty string (trimmed).
        - An alias already used by a sibling (as a name or an alias) is rejected.
        - Re-registering the canonical name or a known alias is a no-op.

        Returns
        - self, enabling fluent assembly: parent.command("remote").alias("rmt")
        """
        for name in names:
            if not isinstance(name, str):
                raise TypeError(f"{type(self).__typename__} alias must be a string")
            elif not (name := name.strip()):
                raise ValueError(f"{type(self).__typename__} alias cannot be empty")
            elif self.matches(name):
                continue
            elif self._parent and self._parent.child(name) is not None:
                typeof = "subcommand" if self._parent.parent else "command"
                raise ValueError(f"{type(self).__typename__} {typeof} name {name!r} is already in use")
            self._aliases.add(name)
        return self

    def command(self, name, /, descr=Unset, **options):
        """
        Create a subcommand under this command.

        Thin convenience wrapper around the top-level command(...) factory that
        injects the current command as the parent.
        """
        return command(name, descr, self, **options)

    def matches(self, token, /):
        """
        Tell whether token is this command's name or one of its aliases.
        """
        return token == self._name or token in self._aliases

    def child(self, token, /):
        """
        Return the first child answering to token (by name or alias), or None.
        """
        for child in self._children:
            if child.matches(token):
                return child
        return None

    def walk(self):
        """
        Iterate over this command and all of its descendants, depth first (pre-order).
        """
        yield self
        for child in self._children:
            yield from child.walk()

    def lookup(self, args=Unset, /):
        """
        Find the command selected by args, starting from this command.

        Parameters
        - args: Iterable[str] | str | Unset
          Tokens following the program name. A string is split like a shell would;
          Unset reads sys.argv[1:].

        Returns
        - Lookup(command, found, remaining)
          • command: deepest command reached; this command when nothing matched.
          • found: True unless descent stopped on a token naming no child.
          • remaining: tokens from the stopping point to the end (empty when all matched).

        Notes
        - A flag-like token (leading '-') stops descent before it is compared with
          the children, and the lookup still counts as found.
        - Never raises for unresolvable input; see resolve() for user-facing faults.
        """
        tokens = _tokenize(args)

        command = self
        for index, token in enumerate(tokens):
            if token.startswith(FLAG_SENTINEL):
                return Lookup(command, True, tokens[index:])
            if (child := command.child(token)) is None:
                return Lookup(command, False, tokens[index:])
            command = child
        return Lookup(command, True, [])

    def resolve(self, args=Unset, /):
        """
        lookup() for end users: unresolvable input becomes a fault.

        Behavior
        - Returns the Lookup unchanged when it was found.
        - Otherwise reports, from the deepest command reached:
          • UnexpectedArgumentError when that command has no subcommands at all,
          • UnknownCommandError when it is the root of the tree,
          • UnknownSubcommandError otherwise,
          with the ordinal position of the offending token and close-match suggestions.
        - The fault is surfaced with the deepest command's runtime flags: raised in
          non-shell mode, printed (after the help) and exit(1) in shell mode.
        """
        tokens = _tokenize(args)
        command, found, remaining = result = self.lookup(tokens)
        if found:
            return result

        input = remaining[0]
        index = len(tokens) - len(remaining) + 1
        route = command.route

        if not command._children:
            command.trigger(UnexpectedArgumentError(
                "unexpected argument %r at %s position" % (input, ordinal(index)),
                title="unexpected argument",
                code=FaultCode.UNEXPECTED_ARGUMENT,
                input=input,
                index=index,
                suggestions=[],
                hint="'%s' takes no subcommands — run '%s --help' to see valid forms" % (route, route),
                docs=getdoc(FaultCode.UNEXPECTED_ARGUMENT),
            ))
            return result

        candidates = [name for child in command._children for name in child.names]
        suggestions = difflib.get_close_matches(input, candidates, 5)
        try:
            hint = "did you mean %r? you can also run '%s --help' to see available %scommands" % (
                suggestions[0], route, "sub" * bool(command._parent)
            )
        except IndexError:
            hint = "run '%s --help' to see available %scommands" % (route, "sub" * bool(command._parent))

        # choose exception/code/title based on whether we are at the root (command) or nested (subcommand)
        exception = UnknownSubcommandError if command._parent else UnknownCommandError
        code = FaultCode.UNKNOWN_SUBCOMMAND if command._parent else FaultCode.UNKNOWN_COMMAND
        type = "subcommand" if command._parent else "command"

        command.trigger(exception(
            "unknown %s %r at %s position" % (type, input, ordinal(index)),
            title="unknown %s" % type,
            code=code,
            input=input,
            index=index,
            suggestions=suggestions,
            hint=hint,
            docs=getdoc(code),
        ))
        return result

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this command's runtime flags.

        In shell mode the help of this command is printed to stderr first.
        """
        if (
                not hasattr(fault, "__trigger__") or
                not callable(fault.__trigger__) or
                not hasattr(fault, "__replace__") or
                not callable(fault.__replace__)
        ):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
        if self.shell:
            self.helper(stderr=True)
        trigger(fault, **options, tool=self, shell=self.shell, fancy=self.fancy, colorful=self.colorful)

    def __rich__(self):
        """
        Render help for this command.

        Palette keys
        - usage-label, program-name, usage-section, description-section
        - aliases-label, alias
        - children-title, children-table, children, children-aliases, children-description
        - panel-title

        Customization
        - Define a mapping named __styles__ in __main__ to override any palette entry.
        - When colorful is False, styling is suppressed.
        """
        styles = defaultdict(str, {
            # === Head sections ===
            "usage-label": "bold #00E6FF",
            "program-name": "bold #FF4D94",
            "usage-section": "bold #36C5F0",
            "description-section": "italic #A3A3A3",

            # === Aliases ===
            "aliases-label": "bold #FFFFFF",
            "alias": "bold #22C55E",

            # === Children table ===
            "children-title": "bold #FFFFFF",
            "children-table": "#4B5563",  # Slate border
            "children": "bold #36C5F0",  # Sky-blue subcommands
            "children-aliases": "#22C55E",
            "children-description": "#9CA3AF",

            # === Fancy panel ===
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def styler(style):
            return styles[style] if self.colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment.copy()
            return Text(str(fragment), style)

        renders = []

        typeof = "subcommand" if self._parent else "command"
        usage = Text.assemble(text("usage:", styler("usage-label")), " ", text(self.route, styler("program-name")))
        if self._children:
            usage.append(" ").append(text(f"<{typeof}>", styler("usage-section")))
        usage.append(" ").append(text("[args...]", styler("usage-section")))
        renders.append(Text.assemble(usage, "\n"))

        if self.descr:
            renders.append(Text.assemble(text(self.descr, styler("description-section")), "\n"))

        if self._aliases:
            renders.append(Text.assemble(
                text("aliases:", styler("aliases-label")),
                " ",
                Text(", ").join(text(alias, styler("alias")) for alias in sorted(self._aliases)),
                "\n",
            ))

        if self._children:
            table = Table(
                "name", "aliases", "help",
                title=text(f"{typeof}s", styler("children-title")),
                box=ROUNDED,
                style=styler("children-table"),
                header_style=styler("children-title"),
            )
            for child in self._children:
                if child.descr:
                    help = text(child.descr, styler("children-description"))
                else:
                    help = text(f"no description — run '{child.route} --help' for details", styler("children-description"))
                table.add_row(
                    text(child.name, styler("children")),
                    text(", ".join(sorted(child._aliases)), styler("children-aliases")),
                    help,
                )
            renders.append(table)

        if self.fancy:
            return Panel(
                Group(*renders),
                title=Text.assemble("[", " ", f"{self.route} HELP".upper(), " ", "]", style=styler("panel-title")),
                title_align="left",
                box=ROUNDED,
            )
        return Group(*renders)

    def helper(self, *, stderr=False):
        """
        Print the help of this command to stdout (or stderr).
        """
        Console(stderr=stderr).print(self)


def command(name, /, descr=Unset, parent=Unset, **options):
    """
    Create a Command.

    Parameters
    - name: canonical command name.
    - descr: optional description.
    - parent: Command under which to attach the new command (Unset for a root).
    - **options: runtime flags forwarded to Command (shell, fancy, colorful).

    Returns
    - Command
    """
    return Command(name, descr, parent, **options)


def lookup(command, args=Unset, /):
    """
    Functional form of Command.lookup().
    """
    if not isinstance(command, Command):
        raise TypeError("lookup() first argument must be a command")
    return command.lookup(args)


__all__ = (
    # Public API surface for consumers of arbor.commands.
    # These names are re-exported from the package __init__.
    "Command",
    "Lookup",
    "FLAG_SENTINEL",
    "command",
    "lookup",
)

# Remove the internal metaclass from the module namespace to avoid accidental
# exposure in docs, autocompletion, or star-imports. Not part of the public API.
del CommandType
