"""Units: one loadable script and the declarations its body makes.

A unit's body runs with an ``sl`` global bound to a UnitContext. The body
declares imports, code blocks and namespaces on that context; when the body
finishes the context is closed and its declarations are frozen into a
Discovery value for the session to attach into the tree.

Example unit:

    sl.imports("lib/util.py")
    sl.namespace("app.models")

    @sl.code
    def setup(SL_GLOBAL, SL_DIRECTORY):
        SL_GLOBAL.app.models.root = SL_DIRECTORY
"""

__all__ = ["Unit", "UnitState", "CodeBlock", "Discovery", "UnitContext", "evaluate_unit"]

import enum
import inspect
import linecache
from dataclasses import dataclass, field
from typing import Callable

import scriptload


log = scriptload.get_logger(__name__)


class UnitState(enum.IntEnum):
    """Progress of a unit through a session. Ordered; later is greater."""

    PENDING = 0
    FETCHING = 1
    LOADED = 2
    EXECUTED = 3


@dataclass(frozen=True)
class CodeBlock:
    """Executable fragment declared by a unit.

    Attributes:
        body: Callable invoked with its constants as keyword arguments
        environments: frozenset of Environment the block runs in, None for any
        guard: Nullary callable; the block is skipped unless it returns truthy
        constants: Names of constants bound into body by parameter name
    """

    body: Callable
    environments: frozenset | None = None
    guard: Callable | None = None
    constants: tuple = ()

    @property
    def name(self):
        """(str) Readable name of the body, for messages."""
        return getattr(self.body, "__qualname__", None) or repr(self.body)

    def runs_in(self, environment):
        """(bool) Whether the environment filter admits environment."""
        return self.environments is None or environment in self.environments


@dataclass(frozen=True)
class Discovery:
    """Everything a unit declared while its body ran.

    Returned by the fetch step. The session copies what it needs into the
    tree and merges namespace_tree into its own.
    """

    key: str
    source: str
    imports: tuple = ()
    blocks: tuple = ()
    namespaces: tuple = ()
    namespace_tree: "scriptload.NamespaceTree" = field(
        default_factory=lambda: scriptload.NamespaceTree())
    ready_callbacks: tuple = ()
    error_callbacks: tuple = ()


class Unit:
    """A script in the dependency tree.

    Tree linkage (parent, children, cursor) is held by the UnitTree arena
    that created the unit; the properties here read through to it.

    Args:
        tree: UnitTree that owns this unit
        index: (int) Position of this unit in the arena
        key: (str) Canonical key of the script
    """

    def __init__(self, tree, index, key):
        self._tree = tree
        self.index = index
        self.key = key
        self.directory = scriptload.directory_of(key)
        self.state = UnitState.PENDING
        self.source = None
        self.imports = ()
        self.blocks = ()
        self.namespaces = ()

    def __repr__(self):
        return f"Unit<{self.key} {self.state.name}>"

    @property
    def parent(self):
        """(Unit | None) Unit that most recently attached this one."""
        return self._tree.parent_of(self)

    @property
    def children(self):
        """(tuple[Unit]) Dependencies in declaration order."""
        return self._tree.children_of(self)

    @property
    def cursor(self):
        """(int) Index of the next child to fetch."""
        return self._tree.cursor_of(self)

    @property
    def is_loaded(self):
        """(bool) Whether the unit has been fetched, or is being fetched."""
        return self.state >= UnitState.FETCHING

    def apply(self, discovery):
        """Copy a discovery's declarations onto this unit."""
        self.source = discovery.source
        self.imports = discovery.imports
        self.blocks = discovery.blocks
        self.namespaces = discovery.namespaces


class UnitContext:
    """The ``sl`` object handed to a unit's body while it loads.

    Open only while the fetch for its unit is in flight. Every declaration
    on a closed context raises DeclarationOutsideContext.

    Args:
        key: (str) Canonical key of the unit being loaded
        environment: (Environment) Environment of the session
    """

    def __init__(self, key, environment):
        self.key = key
        self.directory = scriptload.directory_of(key)
        self.environment = environment
        self._open = True
        self._imports = []
        self._blocks = []
        self._namespaces = scriptload.NamespaceTree()
        self._namespace_names = []
        self._ready = []
        self._error = []

    def __repr__(self):
        state = "open" if self._open else "closed"
        return f"UnitContext<{self.key} {state}>"

    @property
    def is_open(self):
        return self._open

    def imports(self, reference, environments=None, condition=None):
        """Declare a script this unit depends on.

        Args:
            reference: (str) Path relative to this unit's directory, absolute
                path, or URL
            environments: Environments the import applies to; others drop it
            condition: Nullary callable; the import is dropped unless truthy

        Raises:
            DeclarationOutsideContext: Context is closed
            ValueError: reference is empty or cannot be resolved
        """
        self._check_open("imports")
        if not isinstance(reference, str):
            raise TypeError(f"script reference must be a str, got {type(reference).__name__}")
        if not reference:
            raise ValueError("script reference must not be empty")
        try:
            scriptload.resolve_reference(self.directory, reference)
        except ValueError as e:
            raise ValueError(f"invalid script reference {reference!r}: {e}") from e
        allowed = scriptload.parse_environments(environments)
        if allowed is not None and self.environment not in allowed:
            return
        if condition is not None and not condition():
            return
        self._imports.append(reference)

    def code(self, body=None, *, environments=None, guard=None, constants=None):
        """Declare a code block. Usable as a decorator with or without args.

            @sl.code
            def setup(SL_GLOBAL): ...

            @sl.code(environments="foreground", guard=lambda: DEBUG)
            def debug_panel(): ...

        Args:
            body: Callable to run in the execution pass
            environments: Environments the block runs in (None for any)
            guard: Nullary callable evaluated before running the block
            constants: Names to bind; defaults to body's parameter names

        Returns:
            body unchanged, or a decorator when body is omitted
        """
        self._check_open("code")
        if body is None:
            def decorator(func):
                return self.code(func, environments=environments,
                                 guard=guard, constants=constants)
            return decorator

        if not callable(body):
            raise TypeError(f"code block must be callable, got {type(body).__name__}")
        if guard is not None and not callable(guard):
            raise TypeError("code block guard must be callable")
        if constants is None:
            constants = _parameter_names(body)
        unknown = [name for name in constants if name not in scriptload.CONSTANT_NAMES]
        if unknown:
            log.debug("%s in %s requests unknown constants %s, bound to None",
                      getattr(body, "__qualname__", body), self.key, ", ".join(unknown))
        block = CodeBlock(
            body=body,
            environments=scriptload.parse_environments(environments),
            guard=guard,
            constants=tuple(constants),
        )
        self._blocks.append(block)
        return body

    def namespace(self, dotted_name):
        """Declare a dotted namespace to exist in the shared scope.

        Raises:
            InvalidNamespaceName: Empty segment in dotted_name
        """
        self._check_open("namespace")
        self._namespaces.declare(dotted_name)
        self._namespace_names.append(dotted_name)

    def ready(self, callback):
        """Register a callback for after the whole tree has executed."""
        self._check_open("ready")
        if not callable(callback):
            raise TypeError("ready callback must be callable")
        self._ready.append(callback)
        return callback

    def error(self, callback):
        """Register a callback for a failed load, called with (key, error)."""
        self._check_open("error")
        if not callable(callback):
            raise TypeError("error callback must be callable")
        self._error.append(callback)
        return callback

    def close(self, source=""):
        """Close the context and freeze its declarations.

        Returns:
            Discovery
        """
        self._open = False
        return Discovery(
            key=self.key,
            source=source,
            imports=tuple(self._imports),
            blocks=tuple(self._blocks),
            namespaces=tuple(self._namespace_names),
            namespace_tree=self._namespaces,
            ready_callbacks=tuple(self._ready),
            error_callbacks=tuple(self._error),
        )

    def _check_open(self, operation):
        if not self._open:
            raise scriptload.DeclarationOutsideContext(
                f"sl.{operation}() called outside the loading of {self.key}")


def evaluate_unit(key, source, context):
    """Run a unit's body against its context and collect its declarations.

    The context is closed whether or not the body succeeds.

    Args:
        key: (str) Canonical key, used as the code filename
        source: (str) Unit source text
        context: UnitContext bound to the name ``sl`` in the body's globals

    Returns:
        Discovery

    Raises:
        Exception: Whatever the body raised, or SyntaxError
    """
    # Lets tracebacks and inspect show lines from sources not on disk
    linecache.cache[key] = (len(source), None, source.splitlines(True), key)
    unit_globals = {
        "__name__": "__sl_unit__",
        "__file__": key,
        "sl": context,
    }
    try:
        code = compile(source, key, "exec")
        exec(code, unit_globals)
    finally:
        discovery = context.close(source)
    return discovery


def _parameter_names(body) -> tuple[str, ...]:
    try:
        signature = inspect.signature(body)
    except (TypeError, ValueError):
        return ()
    kinds = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    return tuple(p.name for p in signature.parameters.values() if p.kind in kinds)
