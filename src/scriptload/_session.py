"""Session: one resolve-and-execute (or resolve-and-export) run.

The dependency tree is built while it is being loaded. Fetching a unit runs
its body, which is the only way to learn its imports; the new imports are
attached under it and the next unfetched unit is chosen depth-first. Only one
fetch is ever in flight. When no unfetched unit remains, code blocks run in
post-order so every dependency has run before the units that import it.
"""

__all__ = ["Session", "Phase"]

import enum
import functools
import time

import scriptload


log = scriptload.get_logger(__name__)


class Phase(enum.Enum):
    """Lifecycle of a session."""

    BEFORE_LOAD = "before-load"
    LOADING = "loading"
    AFTER_LOAD = "after-load"
    EXECUTED = "executed"
    EXPORTED = "exported"
    ERROR = "error"


class Session:
    """Load an entry script and everything it imports.

    A session is used once. Register callbacks, then call load() (or
    export(), or start() to follow the configured mode). Background sessions
    finish before load() returns; foreground sessions finish on the running
    asyncio loop and report through the callbacks.

    Args:
        entry: (str) Path or URL of the root script
        config: LoaderConfig, built from options when omitted
        reader: Callable(location) -> source, used by the default fetcher
        fetcher: Object with fetch_unit(); defaults to the fetcher matching
            the configured environment
        scope: Shared object namespaces are materialized into and that
            SL_GLOBAL refers to; defaults to scriptload.GLOBAL
        **options: LoaderConfig fields overriding config

    Attributes:
        tree: UnitTree of the session
        namespaces: NamespaceTree merged from every unit
        phase: Current Phase
        frontier: Unit the search for the next fetch starts from
        error: Error that ended the session, or None
        failed_key: Key of the unit that failed, or None
        exported: Source produced by an export, or None
        elapsed: Seconds from start to the end of the run, or None
    """

    def __init__(self, entry, config=None, *, reader=scriptload.read_file,
                 fetcher=None, scope=None, **options):
        if config is None:
            config = scriptload.LoaderConfig(**options)
        elif options:
            config = config.with_changes(**options)
        if config.log_level is not None:
            scriptload.get_logger(level=config.log_level)

        self.config = config
        self.environment = config.environment
        self.mode = config.mode
        self.cache_bust = config.cache_bust
        self.entry_key = scriptload.canonical_key(entry)
        self.fetcher = fetcher or scriptload.make_fetcher(self.environment, reader)
        self.scope = scriptload.GLOBAL if scope is None else scope

        self.tree = scriptload.UnitTree()
        self.namespaces = scriptload.NamespaceTree()
        self.frontier = None
        self.phase = Phase.BEFORE_LOAD
        self.error = None
        self.failed_key = None
        self.exported = None
        self.elapsed = None

        self._ready = []
        self._error = []
        self._context = None
        self._started = None
        # Fetches that complete before fetch_unit returns are handed back
        # through here instead of recursing into the next fetch
        self._inline = False
        self._inline_result = None

    def __repr__(self):
        return f"Session<{self.entry_key} {self.phase.value}>"

    @property
    def root(self):
        """(Unit | None) Unit for the entry script."""
        return self.tree.root

    @property
    def units(self):
        """(tuple[Unit]) Every unit, in discovery order."""
        return tuple(self.tree)

    @property
    def context(self):
        """(UnitContext | None) Context of the unit currently being loaded."""
        return self._context

    @property
    def done(self):
        """(bool) Whether the session reached a terminal phase."""
        return self.phase in (Phase.EXECUTED, Phase.EXPORTED, Phase.ERROR)

    def get(self, key):
        """(Unit | None) Unit for a key, canonicalized first."""
        return self.tree.get(scriptload.canonical_key(key))

    # Callbacks

    def on_ready(self, callback):
        """Call callback() once the tree has executed or been exported.

        Called immediately when the session already finished successfully.
        Never called for a failed session.
        """
        if not callable(callback):
            raise TypeError("ready callback must be callable")
        if self.phase in (Phase.EXECUTED, Phase.EXPORTED):
            callback()
        elif self.phase is not Phase.ERROR:
            self._ready.append(callback)
        return callback

    def on_error(self, callback):
        """Call callback(key, error) if the session fails.

        Called immediately when the session already failed.
        """
        if not callable(callback):
            raise TypeError("error callback must be callable")
        if self.phase is Phase.ERROR:
            callback(self.failed_key, self.error)
        else:
            self._error.append(callback)
        return callback

    # Declarations against the unit currently loading

    def declare_import(self, reference, **options):
        """Declare an import for the unit currently loading."""
        return self._require_context().imports(reference, **options)

    def declare_code_block(self, body, **options):
        """Declare a code block for the unit currently loading."""
        return self._require_context().code(body, **options)

    def declare_namespace(self, dotted_name):
        """Declare a namespace for the unit currently loading."""
        return self._require_context().namespace(dotted_name)

    # Running

    def start(self):
        """Begin loading in the configured mode."""
        if self.mode is scriptload.Mode.EXPORT:
            return self.export()
        return self.load()

    def load(self):
        """Begin loading the tree and execute it once resolved."""
        self._begin(scriptload.Mode.RUN)
        return self

    def export(self):
        """Begin loading the tree and export it once resolved."""
        self._begin(scriptload.Mode.EXPORT)
        return self

    def raise_for_error(self):
        """Raise the error that ended the session, if any."""
        if self.error is not None:
            raise self.error

    def _begin(self, mode):
        if self.phase is not Phase.BEFORE_LOAD:
            raise scriptload.LoaderError(f"session for {self.entry_key} already started")
        self.mode = mode
        self._started = time.perf_counter()
        self.phase = Phase.LOADING
        log.debug("%s %s (%s)", "loading" if mode is scriptload.Mode.RUN else "exporting",
                  self.entry_key, self.environment.value)

        root = self.tree.create(self.entry_key)
        self.frontier = root
        self._run(root)

    def _run(self, unit):
        """Fetch unit, continuing with the next unit while fetches finish inline."""
        while unit is not None:
            discovery = self._fetch(unit)
            if discovery is None:
                return
            unit = self._settle(unit, discovery)

    def _fetch(self, unit):
        """Start fetching unit.

        Returns:
            Discovery when the fetch completed before returning, else None
        """
        unit.state = scriptload.UnitState.FETCHING
        location = unit.key
        if self.cache_bust:
            location = scriptload.add_cache_token(location, time.time_ns())
        context = scriptload.UnitContext(unit.key, self.environment)
        self._context = context
        request = scriptload.FetchRequest(unit.key, location, context)
        log.debug("fetching %s", location)

        self._inline = True
        try:
            self.fetcher.fetch_unit(
                request,
                functools.partial(self._on_success, unit),
                functools.partial(self._on_failure, unit),
            )
        finally:
            self._inline = False
        result, self._inline_result = self._inline_result, None
        return result

    def _on_success(self, unit, discovery):
        self._context = None
        if self.phase is not Phase.LOADING:
            return
        log.debug("loaded %s", unit.key)
        if self._inline:
            self._inline_result = discovery
            return
        self._run(self._settle(unit, discovery))

    def _on_failure(self, unit, key, error):
        self._context = None
        if self.phase is not Phase.LOADING:
            return
        self._abort(key, error)

    def _abort(self, key, error):
        failure = scriptload.FetchFailure(key, error)
        failure.__cause__ = error
        self.tree.clear()
        self.frontier = None
        self._fail(key, failure)

    def _settle(self, unit, discovery):
        """Attach a loaded unit, failing the session if that raises.

        Returns:
            Unit to fetch next, or None
        """
        try:
            return self._attach(unit, discovery)
        except Exception as e:
            if self.done:
                raise
            self._abort(unit.key, e)
            return None

    def _attach(self, unit, discovery):
        """Attach a loaded unit's imports and pick the next unit to fetch.

        Returns:
            Unit to fetch next, or None once the tree is resolved
        """
        seen = set()
        for reference in discovery.imports:
            key = scriptload.resolve_reference(unit.directory, reference)
            # First occurrence within one unit wins
            if key in seen:
                continue
            seen.add(key)

            child = self.tree.get(key)
            if child is None:
                self.tree.create(key, parent=unit)
            elif child.is_loaded:
                # Already satisfied elsewhere; moving it would run it twice
                continue
            else:
                log.debug("moving %s under %s", key, unit.key)
                self.tree.attach(child, unit)

        unit.apply(discovery)
        self.namespaces.merge(discovery.namespace_tree)
        self._ready.extend(discovery.ready_callbacks)
        self._error.extend(discovery.error_callbacks)

        unit.state = scriptload.UnitState.LOADED
        self.frontier = unit
        return self._advance()

    def _advance(self):
        unit, frontier = self.tree.next_pending(self.frontier)
        if unit is not None:
            self.frontier = frontier
            return unit
        self.frontier = None
        self.phase = Phase.AFTER_LOAD
        log.debug("resolved %d units from %s", len(self.tree), self.entry_key)
        self._complete()
        return None

    def _complete(self):
        if self.mode is scriptload.Mode.EXPORT:
            try:
                self.exported = scriptload.export_tree(
                    self.tree, self.namespaces, self.environment)
            except scriptload.ExportError as e:
                self._fail(self.entry_key, e)
                return
            self.phase = Phase.EXPORTED
        else:
            if not self._execute():
                return
            self.phase = Phase.EXECUTED

        self.elapsed = time.perf_counter() - self._started
        log.debug("%s %s in %.3fs", self.phase.value, self.entry_key, self.elapsed)
        callbacks, self._ready = self._ready, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                log.exception("ready callback %r for %s failed", callback, self.entry_key)

    def _execute(self):
        """Run every code block in post-order.

        Returns:
            (bool) False when a block failed and the session is in ERROR
        """
        try:
            self.namespaces.materialize(self.scope)
        except (AttributeError, TypeError) as e:
            error = scriptload.LoaderError(f"cannot create namespaces in scope: {e}")
            error.__cause__ = e
            self._fail(self.entry_key, error)
            return False

        for unit in self.tree.walk_postorder():
            for block in unit.blocks:
                if not block.runs_in(self.environment):
                    continue
                if block.guard is not None and not self._check_guard(unit, block):
                    continue
                values = scriptload.bind_constants(
                    unit, block.constants, self.environment, self.scope)
                try:
                    block.body(**values)
                except Exception as e:
                    failure = scriptload.BlockExecutionFailure(unit.key, block, e)
                    failure.__cause__ = e
                    self._fail(unit.key, failure)
                    return False
            unit.state = scriptload.UnitState.EXECUTED
        return True

    def _check_guard(self, unit, block):
        try:
            return bool(block.guard())
        except Exception as e:
            log.warning("%s", scriptload.GuardEvaluationFailure(unit.key, block, e))
            return False

    def _fail(self, key, error):
        self.phase = Phase.ERROR
        self.failed_key = key
        self.error = error
        if self._started is not None:
            self.elapsed = time.perf_counter() - self._started
        log.error("%s", error)
        callbacks, self._error = self._error, []
        self._ready = []
        for callback in callbacks:
            callback(key, error)

    def _require_context(self):
        if self._context is None or not self._context.is_open:
            raise scriptload.DeclarationOutsideContext(
                "no script is currently loading in this session")
        return self._context
