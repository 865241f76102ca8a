"""Tests for unit contexts and evaluating unit bodies."""

import logging
import textwrap

import pytest

import scriptload


BACKGROUND = scriptload.Environment.BACKGROUND
FOREGROUND = scriptload.Environment.FOREGROUND


def evaluate(source, key="/app/unit.py", environment=BACKGROUND):
    context = scriptload.UnitContext(key, environment)
    return scriptload.evaluate_unit(key, textwrap.dedent(source), context)


def test_declarations_collected():
    discovery = evaluate("""
        sl.imports("a.py")
        sl.imports("lib/b.py")
        sl.namespace("app.models")

        @sl.code
        def setup(SL_GLOBAL, SL_DIRECTORY):
            pass

        sl.ready(print)
        sl.error(print)
    """)

    assert discovery.key == "/app/unit.py"
    assert discovery.imports == ("a.py", "lib/b.py")
    assert discovery.namespaces == ("app.models",)
    assert len(discovery.blocks) == 1
    block = discovery.blocks[0]
    assert block.name == "setup"
    assert block.constants == ("SL_GLOBAL", "SL_DIRECTORY")
    assert block.environments is None
    assert discovery.ready_callbacks == (print,)
    assert discovery.error_callbacks == (print,)
    assert "sl.imports" in discovery.source


def test_code_decorator_forms():
    """sl.code works bare, with options, and as a plain call."""
    discovery = evaluate("""
        @sl.code
        def bare():
            pass

        @sl.code(environments="foreground", constants=["SL_GLOBAL"])
        def configured(**values):
            pass

        def called():
            pass

        result = sl.code(called)
        assert result is called
        assert bare.__name__ == "bare"
    """)

    names = [block.name for block in discovery.blocks]
    assert names == ["bare", "configured", "called"]
    configured = discovery.blocks[1]
    assert configured.environments == frozenset([FOREGROUND])
    assert configured.constants == ("SL_GLOBAL",)
    assert configured.runs_in(FOREGROUND)
    assert not configured.runs_in(BACKGROUND)


def test_import_filters_applied_when_declared():
    discovery = evaluate("""
        sl.imports("fg.py", environments="foreground")
        sl.imports("both.py", environments=["foreground", "background"])
        sl.imports("no.py", condition=lambda: False)
        sl.imports("yes.py", condition=lambda: 1)
    """)
    assert discovery.imports == ("both.py", "yes.py")

    discovery = evaluate('sl.imports("fg.py", environments="foreground")\n',
                         environment=FOREGROUND)
    assert discovery.imports == ("fg.py",)


@pytest.mark.parametrize("source,error", [
    ("sl.imports(42)\n", TypeError),
    ("sl.imports('')\n", ValueError),
    ("sl.code(42)\n", TypeError),
    ("sl.code(print, guard=True)\n", TypeError),
    ("sl.namespace('a..b')\n", scriptload.InvalidNamespaceName),
    ("sl.imports('a.py', environments='sideways')\n", ValueError),
    ("sl.ready(None)\n", TypeError),
])
def test_invalid_declarations(source, error):
    with pytest.raises(error):
        evaluate(source)


def test_context_closed_after_body():
    context = scriptload.UnitContext("/app/unit.py", BACKGROUND)
    scriptload.evaluate_unit("/app/unit.py", "x = 1\n", context)

    assert not context.is_open
    with pytest.raises(scriptload.DeclarationOutsideContext):
        context.imports("late.py")
    with pytest.raises(scriptload.DeclarationOutsideContext):
        context.code(print)
    with pytest.raises(scriptload.DeclarationOutsideContext):
        context.namespace("late")


def test_context_closed_when_body_raises():
    context = scriptload.UnitContext("/app/unit.py", BACKGROUND)
    with pytest.raises(RuntimeError):
        scriptload.evaluate_unit("/app/unit.py", "raise RuntimeError('x')\n", context)
    assert not context.is_open


def test_unit_globals():
    """The body sees its own key and the ``sl`` context, nothing else shared."""
    discovery = evaluate("""
        assert __file__ == "/app/unit.py"
        assert sl.key == "/app/unit.py"
        assert sl.directory == "/app/"

        @sl.code
        def check():
            return __name__
    """)
    assert discovery.blocks[0].body() == "__sl_unit__"


def test_unit_defaults():
    tree = scriptload.UnitTree()
    unit = tree.create("/app/lib/util.py")
    assert unit.state is scriptload.UnitState.PENDING
    assert unit.directory == "/app/lib/"
    assert not unit.is_loaded
    unit.state = scriptload.UnitState.FETCHING
    assert unit.is_loaded
    assert unit.blocks == ()


def test_unresolvable_reference_rejected():
    with pytest.raises(ValueError, match="invalid script reference"):
        evaluate('sl.imports("http://[bad-host/x.py")\n')


def test_discovery_carries_namespace_tree():
    discovery = evaluate("""
        sl.namespace("app.models")
        sl.namespace("app.views")
    """)
    assert discovery.namespace_tree.to_dict() == {"app": {"models": {}, "views": {}}}


def test_unknown_constants_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="scriptload"):
        evaluate("""
            @sl.code
            def block(SL_GLOBAL, SETTINGS):
                pass
        """)
    messages = [r.getMessage() for r in caplog.records]
    assert any("SETTINGS" in m and "SL_GLOBAL" not in m for m in messages)
