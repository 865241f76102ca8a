"""Tests for exporting a tree as one script."""

import pytest

import scriptload
import loadtest
from loadtest import script


SHARED_TREE = {
    "/app/main.py": script("main", "a.py", "b.py"),
    "/app/a.py": script("a", "shared.py"),
    "/app/b.py": script("b", "shared.py"),
    "/app/shared.py": script("shared"),
}


def test_export_orders_dependencies_first():
    session = loadtest.make_session(SHARED_TREE)[0].export()
    code = session.exported

    assert session.phase is scriptload.Phase.EXPORTED
    assert code.count("SL_GLOBAL.log.append('shared')") == 1
    positions = [code.index(f"SL_GLOBAL.log.append({name!r})")
                 for name in ("shared", "a", "b", "main")]
    assert positions == sorted(positions)
    assert "@sl.code" not in code
    assert "sl.imports" not in code


def test_export_does_not_execute():
    session = loadtest.make_session(SHARED_TREE)[0].export()
    assert session.scope.log == []
    assert all(unit.state is scriptload.UnitState.LOADED for unit in session.units)


def test_exported_code_runs():
    """The exported source rebuilds namespaces and runs every block."""
    code = scriptload.export("/app/main.py", reader=loadtest.reader({
        "/app/main.py": """
            sl.imports("lib/models.py")
            sl.namespace("app.views")

            @sl.code
            def views(SL_GLOBAL, SL_BACKGROUND):
                SL_GLOBAL.app.views.ready = SL_BACKGROUND
                SL_GLOBAL.app.order.append("views")
        """,
        "/app/lib/models.py": """
            sl.namespace("app.models")

            @sl.code(guard=lambda: False)
            def models(SL_GLOBAL, SL_DIRECTORY, SL_ENVIRONMENT, UNKNOWN):
                SL_GLOBAL.app.order = ["models"]
                SL_GLOBAL.app.models.where = (SL_DIRECTORY, SL_ENVIRONMENT, UNKNOWN)

            @sl.code(environments="foreground")
            def foreground_only(SL_GLOBAL):
                SL_GLOBAL.app.order.append("foreground")
        """,
    }))

    namespace = {}
    exec(compile(code, "<export>", "exec"), namespace)
    app = namespace["SL_GLOBAL"].app
    assert namespace["app"] is app
    assert app.order == ["models", "views"]
    assert app.models.where == ("/app/lib/", "background", None)
    assert app.views.ready is True
    assert "foreground_only" not in code


def test_export_for_foreground():
    sources = {
        "/app/main.py": """
            @sl.code(environments="foreground")
            def fg(SL_FOREGROUND):
                pass

            @sl.code(environments="background")
            def bg():
                pass
        """,
    }
    # Resolve with a blocking fetcher while targeting the foreground
    session, _ = loadtest.make_session(
        sources, environment="foreground",
        fetcher=scriptload.BlockingFetcher(loadtest.reader(sources)))
    session.export()

    assert "SL_ENVIRONMENT = 'foreground'" in session.exported
    assert "fg(SL_FOREGROUND=True)" in session.exported
    assert "def bg" not in session.exported


def test_lambda_block_cannot_export():
    with pytest.raises(scriptload.ExportError):
        scriptload.export("/app/main.py", reader=loadtest.reader({
            "/app/main.py": "sl.code(lambda: None)\n",
        }))


def test_block_source_strips_decorators():
    session = loadtest.load({
        "/app/main.py": """
            def keep(func):
                return func

            @sl.code(guard=lambda: True)
            @keep
            def decorated():
                return 1

            @sl.code
            def plain():
                value = 1
                return value

            def original():
                pass

            original.__name__ = "renamed"
            sl.code(original)
        """,
    })
    unit = session.root
    decorated, plain, renamed = unit.blocks

    assert session.phase is scriptload.Phase.EXECUTED
    assert scriptload.block_source(unit, decorated) == "def decorated():\n    return 1"
    assert scriptload.block_source(unit, plain) == (
        "def plain():\n    value = 1\n    return value")
    with pytest.raises(scriptload.ExportError):
        scriptload.block_source(unit, renamed)
