"""Command-line interface for scriptload.

Usage:
    scriptload run <entry.py>                 # Load and execute a script tree
    scriptload export <entry.py> [-o FILE]    # Write the tree as one script
    scriptload dep <entry.py> [--plain]       # Show the resolved dependency tree
"""

import argparse
import asyncio
import sys
from pathlib import Path

import scriptload


def run_entry(entry, config):
    """Load and execute entry, in the foreground loop or blocking."""
    if config.environment is scriptload.Environment.FOREGROUND:
        return asyncio.run(scriptload.run_async(entry, config))
    return scriptload.run(entry, config)


def export_entry(entry, config, output=None):
    """Export entry to output path, or stdout."""
    code = scriptload.export(entry, config)
    if output is None:
        sys.stdout.write(code)
    else:
        Path(output).write_text(code, encoding="utf-8")
    return code


def resolve_tree(entry, config):
    """Resolve entry without executing any code block.

    The tree is resolved through an export with blocking fetches, keeping
    the configured environment for import filters. A block that cannot be
    exported does not prevent showing the tree.

    Returns:
        Session with its tree intact
    """
    session = scriptload.Session(
        entry, config.with_changes(mode=scriptload.Mode.EXPORT),
        fetcher=scriptload.BlockingFetcher())
    session.start()
    if not isinstance(session.error, scriptload.ExportError):
        session.raise_for_error()
    return session


def _label(unit, base):
    name = scriptload.relative_path(base, unit.key)
    count = len(unit.blocks)
    if count:
        return f"{name} ({count} block{'s' if count != 1 else ''})"
    return name


def show_rich_tree(session, console=None):
    """Print the dependency tree with rich."""
    import rich.console
    import rich.tree

    base = session.root.directory

    def grow(branch, unit):
        for child in unit.children:
            grow(branch.add(_label(child, base)), child)

    tree = rich.tree.Tree(_label(session.root, base), guide_style="dim")
    grow(tree, session.root)
    console = console or rich.console.Console()
    console.print(tree)


def show_plain_tree(session, out=None):
    """Print the dependency tree with ASCII connectors."""
    out = out or sys.stdout
    base = session.root.directory

    def display(unit, prefix):
        children = unit.children
        for i, child in enumerate(children):
            is_last = i == len(children) - 1
            connector = "`-- " if is_last else "|-- "
            print(f"{prefix}{connector}{_label(child, base)}", file=out)
            display(child, prefix + ("    " if is_last else "|   "))

    print(_label(session.root, base), file=out)
    display(session.root, "")
    if not session.root.children:
        print("  (no dependencies)", file=out)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="scriptload",
        description="Dependency-resolving script loader")
    parser.add_argument("command", choices=["run", "export", "dep"],
        help="run: execute the tree, export: write it as one script, dep: show it")
    parser.add_argument("entry",
        help="Root script to load")
    parser.add_argument("-o", "--output",
        help="File to write the export to (default stdout)")
    parser.add_argument("--foreground", action="store_true",
        help="Run on an asyncio event loop instead of blocking")
    parser.add_argument("--environment", choices=["foreground", "background"],
        help="Environment to run or export for")
    parser.add_argument("--cache-bust", action="store_true",
        help="Add a uniqueness token to every fetched location")
    parser.add_argument("--plain", action="store_true",
        help="Show the dependency tree without rich formatting")
    parser.add_argument("-v", "--verbose", action="store_true",
        help="Log loader progress to stderr")
    args = parser.parse_args(argv)

    environment = args.environment
    if args.foreground:
        environment = "foreground"

    try:
        config = scriptload.LoaderConfig.from_env(
            environment=environment,
            cache_bust=args.cache_bust or None,
            log_level="DEBUG" if args.verbose else None,
        )
    except scriptload.ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if config.log_level is not None:
        scriptload.get_logger(level=config.log_level)

    entry = Path(args.entry)
    if not scriptload.is_url(args.entry) and not entry.exists():
        print(f"Error: File not found: {entry}", file=sys.stderr)
        return 1

    try:
        if args.command == "run":
            run_entry(args.entry, config)
        elif args.command == "export":
            export_entry(args.entry, config, args.output)
        else:
            session = resolve_tree(args.entry, config)
            if args.plain:
                show_plain_tree(session)
            else:
                show_rich_tree(session)
    except scriptload.FetchFailure as e:
        print(f"Error loading {e.key}:", file=sys.stderr)
        print(f"  {type(e.cause).__name__}: {e.cause}", file=sys.stderr)
        return 1
    except scriptload.LoaderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
