"""Convenience entry points wrapping a Session."""

__all__ = ["run", "run_async", "export"]

import asyncio

import scriptload


def run(entry, config=None, **options):
    """Load and execute a script tree in the calling thread.

    Args:
        entry: (str) Path or URL of the root script
        config: Optional LoaderConfig
        **options: Session keyword arguments (reader, fetcher, scope) and
            LoaderConfig fields

    Returns:
        Session, finished

    Raises:
        LoaderError: The session failed (FetchFailure, BlockExecutionFailure)
            or is configured for the foreground environment
    """
    session = scriptload.Session(entry, config, **options)
    if session.environment is scriptload.Environment.FOREGROUND and "fetcher" not in options:
        raise scriptload.LoaderError(
            "foreground sessions run on an event loop, use run_async()")
    session.start()
    session.raise_for_error()
    if not session.done:
        raise scriptload.LoaderError(
            f"fetcher for {session.entry_key} did not complete synchronously")
    return session


async def run_async(entry, config=None, **options):
    """Load and execute a script tree on the running event loop.

    Defaults to the foreground environment.

    Returns:
        Session, finished

    Raises:
        LoaderError: The session failed
    """
    if config is None and "environment" not in options:
        options["environment"] = scriptload.Environment.FOREGROUND
    session = scriptload.Session(entry, config, **options)

    finished = asyncio.get_running_loop().create_future()

    def settle(*args):
        if not finished.done():
            finished.set_result(None)

    session.on_ready(settle)
    session.on_error(settle)
    session.start()
    await finished
    session.raise_for_error()
    return session


def export(entry, config=None, **options):
    """Resolve a script tree and return it as one Python source text.

    Returns:
        (str) Exported source

    Raises:
        LoaderError: The session failed, including ExportError
    """
    options["mode"] = scriptload.Mode.EXPORT
    return run(entry, config, **options).exported
