"""Fetching unit sources and running their bodies.

A fetcher implements one operation:

    fetch_unit(request, on_success, on_failure)

It reads the source at ``request.location``, runs the body against
``request.context`` and then calls ``on_success(discovery)``. When reading
or running fails it calls ``on_failure(key, error)`` instead. Exactly one of
the two is called, once.

BlockingFetcher finishes before fetch_unit returns (background sessions).
AsyncFetcher schedules the work on the running asyncio loop and reports
completion later (foreground sessions).
"""

__all__ = [
    "FetchRequest",
    "BlockingFetcher",
    "AsyncFetcher",
    "MemoryReader",
    "read_file",
    "make_fetcher",
]

import asyncio
import inspect
import urllib.parse
from dataclasses import dataclass

import scriptload


# Maximum source size (10MB - sanity check)
MAX_SOURCE_SIZE = 10 * 1024 * 1024


@dataclass(frozen=True)
class FetchRequest:
    """One unit to fetch.

    Attributes:
        key: Canonical key of the unit, used for reporting
        location: Address to read, possibly carrying a cache-busting token
        context: UnitContext the body declares against
    """

    key: str
    location: str
    context: "scriptload.UnitContext"


def read_file(location):
    """Read a unit source from the filesystem.

    Args:
        location: (str) File path or ``file://`` URL, cache token allowed

    Returns:
        (str) Source text

    Raises:
        FileNotFoundError: No such file
        ValueError: File larger than MAX_SOURCE_SIZE
        NotImplementedError: Remote URL schemes
    """
    location = scriptload.strip_cache_token(location)
    if scriptload.is_url(location):
        parts = urllib.parse.urlsplit(location)
        if parts.scheme != "file":
            raise NotImplementedError(
                f"Remote scripts not supported by the file reader: {location}\n"
                f"Pass a reader that can fetch {parts.scheme}:// locations.")
        location = urllib.parse.unquote(parts.path)

    with open(location, "r", encoding="utf-8") as stream:
        content = stream.read(MAX_SOURCE_SIZE + 1)
    if len(content) > MAX_SOURCE_SIZE:
        raise ValueError(f"Script too large: {location} (max {MAX_SOURCE_SIZE} characters)")
    return content


class MemoryReader:
    """Reader serving sources from a mapping of location to text.

    Locations are canonicalized, so relative names resolve against the
    working directory the same way keys do. Useful for tests and for
    embedding scripts that do not live on disk.

    Args:
        sources: Mapping of location to source text
    """

    def __init__(self, sources=None):
        self.sources = {}
        self.reads = []
        for location, text in (sources or {}).items():
            self.add(location, text)

    def add(self, location, text):
        self.sources[scriptload.canonical_key(location)] = text

    def __call__(self, location):
        self.reads.append(location)
        key = scriptload.canonical_key(scriptload.strip_cache_token(location))
        try:
            return self.sources[key]
        except KeyError:
            raise FileNotFoundError(f"No script at {key}") from None


class BlockingFetcher:
    """Fetch that reads and runs the unit before returning.

    Args:
        reader: Callable(location) -> source text
    """

    def __init__(self, reader=read_file):
        self.reader = reader

    def fetch_unit(self, request, on_success, on_failure):
        try:
            source = self.reader(request.location)
            discovery = scriptload.evaluate_unit(request.key, source, request.context)
        except Exception as e:
            on_failure(request.key, e)
            return
        on_success(discovery)


class AsyncFetcher:
    """Fetch scheduled on an asyncio event loop.

    Plain readers run in the loop's default executor; coroutine readers are
    awaited. The unit body always runs on the loop thread. Needs a running
    loop when fetch_unit is called unless one is given.

    Args:
        reader: Callable(location) -> source text, or a coroutine function
        loop: Event loop to use; defaults to the running loop
    """

    def __init__(self, reader=read_file, loop=None):
        self.reader = reader
        self.loop = loop
        self._tasks = set()

    def fetch_unit(self, request, on_success, on_failure):
        loop = self.loop or asyncio.get_running_loop()
        task = loop.create_task(self._fetch(loop, request, on_success, on_failure))
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch(self, loop, request, on_success, on_failure):
        try:
            if inspect.iscoroutinefunction(self.reader):
                source = await self.reader(request.location)
            else:
                source = await loop.run_in_executor(None, self.reader, request.location)
            discovery = scriptload.evaluate_unit(request.key, source, request.context)
        except Exception as e:
            on_failure(request.key, e)
            return
        on_success(discovery)


def make_fetcher(environment, reader=read_file):
    """Fetcher for the given environment.

    Args:
        environment: (Environment) FOREGROUND selects AsyncFetcher,
            BACKGROUND selects BlockingFetcher
        reader: Source reader handed to the fetcher
    """
    if environment is scriptload.Environment.FOREGROUND:
        return AsyncFetcher(reader)
    return BlockingFetcher(reader)
