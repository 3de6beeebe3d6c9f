"""Profiling endpoints under ``/debug/profiling``.

    GET /debug/profiling/            index of the endpoints below
    GET /debug/profiling/cmdline     the process command line
    GET /debug/profiling/profile     cProfile of the event loop thread (?seconds=N, default 30)
    GET /debug/profiling/threads     stack of every thread
    GET /debug/profiling/tasks       asyncio tasks with their stacks
    GET /debug/profiling/heap        top allocations (tracemalloc)

All endpoints answer ``text/plain``. ``/heap`` starts tracemalloc on
first use; allocations made before that are not attributed.
"""

import asyncio
import cProfile
import io
import logging
import pstats
import sys
import threading
import traceback
import tracemalloc

import anyio

from warble.app import App
from warble.config import ProfilingSettings
from warble.http.request import Request
from warble.http.response import Response, new_text_response, with_status_code
from warble.routing.router import Router
from warble.server.engine import Engine

logger = logging.getLogger("warble.profiling")

BASE_PATH = "/debug/profiling"

DEFAULT_PROFILE_SECONDS = 30.0
MAX_PROFILE_SECONDS = 600.0
TOP_ENTRIES = 50

_ENDPOINTS = {
    "cmdline": "the command line of this process",
    "profile": "CPU profile of the event loop thread; ?seconds=N",
    "threads": "stack traces of all threads",
    "tasks": "stack traces of all asyncio tasks",
    "heap": "top allocations by line (tracemalloc)",
}


def index(request: Request) -> Response:
    lines = [f"{BASE_PATH}/{name}: {description}" for name, description in _ENDPOINTS.items()]
    return new_text_response("\n".join(lines) + "\n")


def cmdline(request: Request) -> Response:
    return new_text_response("\x00".join(sys.argv))


async def profile(request: Request) -> Response:
    raw = request.query.get("seconds") or str(DEFAULT_PROFILE_SECONDS)
    try:
        seconds = float(raw)
    except ValueError:
        return new_text_response(f"invalid seconds: {raw!r}", with_status_code(400))
    if not 0 < seconds <= MAX_PROFILE_SECONDS:
        return new_text_response(f"seconds must be in (0, {MAX_PROFILE_SECONDS:g}]", with_status_code(400))

    profiler = cProfile.Profile()
    try:
        profiler.enable()
    except ValueError as exc:
        # Another profiler is already active on this thread
        return new_text_response(f"profiling unavailable: {exc}", with_status_code(409))
    try:
        await anyio.sleep(seconds)
    finally:
        profiler.disable()

    out = io.StringIO()
    pstats.Stats(profiler, stream=out).sort_stats(pstats.SortKey.CUMULATIVE).print_stats(TOP_ENTRIES)
    return new_text_response(out.getvalue())


def threads(request: Request) -> Response:
    names = {thread.ident: thread.name for thread in threading.enumerate()}
    out = io.StringIO()
    for ident, frame in sys._current_frames().items():
        out.write(f"thread {names.get(ident, '?')} ({ident}):\n")
        out.write("".join(traceback.format_stack(frame)))
        out.write("\n")
    return new_text_response(out.getvalue())


def tasks(request: Request) -> Response:
    try:
        running = asyncio.all_tasks()
    except RuntimeError:
        running = set()
    out = io.StringIO()
    out.write(f"{len(running)} task(s)\n\n")
    for task in sorted(running, key=lambda t: t.get_name()):
        out.write(f"task {task.get_name()}: {task.get_coro()!r}\n")
        task.print_stack(file=out)
        out.write("\n")
    return new_text_response(out.getvalue())


def heap(request: Request) -> Response:
    if not tracemalloc.is_tracing():
        tracemalloc.start()
        logger.info("started tracemalloc")
        return new_text_response("tracemalloc started; request again to see allocations\n")

    snapshot = tracemalloc.take_snapshot()
    stats = snapshot.statistics("lineno")
    current, peak = tracemalloc.get_traced_memory()
    lines = [f"traced: {current} bytes, peak: {peak} bytes", ""]
    lines.extend(str(stat) for stat in stats[:TOP_ENTRIES])
    return new_text_response("\n".join(lines) + "\n")


def add_profiling_endpoints(router: Router) -> Router:
    """Register the profiling endpoints on a ``/debug/profiling`` group of *router*."""
    group = router.group(BASE_PATH)
    group.get("/", index)
    group.get("/cmdline", cmdline)
    group.get("/profile", profile)
    group.get("/threads", threads)
    group.get("/tasks", tasks)
    group.get("/heap", heap)
    return group


class ProfilingServer(Engine):
    """Serves the profiling endpoints on their own port."""

    label = "profiling api server"

    def __init__(self, settings: ProfilingSettings, *, host: str = "0.0.0.0") -> None:
        app = App("profiling")
        add_profiling_endpoints(app.router)
        app.freeze()
        super().__init__(app, host=host, port=settings.port, logger=logger)
        self.settings = settings
