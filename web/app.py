from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

import typer
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from rich.logging import RichHandler

from builder.pipeline import SiteBuilder
from sitebuild import BuildConfig, load_config
from sitebuild.paths import ensure_dir
from watcher.service import SiteWatcher

logger = logging.getLogger("sitebuild.web")

LIVERELOAD_PATH = "/__livereload"
SHUTDOWN_GRACE_SECONDS = 1
LIVERELOAD_SNIPPET = (
    "<script>(function(){"
    f"var source=new EventSource('{LIVERELOAD_PATH}');"
    "source.addEventListener('reload',function(){window.location.reload();});"
    "})();</script>"
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


class ReloadNotifier:
    """Version counter bumped from the watcher thread, read by the event stream."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._version = 0

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def bump(self, transforms: Sequence[str] = ()) -> int:
        with self._lock:
            self._version += 1
            version = self._version
        logger.debug("Reload #%s after %s", version, ", ".join(transforms) or "rebuild")
        return version


async def reload_events(
    notifier: ReloadNotifier,
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_interval: float = 0.25,
) -> AsyncIterator[str]:
    """Server-sent events: one hello frame, then a reload frame per notifier bump."""

    seen = notifier.version
    yield f"event: hello\ndata: {seen}\n\n"
    while not await is_disconnected():
        current = notifier.version
        if current != seen:
            seen = current
            yield f"event: reload\ndata: {current}\n\n"
        await asyncio.sleep(poll_interval)


class WebState:
    def __init__(self, config: BuildConfig, notifier: Optional[ReloadNotifier] = None) -> None:
        self.config = config
        self.paths = config.paths()
        self.notifier = notifier or ReloadNotifier()


def create_app(state: WebState, poll_interval: float = 0.25) -> FastAPI:
    fastapi_app = FastAPI(title="sitebuild dev server")

    @fastapi_app.get(LIVERELOAD_PATH)
    async def livereload(request: Request) -> StreamingResponse:
        return StreamingResponse(
            reload_events(state.notifier, request.is_disconnected, poll_interval),
            media_type="text/event-stream",
        )

    @fastapi_app.get(f"{LIVERELOAD_PATH}/version")
    async def livereload_version() -> JSONResponse:
        return JSONResponse({"version": state.notifier.version})

    public_root = ensure_dir(state.paths.pub_root)
    fastapi_app.mount("/", StaticFiles(directory=str(public_root), html=True), name="public")
    return fastapi_app


def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
    host: Optional[str] = typer.Option(None, "--host", "-h"),
    port: Optional[int] = typer.Option(None, "--port", "-p"),
    watch: bool = typer.Option(True, "--watch/--no-watch", help="Rebuild and reload on source changes."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Clean, build, then serve the public root while watching the sources."""

    _setup_logging(verbose)
    cfg = load_config(config_path)
    if host:
        cfg.web.host = host
    if port:
        cfg.web.port = port
    state = WebState(cfg)
    livereload = watch and cfg.web.livereload
    builder = SiteBuilder(cfg, inject_html=LIVERELOAD_SNIPPET if livereload else None)
    builder.clean()
    builder.build()
    site_watcher: Optional[SiteWatcher] = None
    if watch:
        site_watcher = SiteWatcher(builder, on_rebuilt=state.notifier.bump)
        site_watcher.start()
    try:
        uvicorn.run(
            create_app(state),
            host=cfg.web.host,
            port=cfg.web.port,
            timeout_graceful_shutdown=SHUTDOWN_GRACE_SECONDS,
        )
    finally:
        if site_watcher is not None:
            site_watcher.stop()


def cli() -> None:
    typer.run(serve)


if __name__ == "__main__":
    cli()
