from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import typer
from rich.logging import RichHandler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from builder.pipeline import BuildReport, SiteBuilder
from sitebuild import load_config

logger = logging.getLogger("sitebuild.watcher")
app = typer.Typer(help="Rebuild the site whenever a source file changes.")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


class SiteWatcher:
    def __init__(
        self,
        builder: SiteBuilder,
        on_rebuilt: Optional[Callable[[Sequence[str]], None]] = None,
    ) -> None:
        self.builder = builder
        self.on_rebuilt = on_rebuilt
        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None

    def handle_change(self, path: Path) -> Optional[BuildReport]:
        names = self.builder.transforms_for(path)
        if not names:
            return None
        logger.info("%s changed; rerunning %s", path.name, ", ".join(names))
        with self._lock:
            try:
                report = self.builder.run_transforms(names)
            except Exception as exc:  # noqa: BLE001
                logger.error("Rebuild after %s failed: %s", path.name, exc)
                return None
        if self.on_rebuilt is not None:
            self.on_rebuilt(names)
        return report

    def start(self) -> None:
        src_root = self.builder.paths.src_root
        if not src_root.exists():
            raise FileNotFoundError(f"Source directory not found: {src_root}")
        observer = Observer()
        observer.schedule(_SourceEventHandler(self), str(src_root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s", src_root)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def run(self, poll_interval: float = 1.0) -> None:
        self.start()
        try:
            while True:
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            logger.info("Watcher stopped by user.")
        finally:
            self.stop()


class _SourceEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: SiteWatcher) -> None:
        self.watcher = watcher

    def _changed(self, paths: List[str]) -> None:
        for raw in paths:
            path = Path(raw)
            if self.watcher.builder.transforms_for(path):
                self.watcher.handle_change(path)
                return

    def on_created(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._changed([event.src_path])

    def on_moved(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._changed([event.dest_path, event.src_path])

    def on_modified(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._changed([event.src_path])

    def on_deleted(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._changed([event.src_path])


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to sitebuild config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    initial_build: bool = typer.Option(True, "--build/--no-build", help="Build once before watching."),
) -> None:
    """Start the watch loop."""

    _setup_logging(verbose)
    builder = SiteBuilder(load_config(config_path))
    if initial_build:
        builder.build()
    SiteWatcher(builder).run()


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
