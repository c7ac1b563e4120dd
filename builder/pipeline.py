from __future__ import annotations

import glob
import json
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import minify_html
import sass
import typer
from jinja2 import Environment, FileSystemLoader
from rich.console import Console
from rich.logging import RichHandler

from sitebuild import BuildConfig, load_config
from sitebuild.paths import ensure_dir
from sitebuild.site_data import THEME_DOCUMENT, build_aggregated_config, build_sass_variable_block

logger = logging.getLogger("sitebuild.builder")
app = typer.Typer(help="Build the static site from the source tree.")

DIST_DIR = "dist"
PUBLIC_DIR = "public"
CONFIG_DIR = "config"
TRANSFORM_ORDER = ("templates", "modules", "styles", "public")
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)


class BundleError(RuntimeError):
    pass


class BundlerNotFoundError(BundleError):
    pass


@dataclass
class BuildReport:
    templates: List[Path] = field(default_factory=list)
    modules: List[Path] = field(default_factory=list)
    styles: List[Path] = field(default_factory=list)
    public: List[Path] = field(default_factory=list)

    def total(self) -> int:
        return len(self.templates) + len(self.modules) + len(self.styles) + len(self.public)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


def inject_before_body_close(html: str, snippet: str) -> str:
    matches = list(_BODY_CLOSE.finditer(html))
    if not matches:
        return html + snippet
    cut = matches[-1].start()
    return html[:cut] + snippet + html[cut:]


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class SiteBuilder:
    def __init__(self, config: BuildConfig, inject_html: Optional[str] = None) -> None:
        self.config = config
        self.paths = config.paths()
        self.inject_html = inject_html

    @property
    def dist_dir(self) -> Path:
        return Path(self.paths.pub_path_to(DIST_DIR))

    def transform_templates(self) -> List[Path]:
        cfg = self.config.templates
        templates_root = Path(self.paths.src_path_to(cfg.directory))
        includes_root = Path(self.paths.src_path_to(cfg.includes_dir))
        if not templates_root.exists():
            logger.warning("Template directory %s not found; skipping.", templates_root)
            return []
        context = build_aggregated_config(self.paths.src)
        env = Environment(loader=FileSystemLoader(str(templates_root)), autoescape=cfg.autoescape)
        written: List[Path] = []
        for source in sorted(glob.glob(self.paths.src_glob(cfg.directory, cfg.extension), recursive=True)):
            source_path = Path(source)
            if _is_within(source_path, includes_root):
                continue
            relative = source_path.relative_to(templates_root)
            html = env.get_template(relative.as_posix()).render(**context)
            if self.inject_html:
                html = inject_before_body_close(html, self.inject_html)
            if cfg.minify:
                html = minify_html.minify(html, minify_css=True, minify_js=True)
            dest = self.paths.pub_root / relative.with_suffix(".html")
            ensure_dir(dest.parent)
            dest.write_text(html, encoding="utf-8")
            logger.debug("Rendered %s", relative)
            written.append(dest)
        logger.info("Rendered %s template(s)", len(written))
        return written

    def _bundler_command(self, entry: Path, output: Path) -> List[str]:
        cfg = self.config.scripts
        executable = shutil.which(cfg.bundler)
        if executable is None:
            raise BundlerNotFoundError(f"{cfg.bundler} not found. Install it with: npm install --global esbuild")
        command = [executable, str(entry), "--bundle", f"--outfile={output}"]
        if cfg.minify:
            command.append("--minify")
        return command

    def transform_modules(self) -> List[Path]:
        cfg = self.config.scripts
        entry = Path(self.paths.src_path_to(cfg.entry))
        if not entry.exists():
            logger.warning("Script entry %s not found; skipping bundle.", entry)
            return []
        output = ensure_dir(self.dist_dir) / cfg.output
        result = subprocess.run(
            self._bundler_command(entry, output),
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise BundleError(f"Bundling {entry} failed: {result.stderr.strip()}")
        logger.info("Bundled %s -> %s", entry.name, output.name)
        return [output]

    def transform_styles(self) -> List[Path]:
        cfg = self.config.styles
        entry = Path(self.paths.src_path_to(cfg.entry))
        if not entry.exists():
            logger.warning("Stylesheet entry %s not found; skipping.", entry)
            return []
        prelude = build_sass_variable_block(self.paths.src)
        source = prelude + "\n" + entry.read_text(encoding="utf-8")
        css = sass.compile(
            string=source,
            include_paths=[str(entry.parent)],
            output_style=cfg.output_style,
        )
        output = ensure_dir(self.dist_dir) / cfg.output
        output.write_text(css, encoding="utf-8")
        logger.info("Compiled %s -> %s", entry.name, output.name)
        return [output]

    def transform_public(self) -> List[Path]:
        public_root = Path(self.paths.src_path_to(PUBLIC_DIR))
        copied: List[Path] = []
        for source in sorted(glob.glob(self.paths.src_glob(PUBLIC_DIR, "*"), recursive=True)):
            source_path = Path(source)
            if not source_path.is_file():
                continue
            dest = self.paths.pub_root / source_path.relative_to(public_root)
            ensure_dir(dest.parent)
            shutil.copy2(source_path, dest)
            copied.append(dest)
        logger.info("Copied %s static file(s)", len(copied))
        return copied

    def _transforms(self) -> Dict[str, Callable[[], List[Path]]]:
        return {
            "templates": self.transform_templates,
            "modules": self.transform_modules,
            "styles": self.transform_styles,
            "public": self.transform_public,
        }

    def run_transforms(self, names: Sequence[str]) -> BuildReport:
        report = BuildReport()
        transforms = self._transforms()
        for name in TRANSFORM_ORDER:
            if name in names:
                setattr(report, name, transforms[name]())
        return report

    def build(self) -> BuildReport:
        report = self.run_transforms(TRANSFORM_ORDER)
        logger.info("Built %s file(s) into %s", report.total(), self.paths.pub)
        return report

    def clean(self) -> None:
        target = self.paths.pub_root
        if not target.exists():
            return
        shutil.rmtree(target)
        logger.info("Removed %s", target)

    def transforms_for(self, changed: Path | str) -> List[str]:
        """Map a changed source file to the transforms that consume it."""

        path = Path(changed).resolve()
        src_root = self.paths.src_root.resolve()
        if not _is_within(path, src_root):
            return []
        relative = path.relative_to(src_root)
        if not relative.parts:
            return []
        top = relative.parts[0]
        selected = set()
        if top == self.config.templates.directory:
            selected.add("templates")
        if top == CONFIG_DIR:
            selected.add("templates")
            if relative.as_posix() == THEME_DOCUMENT:
                selected.add("styles")
        if top == self.config.styles.directory:
            selected.add("styles")
        if top == self.config.scripts.directory:
            selected.add("modules")
        if top == PUBLIC_DIR:
            selected.add("public")
        return [name for name in TRANSFORM_ORDER if name in selected]


@app.command()
def build(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to sitebuild config file."),
    clean_first: bool = typer.Option(True, "--clean/--no-clean", help="Remove the public root before building."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run every transform once."""

    _setup_logging(verbose)
    builder = SiteBuilder(load_config(config_path))
    if clean_first:
        builder.clean()
    builder.build()


@app.command()
def clean(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to sitebuild config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Remove the public root."""

    _setup_logging(verbose)
    SiteBuilder(load_config(config_path)).clean()


@app.command()
def data(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to sitebuild config file."),
    sass_vars: bool = typer.Option(False, "--sass", help="Print the SCSS color prelude instead."),
) -> None:
    """Print the data handed to the templates."""

    paths = load_config(config_path).paths()
    console = Console()
    if sass_vars:
        console.print(build_sass_variable_block(paths.src), markup=False, highlight=False)
        return
    console.print_json(json.dumps(build_aggregated_config(paths.src)))


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
