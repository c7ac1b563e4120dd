from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .paths import ProjectPaths, resolve_project_paths

CONFIG_ENV = "SITEBUILD_CONFIG"
BASE_ENV = "SITEBUILD_BASE"
DEFAULT_CONFIG_NAME = "sitebuild.yml"


class PathsConfig(BaseModel):
    src_dir: str = Field(default="./src/", description="Source root holding html/, mjs/, scss/, config/ and public/.")
    pub_dir: str = Field(default="./public/", description="Output root served during development.")


class TemplatesConfig(BaseModel):
    directory: str = "html"
    extension: str = "html"
    includes_dir: str = Field(default="html/includes", description="Partials that are imported, never rendered.")
    minify: bool = True
    autoescape: bool = False


class ScriptsConfig(BaseModel):
    directory: str = "mjs"
    entry: str = "mjs/main.mjs"
    output: str = "main.bundle.js"
    bundler: str = Field(default="esbuild", description="Bundler executable name or path.")
    minify: bool = True


class StylesConfig(BaseModel):
    directory: str = "scss"
    entry: str = "scss/main.scss"
    output: str = "main.css"
    output_style: Literal["nested", "expanded", "compact", "compressed"] = "compressed"


class WebConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    livereload: bool = True


class BuildConfig(BaseModel):
    base_dir: Path = Path(".")
    dirs: PathsConfig = PathsConfig()
    templates: TemplatesConfig = TemplatesConfig()
    scripts: ScriptsConfig = ScriptsConfig()
    styles: StylesConfig = StylesConfig()
    web: WebConfig = WebConfig()

    @field_validator("base_dir")
    @classmethod
    def _resolve_base_dir(cls, value: Path) -> Path:
        return value.resolve()

    def paths(self) -> ProjectPaths:
        return resolve_project_paths(self.dirs.src_dir, self.dirs.pub_dir, self.base_dir)


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix == ".json":
        data = json.loads(text)
    elif suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    else:
        raise ValueError(f"Unsupported config extension: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    return data


def load_config(explicit_path: Optional[Path] = None) -> BuildConfig:
    """Load pipeline settings from file or environment."""

    candidate: Optional[Path] = explicit_path
    if candidate is None:
        env_path = os.environ.get(CONFIG_ENV)
        if env_path:
            candidate = Path(env_path)
    if candidate is None:
        candidate = Path(DEFAULT_CONFIG_NAME)
    data = _load_from_file(candidate)
    raw_base_dir = data.get("base_dir") or os.environ.get(BASE_ENV, ".")
    base_path = Path(raw_base_dir)
    if not base_path.is_absolute():
        base_root = candidate.parent if candidate.exists() else Path.cwd()
        base_path = (base_root / base_path).resolve()
    data["base_dir"] = str(base_path)
    return BuildConfig(**data)
