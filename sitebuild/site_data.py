"""Site data aggregated from the JSON documents under ``<src>/config``.

Every document contributes one namespace to the ``data`` object handed to
the templates. ``theme.json`` additionally feeds the SCSS color prelude.
"""

from __future__ import annotations

import copy
import glob
import json
from pathlib import Path
from typing import Any, Dict, List

from .paths import glob_for, join_root_relative

CONFIG_DIR = "config"
THEME_DOCUMENT = "config/theme.json"
NAMESPACE_FIELD = "_namespace"

DEFAULT_NAMESPACES: Dict[str, Any] = {
    "dist.js": [{"src": "dist/main.bundle.js", "defer": True}],
    "dist.css": [{"src": "dist/main.css"}],
}


class SiteDataError(Exception):
    """Base class for site data failures; all of them abort the build pass."""


class NotFoundError(SiteDataError, FileNotFoundError):
    pass


class ParseError(SiteDataError, ValueError):
    pass


class MissingFieldError(SiteDataError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def discover_configs(source_root: str) -> List[str]:
    pattern = glob_for(source_root, CONFIG_DIR, "json")
    return sorted(path for path in glob.glob(pattern, recursive=True) if Path(path).is_file())


def load_json(path: str | Path) -> Any:
    target = Path(path)
    try:
        text = target.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFoundError(f"Config document not found: {target}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"Config document is not UTF-8: {target}: {exc}") from exc
    except OSError as exc:
        raise NotFoundError(f"Config document cannot be read: {target}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in {target}: {exc}") from exc


def namespace_key(path: str | Path, contents: Any) -> str:
    """Return the namespace a document is stored under.

    An object with a string ``_namespace`` field names itself. Otherwise the
    key is the filename stem minus its final character, so ``themes.json``
    lands under ``theme``.
    """

    if isinstance(contents, dict):
        declared = contents.get(NAMESPACE_FIELD)
        if isinstance(declared, str) and declared:
            return declared
    return Path(path).stem[:-1]


def build_aggregated_config(source_root: str) -> Dict[str, Dict[str, Any]]:
    data: Dict[str, Any] = copy.deepcopy(DEFAULT_NAMESPACES)
    for path in discover_configs(source_root):
        contents = load_json(path)
        key = namespace_key(path, contents)
        if isinstance(contents, dict) and contents.get(NAMESPACE_FIELD) == key:
            contents = {k: v for k, v in contents.items() if k != NAMESPACE_FIELD}
        data[key] = contents
    return {"data": data}


def theme_colors(source_root: str) -> Dict[str, Any]:
    path = join_root_relative(source_root, THEME_DOCUMENT)
    theme = load_json(path)
    colors = theme.get("colors") if isinstance(theme, dict) else None
    if not isinstance(colors, dict):
        raise MissingFieldError(f"{path} has no 'colors' object")
    return colors


def build_sass_variable_block(source_root: str) -> str:
    return "\n".join(f"${name}: {value};" for name, value in theme_colors(source_root).items())


__all__ = [
    "DEFAULT_NAMESPACES",
    "MissingFieldError",
    "NotFoundError",
    "ParseError",
    "SiteDataError",
    "build_aggregated_config",
    "build_sass_variable_block",
    "discover_configs",
    "load_json",
    "namespace_key",
    "theme_colors",
]
