from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def join_root_relative(root: str, relative_path: str) -> str:
    """Join ``root`` and ``relative_path`` with exactly one slash between them."""

    if root.endswith("/"):
        root = root[:-1]
    if relative_path.startswith("/"):
        relative_path = relative_path[1:]
    return f"{root}/{relative_path}"


def glob_for(root: str, subdir: str, extension: str = "") -> str:
    # A directory named after its file type, e.g. ``json/**/*.json``.
    if extension == "":
        extension = subdir
    return join_root_relative(root, f"{subdir}/**/*.{extension}")


@dataclass(frozen=True)
class ProjectPaths:
    src: str
    pub: str

    def src_path_to(self, where: str) -> str:
        return join_root_relative(self.src, where)

    def pub_path_to(self, where: str) -> str:
        return join_root_relative(self.pub, where)

    def src_glob(self, subdir: str, extension: str = "") -> str:
        return glob_for(self.src, subdir, extension)

    @property
    def src_root(self) -> Path:
        return Path(self.src)

    @property
    def pub_root(self) -> Path:
        return Path(self.pub)


def _anchor(value: str, base: Optional[Path]) -> str:
    if base is None or Path(value).is_absolute():
        return value
    trailing = "/" if value.endswith("/") else ""
    return (base / value).resolve().as_posix() + trailing


def resolve_project_paths(src_dir: str, pub_dir: str, base_dir: Path | str | None = None) -> ProjectPaths:
    base = Path(base_dir).resolve() if base_dir is not None else None
    return ProjectPaths(src=_anchor(src_dir, base), pub=_anchor(pub_dir, base))
