"""Reusable helpers shared by the builder, watcher, and web subsystems."""

from __future__ import annotations

from .config import BuildConfig, load_config  # noqa: F401
from .paths import ProjectPaths, glob_for, join_root_relative  # noqa: F401
from .site_data import build_aggregated_config, build_sass_variable_block  # noqa: F401
