import json
import sys
from pathlib import Path

import pytest

# Allow importing the subsystem packages from the repository root
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sitebuild.config import BuildConfig, PathsConfig, TemplatesConfig  # noqa: E402


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def site_src(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    write(src / "config" / "theme.json", json.dumps({"colors": {"primary": "#fff", "accent": "#000"}}))
    write(src / "config" / "sites.json", json.dumps({"title": "Demo Site"}))
    write(
        src / "html" / "index.html",
        "{% include 'includes/head.html' %}"
        "<body><h1>{{ data.site.title }}</h1>"
        "{% for script in data['dist.js'] %}<script src=\"{{ script.src }}\"></script>{% endfor %}"
        "</body></html>",
    )
    write(src / "html" / "about" / "team.html", "<p>Team of {{ data.site.title }}</p>")
    write(
        src / "html" / "includes" / "head.html",
        "<html><head><link rel=\"stylesheet\" href=\"{{ data['dist.css'][0].src }}\"></head>",
    )
    write(src / "scss" / "main.scss", "body { color: $primary; background: $accent; }\n")
    write(src / "mjs" / "main.mjs", "console.log('hi');\n")
    write(src / "public" / "robots.txt", "User-agent: *\n")
    write(src / "public" / "img" / "logo.svg", "<svg></svg>")
    return src


@pytest.fixture
def build_config(tmp_path: Path, site_src: Path) -> BuildConfig:
    return BuildConfig(
        base_dir=tmp_path,
        dirs=PathsConfig(src_dir="src/", pub_dir="public/"),
        templates=TemplatesConfig(minify=False),
    )
