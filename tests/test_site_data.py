import json
from pathlib import Path

import pytest

from sitebuild.site_data import (
    DEFAULT_NAMESPACES,
    MissingFieldError,
    NotFoundError,
    ParseError,
    build_aggregated_config,
    build_sass_variable_block,
    discover_configs,
    load_json,
    namespace_key,
)


def _write_config(src: Path, name: str, payload) -> Path:
    path = src / "config" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    text = payload if isinstance(payload, str) else json.dumps(payload)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_present_with_empty_config_dir(tmp_path: Path):
    (tmp_path / "config").mkdir()
    result = build_aggregated_config(str(tmp_path))
    assert result == {
        "data": {
            "dist.js": [{"src": "dist/main.bundle.js", "defer": True}],
            "dist.css": [{"src": "dist/main.css"}],
        }
    }


def test_defaults_not_mutated_between_calls(tmp_path: Path):
    result = build_aggregated_config(str(tmp_path))
    result["data"]["dist.js"].append({"src": "extra.js"})
    assert len(DEFAULT_NAMESPACES["dist.js"]) == 1
    assert len(build_aggregated_config(str(tmp_path))["data"]["dist.js"]) == 1


def test_key_drops_final_stem_character(tmp_path: Path):
    _write_config(tmp_path, "themes.json", {"x": 1})
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["theme"] == {"x": 1}


def test_nested_documents_are_discovered(tmp_path: Path):
    _write_config(tmp_path, "nested/menus.json", ["home", "about"])
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["menu"] == ["home", "about"]


def test_document_overrides_default_without_merging(tmp_path: Path):
    _write_config(tmp_path, "dist.jsx.json", [{"src": "custom.js"}])
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["dist.js"] == [{"src": "custom.js"}]
    assert data["dist.css"] == [{"src": "dist/main.css"}]


def test_explicit_namespace_field_wins(tmp_path: Path):
    _write_config(tmp_path, "anything.json", {"_namespace": "nav", "links": ["/"]})
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["nav"] == {"links": ["/"]}
    assert "anythin" not in data


def test_namespace_key_falls_back_for_non_objects():
    assert namespace_key("config/links.json", ["a"]) == "link"
    assert namespace_key("config/links.json", {"_namespace": 3}) == "link"


def test_discovery_is_sorted(tmp_path: Path):
    for name in ("b.json", "a.json", "c.json"):
        _write_config(tmp_path, name, {})
    found = [Path(p).name for p in discover_configs(str(tmp_path))]
    assert found == ["a.json", "b.json", "c.json"]


def test_later_sorted_document_wins_on_key_collision(tmp_path: Path):
    _write_config(tmp_path, "siteA.json", {"from": "A"})
    _write_config(tmp_path, "siteB.json", {"from": "B"})
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["site"] == {"from": "B"}


def test_malformed_document_raises_parse_error(tmp_path: Path):
    _write_config(tmp_path, "goods.json", {"ok": True})
    _write_config(tmp_path, "bads.json", "{not json")
    with pytest.raises(ParseError, match="bads.json"):
        build_aggregated_config(str(tmp_path))


def test_load_json_missing_file(tmp_path: Path):
    with pytest.raises(NotFoundError):
        load_json(tmp_path / "missing.json")


def test_error_types_keep_builtin_bases(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_json(tmp_path / "missing.json")
    bad = _write_config(tmp_path, "bad.json", "[1,")
    with pytest.raises(ValueError):
        load_json(bad)


def test_sass_variable_block(tmp_path: Path):
    _write_config(tmp_path, "theme.json", {"colors": {"primary": "#fff", "accent": "#000"}})
    assert build_sass_variable_block(str(tmp_path)) == "$primary: #fff;\n$accent: #000;"


def test_sass_variable_block_missing_theme(tmp_path: Path):
    with pytest.raises(NotFoundError):
        build_sass_variable_block(str(tmp_path))


def test_sass_variable_block_missing_colors(tmp_path: Path):
    _write_config(tmp_path, "theme.json", {"fonts": {}})
    with pytest.raises(MissingFieldError, match="colors"):
        build_sass_variable_block(str(tmp_path))


def test_sass_variable_block_empty_colors(tmp_path: Path):
    _write_config(tmp_path, "theme.json", {"colors": {}})
    assert build_sass_variable_block(str(tmp_path)) == ""


def test_invalid_utf8_raises_parse_error(tmp_path: Path):
    path = tmp_path / "config" / "sites.json"
    path.parent.mkdir(parents=True)
    path.write_bytes(b'{"title": "\xff\xfe"}')
    with pytest.raises(ParseError, match="UTF-8"):
        build_aggregated_config(str(tmp_path))


def test_unreadable_theme_raises_not_found(tmp_path: Path):
    (tmp_path / "config" / "theme.json").mkdir(parents=True)
    with pytest.raises(NotFoundError):
        build_sass_variable_block(str(tmp_path))


def test_unused_namespace_field_is_kept(tmp_path: Path):
    _write_config(tmp_path, "pages.json", {"_namespace": "", "home": "/"})
    _write_config(tmp_path, "links.json", {"_namespace": 7})
    data = build_aggregated_config(str(tmp_path))["data"]
    assert data["page"] == {"_namespace": "", "home": "/"}
    assert data["link"] == {"_namespace": 7}
