from __future__ import annotations

from pathlib import Path

import pytest

from stratum.errors import CircularDependencyError, PatternNotFoundError, YAMLSyntaxError
from stratum.merger import merge
from stratum.models import PatternRef, SearchRoot
from stratum.resolver import PatternResolver


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content.strip() + "\n", encoding="utf-8")


def _resolver(tmp_path: Path) -> PatternResolver:
    return PatternResolver(
        [
            SearchRoot(tmp_path / "shipped", origin="shipped"),
            SearchRoot(tmp_path / "user", origin="user"),
        ]
    )


def _names(order: list) -> list[str]:
    return [descriptor.ref.key for descriptor in order]


def test_dependencies_come_before_dependents(tmp_path: Path) -> None:
    workflows = tmp_path / "shipped" / "workflows"
    _write(workflows / "a.yaml", "defaults: [b]\nlevel: a")
    _write(workflows / "b.yaml", "defaults: [c]\nlevel: b")
    _write(workflows / "c.yaml", "level: c")

    order = _resolver(tmp_path).resolve("a", "workflows")
    assert _names(order) == ["workflows/c", "workflows/b", "workflows/a"]


def test_cycle_is_reported_with_full_chain(tmp_path: Path) -> None:
    workflows = tmp_path / "user" / "workflows"
    _write(workflows / "a.yaml", "defaults: [b]")
    _write(workflows / "b.yaml", "defaults: [c]")
    _write(workflows / "c.yaml", "defaults: [a]")

    with pytest.raises(CircularDependencyError) as info:
        _resolver(tmp_path).resolve("a", "workflows")
    assert info.value.dependency_chain == ["a", "b", "c", "a"]
    assert "a -> b -> c -> a" in str(info.value)
    assert info.value.entry_path == []


def test_cycle_reached_through_other_patterns(tmp_path: Path) -> None:
    workflows = tmp_path / "user" / "workflows"
    _write(workflows / "root.yaml", "defaults: [a]")
    _write(workflows / "a.yaml", "defaults: [b]")
    _write(workflows / "b.yaml", "defaults: [a]")

    with pytest.raises(CircularDependencyError) as info:
        _resolver(tmp_path).resolve("root")
    assert info.value.dependency_chain == ["a", "b", "a"]
    assert info.value.entry_path == ["root"]


def test_self_reference_is_a_cycle(tmp_path: Path) -> None:
    _write(tmp_path / "user" / "phases" / "loop.yaml", "defaults: [loop]")
    with pytest.raises(CircularDependencyError) as info:
        _resolver(tmp_path).resolve("loop", "phases")
    assert info.value.dependency_chain == ["loop", "loop"]


def test_cross_type_cycle_labels_foreign_nodes(tmp_path: Path) -> None:
    _write(tmp_path / "user" / "workflows" / "w.yaml", "defaults: [{phase: p}]")
    _write(tmp_path / "user" / "phases" / "p.yaml", "defaults: [{workflow: w}]")
    with pytest.raises(CircularDependencyError) as info:
        _resolver(tmp_path).resolve("w")
    assert info.value.dependency_chain == ["w", "phases/p", "w"]


def test_diamond_dependencies_are_merged_once(tmp_path: Path) -> None:
    workflows = tmp_path / "shipped" / "workflows"
    _write(workflows / "top.yaml", "defaults: [left, right]")
    _write(workflows / "left.yaml", "defaults: [base]\nside: left")
    _write(workflows / "right.yaml", "defaults: [base]\nside: right")
    _write(workflows / "base.yaml", "side: base")

    order = _resolver(tmp_path).resolve("top")
    assert _names(order) == [
        "workflows/base",
        "workflows/left",
        "workflows/right",
        "workflows/top",
    ]
    assert merge(order) == {"side": "right"}


def test_unknown_pattern_suggests_nearest_name(tmp_path: Path) -> None:
    _write(tmp_path / "shipped" / "workflows" / "release.yaml", "a: 1")
    with pytest.raises(PatternNotFoundError) as info:
        _resolver(tmp_path).resolve("relase", "workflows")
    assert 'Did you mean "release"?' in str(info.value)
    assert info.value.available_patterns == ["release"]


def test_missing_dependency_reports_its_own_type(tmp_path: Path) -> None:
    _write(tmp_path / "user" / "workflows" / "w.yaml", "defaults: [{phase: reveiw}]")
    _write(tmp_path / "shipped" / "phases" / "review.yaml", "a: 1")
    with pytest.raises(PatternNotFoundError) as info:
        _resolver(tmp_path).resolve("w")
    assert info.value.pattern_name == "reveiw"
    assert info.value.pattern_type == "phases"
    assert info.value.suggestion == "review"


def test_only_files_on_the_path_are_parsed(tmp_path: Path) -> None:
    workflows = tmp_path / "user" / "workflows"
    _write(workflows / "good.yaml", "ok: true")
    _write(workflows / "broken.yaml", "key: [unclosed")

    order = _resolver(tmp_path).resolve("good")
    assert _names(order) == ["workflows/good"]

    with pytest.raises(YAMLSyntaxError):
        _resolver(tmp_path).resolve("broken")


def test_malformed_dependency_surfaces_syntax_error(tmp_path: Path) -> None:
    workflows = tmp_path / "user" / "workflows"
    _write(workflows / "good.yaml", "defaults: [broken]")
    _write(workflows / "broken.yaml", "key: [unclosed")
    with pytest.raises(YAMLSyntaxError) as info:
        _resolver(tmp_path).resolve("good")
    assert info.value.file_path.endswith("broken.yaml")


def test_user_variant_decides_dependencies(tmp_path: Path) -> None:
    _write(tmp_path / "shipped" / "workflows" / "release.yaml", "defaults: [base]")
    _write(tmp_path / "shipped" / "workflows" / "base.yaml", "x: 1")
    _write(tmp_path / "user" / "workflows" / "release.yaml", "x: 2")

    order = _resolver(tmp_path).resolve("release")
    assert _names(order) == ["workflows/release"]
    assert order[0].origin == "user"


def test_resolution_is_idempotent_and_uncached(tmp_path: Path) -> None:
    workflows = tmp_path / "user" / "workflows"
    _write(workflows / "a.yaml", "defaults: [b]\nvalue: 1")
    _write(workflows / "b.yaml", "nested: {x: 1}")
    resolver = _resolver(tmp_path)

    first = merge(resolver.resolve("a"))
    second = merge(resolver.resolve("a"))
    assert first == second == {"nested": {"x": 1}, "value": 1}

    _write(workflows / "a.yaml", "defaults: [b]\nvalue: 2")
    assert merge(resolver.resolve("a"))["value"] == 2


def test_resolve_refs_shares_one_order(tmp_path: Path) -> None:
    _write(tmp_path / "shipped" / "workflows" / "a.yaml", "defaults: [base]")
    _write(tmp_path / "shipped" / "workflows" / "base.yaml", "x: 1")
    _write(tmp_path / "shipped" / "phases" / "review.yaml", "defaults: [{workflow: base}]")

    order = _resolver(tmp_path).resolve_refs(
        [PatternRef("workflows", "a"), PatternRef("phases", "review")]
    )
    assert _names(order) == ["workflows/base", "workflows/a", "phases/review"]


def test_find_returns_winning_source_without_parsing(tmp_path: Path) -> None:
    _write(tmp_path / "shipped" / "documents" / "design.yaml", "a: 1")
    _write(tmp_path / "user" / "documents" / "design.yaml", "key: [unclosed")
    source = _resolver(tmp_path).find("design", "document")
    assert source.origin == "user"
    with pytest.raises(PatternNotFoundError):
        _resolver(tmp_path).find("spce", "documents")
