from __future__ import annotations

from stratum.errors import (
    CircularDependencyError,
    ConfigError,
    PatternError,
    PatternNotFoundError,
    YAMLSyntaxError,
    render_context,
)


def test_not_found_suggests_close_match() -> None:
    exc = PatternNotFoundError("relase", "workflows", ["release"])
    message = str(exc)
    assert message.startswith('Pattern "relase" not found in workflows')
    assert "Available workflows:\n  - release" in message
    assert 'Did you mean "release"?' in message
    assert exc.suggestion == "release"
    assert exc.kind == "not_found"
    assert exc.pattern_name == "relase"
    assert exc.pattern_type == "workflows"
    assert exc.available_patterns == ["release"]


def test_not_found_lists_everything_but_only_suggests_above_threshold() -> None:
    exc = PatternNotFoundError("zzz", "phases", ["review", "planning"])
    message = str(exc)
    assert "  - planning\n  - review" in message
    assert "Did you mean" not in message
    assert exc.suggestion is None
    assert [name for name, _score in exc.candidates] == ["planning", "review"]


def test_not_found_threshold_is_strict() -> None:
    # "ab" vs "ax" scores exactly 0.5
    exc = PatternNotFoundError("ab", "documents", ["ax"])
    assert exc.suggestion is None


def test_not_found_with_no_candidates() -> None:
    exc = PatternNotFoundError("release", "workflows", [])
    assert "Available workflows:\n  (none)" in str(exc)
    assert exc.candidates == []


def test_circular_dependency_message_renders_chain() -> None:
    exc = CircularDependencyError(["a", "b", "c", "a"])
    assert str(exc) == "Circular dependency detected: a -> b -> c -> a"
    assert exc.dependency_chain == ["a", "b", "c", "a"]
    assert exc.kind == "circular_dependency"


def test_circular_dependency_mentions_entry_path() -> None:
    exc = CircularDependencyError(["a", "b", "a"], entry_path=["root"])
    assert str(exc) == "Circular dependency detected: a -> b -> a (reached from root)"


def test_render_context_marks_failing_line() -> None:
    content = "\n".join(f"line{number}" for number in range(1, 21))
    rendered = render_context(content, 9).splitlines()
    assert rendered[0] == "     7 | line7"
    assert rendered[3] == ">   10 | line10"
    assert rendered[-1] == "    13 | line13"
    assert len(rendered) == 7


def test_render_context_clamps_to_file_bounds() -> None:
    rendered = render_context("a: 1\nb: [\n", 1).splitlines()
    assert rendered == ["     1 | a: 1", ">    2 | b: ["]
    assert render_context("", 4) == ""


def test_syntax_error_fields_and_hierarchy() -> None:
    exc = YAMLSyntaxError(
        file_path="/tmp/x.yaml",
        line_number=1,
        column=3,
        problem="unexpected thing",
        content="a: 1\nb: [\n",
    )
    assert isinstance(exc, PatternError)
    assert isinstance(exc, ConfigError)
    assert exc.kind == "syntax"
    assert exc.file_path == "/tmp/x.yaml"
    assert (exc.line_number, exc.column) == (1, 3)
    assert str(exc).startswith("YAML syntax error in /tmp/x.yaml:2:4: unexpected thing\n")
    assert ">    2 | b: [" in str(exc)
