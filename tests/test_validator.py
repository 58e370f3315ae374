from __future__ import annotations

from textwrap import dedent

import pytest

from tcorpus.checks import validate
from tcorpus.checks.validator import (
    EMPTY_BLOCK,
    UNCLOSED_FENCE,
    bracket_problem,
    entry_lessons,
    find_ordering_conflicts,
    toc_order,
)
from tcorpus.core.config import CorpusConfig
from tcorpus.graph import build
from tcorpus.lessons import parse


def _lesson(lesson_id: str, prerequisites=(), next_lessons=(), body: str = ""):
    parts = [f"# {lesson_id.title()}", ""]
    if prerequisites:
        parts += ["## Prerequisites", ""] + [f"- [{target}]({target})" for target in prerequisites] + [""]
    if body:
        parts += [body, ""]
    if next_lessons:
        parts += ["## What's next", ""] + [f"- [{target}]({target})" for target in next_lessons] + [""]
    return parse(f"{lesson_id}.md", "\n".join(parts))


def _check(lessons, **kwargs):
    return validate(build(lessons), lessons, **kwargs)


def test_prerequisite_cycle_is_reported_once() -> None:
    lessons = [
        _lesson("a", prerequisites=["b.md"]),
        _lesson("b", prerequisites=["c.md"]),
        _lesson("c", prerequisites=["a.md"]),
    ]
    report = _check(lessons)

    assert len(report.cycles) == 1
    assert report.cycles[0].lesson_ids == ("a", "b", "c")
    assert report.cycles[0].message == "prerequisite cycle: a -> b -> c -> a"
    assert report.has_errors


def test_self_prerequisite_is_a_cycle() -> None:
    report = _check([_lesson("loop", prerequisites=["loop.md"])])
    assert [cycle.lesson_ids for cycle in report.cycles] == [("loop",)]


def test_two_separate_cycles() -> None:
    lessons = [
        _lesson("a", prerequisites=["b.md"]),
        _lesson("b", prerequisites=["a.md"]),
        _lesson("x", prerequisites=["y.md"]),
        _lesson("y", prerequisites=["x.md"]),
    ]
    report = _check(lessons)
    assert [cycle.lesson_ids for cycle in report.cycles] == [("a", "b"), ("x", "y")]


def test_broken_link_keeps_literal_reference() -> None:
    lessons = [
        _lesson("intro", next_lessons=["next.md"]),
        _lesson("next", prerequisites=["intro.md", "../nope/missing.md"]),
    ]
    report = _check(lessons)

    assert len(report.broken_links) == 1
    broken = report.broken_links[0]
    assert broken.lesson_id == "next"
    assert broken.reference == "../nope/missing.md"
    assert broken.relation == "prerequisite-of"
    assert broken.severity == "error"


def test_orphan_lesson_unreachable_from_entry_point() -> None:
    lessons = [
        _lesson("start", next_lessons=["middle.md"]),
        _lesson("middle", prerequisites=["start.md"]),
        _lesson("stray"),
    ]
    report = _check(lessons)

    assert report.orphan_ids == ["stray"]
    assert not report.has_errors
    assert report.has_warnings


def test_explicit_entry_points_override_derivation() -> None:
    lessons = [
        _lesson("start", next_lessons=["middle.md"]),
        _lesson("middle"),
        _lesson("stray"),
    ]
    graph = build(lessons)

    assert entry_lessons(graph) == ["start"]
    assert entry_lessons(graph, ["stray.md"]) == ["stray"]
    report = validate(graph, lessons, entry_points=["stray"])
    assert report.orphan_ids == ["middle", "start"]


def test_entry_points_from_config() -> None:
    lessons = [_lesson("start", next_lessons=["middle.md"]), _lesson("middle")]
    report = _check(lessons, config=CorpusConfig(entry_points=["middle.md"]))
    assert report.orphan_ids == ["start"]


def test_empty_code_block_is_malformed() -> None:
    lesson = _lesson("blocks", body="```kotlin\n```\n\n```kotlin\n   \n```")
    report = _check([lesson])

    reasons = [finding.reason for finding in report.malformed_code_blocks]
    assert reasons == [EMPTY_BLOCK, EMPTY_BLOCK]
    assert report.malformed_code_blocks[0].block.owner_lesson_id == "blocks"


def test_unclosed_fence_is_malformed() -> None:
    lesson = _lesson("open", body="```kotlin\nval x = 1")
    report = _check([lesson])
    assert [finding.reason for finding in report.malformed_code_blocks] == [UNCLOSED_FENCE]


def test_language_mismatch_only_for_examples() -> None:
    body = dedent(
        """\
        ```python
        print("hi")
        ```

        ```java
        int x = 1;
        ```

        Solution:

        ```python
        print("solved")
        ```
        """
    )
    report = _check([_lesson("mixed", body=body)])

    (finding,) = report.malformed_code_blocks
    assert finding.block.index == 0
    assert "does not match lesson language 'kotlin'" in finding.reason


def test_unbalanced_kotlin_block_is_reported() -> None:
    body = "```kotlin\nfun main() {\n    println(\"hi\")\n```\n\n```kotlin\n// TODO\n}\n```"
    report = _check([_lesson("brackets", body=body)])

    (finding,) = report.malformed_code_blocks
    assert finding.block.index == 0
    assert finding.reason == "unbalanced brackets: '{' opened at line 1 is never closed"


def test_bracket_scanner_skips_strings_and_comments() -> None:
    assert bracket_problem('val s = "a { b"\nval t = \'}\'') is None
    assert bracket_problem('val raw = """\n  ) ] }\n"""') is None
    assert bracket_problem("fun f() { /* } */ }\n// )") is None
    assert bracket_problem("val x = listOf(1, 2]") == "unbalanced brackets: unexpected ']' at line 1"
    assert bracket_problem('val s = "open') == "unterminated string literal at line 1"
    assert bracket_problem("/* never closed") == "unterminated block comment"


def test_bracket_check_can_be_disabled() -> None:
    config = CorpusConfig.model_validate({"code": {"check_brackets": False}})
    report = _check([_lesson("loose", body="```kotlin\nfun main() {\n```")], config=config)
    assert report.malformed_code_blocks == ()


def test_validation_is_idempotent() -> None:
    lessons = [
        _lesson("a", prerequisites=["b.md"], next_lessons=["b.md"]),
        _lesson("b", prerequisites=["a.md", "gone.md"]),
        _lesson("c", body="```kotlin\n```"),
    ]
    graph = build(lessons)
    first = validate(graph, lessons)
    second = validate(graph, lessons)

    assert first == second
    assert [record.message for record in first.records()] == [record.message for record in second.records()]


def test_validate_requires_graph_and_lessons() -> None:
    with pytest.raises(TypeError):
        validate(None, [])
    with pytest.raises(TypeError):
        validate(build([]), None)


def test_empty_corpus_yields_empty_report() -> None:
    report = validate(build([]), [])
    assert report.is_empty
    assert report.records() == []


def test_report_records_carry_details() -> None:
    lessons = [_lesson("intro", next_lessons=["missing.md"])]
    (record,) = [record for record in _check(lessons).records() if record.kind == "broken-link"]

    assert record.severity == "error"
    assert record.lesson_id == "intro"
    assert record.details == {"lesson_id": "intro", "reference": "missing.md", "relation": "leads-to"}


def test_toc_order_resolves_links() -> None:
    text = "# Contents\n\n1. [Intro](basics/intro.md)\n2. [Site](https://example.com)\n3. [Lists](collections/lists.md)\n4. [Intro again](basics/intro.md)\n"
    order = toc_order("README.md", text, {"basics/intro", "collections/lists"})
    assert order == ["basics/intro", "collections/lists"]


def test_ordering_conflicts_are_reported_not_resolved() -> None:
    conflicts = find_ordering_conflicts(
        {
            "readme": ["intro", "variables", "lists"],
            "docs/summary": ["intro", "lists", "variables"],
            "docs/index": ["variables", "intro"],
        }
    )

    assert [(conflict.first_toc, conflict.second_toc) for conflict in conflicts] == [
        ("docs/index", "docs/summary"),
        ("docs/index", "readme"),
        ("docs/summary", "readme"),
    ]
    assert (conflicts[0].earlier, conflicts[0].later) == ("variables", "intro")
    assert (conflicts[2].earlier, conflicts[2].later) == ("lists", "variables")
    assert all(conflict.severity == "warning" for conflict in conflicts)
