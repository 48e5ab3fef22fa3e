# tests/unit/test_response_extractor.py
import pytest

from usecase_registry.response_extractor import extract_structured_reply, strip_fenced_blocks


def test_json_fence_is_preferred_and_all_fences_stripped():
    text = (
        "Summary first.\n"
        "```python\nprint('hi')\n```\n"
        "More text.\n"
        '```json\n{"guidance": ["a"]}\n```\n'
    )
    out = extract_structured_reply(text)
    assert out.structured == {"guidance": ["a"]}
    assert out.source == "fence"
    assert "```" not in out.narrative
    assert "print" not in out.narrative
    assert out.narrative.startswith("Summary first.")
    assert out.narrative.endswith("More text.")


def test_fence_tag_is_case_insensitive():
    out = extract_structured_reply('Hi\n```JSON\n{"roles": ["deployer"]}\n```')
    assert out.structured == {"roles": ["deployer"]}
    assert out.narrative == "Hi"


def test_unlabeled_object_falls_back_to_brace_span():
    out = extract_structured_reply('Here you go: {"stateUpdates": {"roles": ["provider"]}} thanks')
    assert out.source == "braces"
    assert out.structured == {"stateUpdates": {"roles": ["provider"]}}


def test_unclosed_object_yields_none_without_error():
    out = extract_structured_reply("Partial {not: valid json")
    assert out.structured is None
    assert out.candidate_found is False
    assert out.narrative == "Partial {not: valid json"


def test_invalid_json_inside_fence_yields_none():
    out = extract_structured_reply("Intro\n```json\n{not: valid}\n```")
    assert out.structured is None
    assert out.candidate_found is True
    assert out.narrative == "Intro"


def test_trailing_prose_inside_fence_is_tolerated():
    out = extract_structured_reply('```json\n{"questions": ["Q1?"]}\nHope this helps.\n```')
    assert out.structured == {"questions": ["Q1?"]}


def test_deeply_nested_json_yields_none():
    depth = 100000
    out = extract_structured_reply("x\n```json\n{\"a\": " + "[" * depth + "]" * depth + "}\n```")
    assert out.structured is None
    assert out.candidate_found is True
    assert out.narrative == "x"


def test_deeply_nested_bare_object_yields_none():
    depth = 100000
    out = extract_structured_reply("x {\"a\": " + "{\"b\": " * depth + "1" + "}" * depth + "}")
    assert out.structured is None
    assert out.source == "braces"


def test_plain_prose_has_no_structured_part():
    out = extract_structured_reply("Just a friendly answer.")
    assert out.structured is None
    assert out.source is None
    assert out.narrative == "Just a friendly answer."


@pytest.mark.parametrize("payload", ["[1, 2, 3]", '"text"', "42"])
def test_non_object_json_is_rejected(payload):
    out = extract_structured_reply(f"x\n```json\n{payload}\n```")
    assert out.structured is None


@pytest.mark.parametrize("text", [None, 123, ""])
def test_non_string_or_empty_input_never_raises(text):
    out = extract_structured_reply(text)
    assert out.structured is None
    assert out.narrative == ""


def test_strip_fenced_blocks_trims():
    assert strip_fenced_blocks("  a\n```\ncode\n```\n  ") == "a"
