from datetime import datetime

from rankvote.services.contest_id import (
    MAX_ID_LENGTH,
    build_contest_id,
    generate_contest_id,
    is_valid_contest_id,
    slugify_title,
    unique_contest_id,
    validate_id_format,
)

CLOSE_AT = datetime(2026, 2, 13, 18, 0, 0)
START_AT = datetime(2026, 2, 12, 18, 0, 0)


def test_slugifies_contest_titles():
    assert slugify_title("Friday Lunch!") == "friday-lunch"
    assert slugify_title("  snake_case   and\tTabs ") == "snake-case-and-tabs"
    assert slugify_title("--A -- B--") == "a-b"


def test_empty_slug_falls_back_to_contest():
    assert slugify_title("!!!") == "contest"
    assert slugify_title("") == "contest"


def test_default_format_uses_close_date():
    assert build_contest_id("Friday Lunch", close_at=CLOSE_AT) == "friday-lunch-02-13-2026"


def test_start_and_iso_tokens():
    contest_id = build_contest_id(
        "Standup",
        close_at=CLOSE_AT,
        start_at=START_AT,
        fmt="{title}-{start-yyyy-mm-dd}",
    )

    assert contest_id == "standup-2026-02-12"


def test_missing_start_renders_empty_and_is_renormalized():
    contest_id = build_contest_id("Standup", close_at=CLOSE_AT, fmt="{title}--{start-mm-dd-yyyy}")

    assert contest_id == "standup"


def test_template_rendering_to_nothing_uses_the_default():
    assert build_contest_id("Lunch", close_at=CLOSE_AT, fmt="{start-mm-dd-yyyy}") == (
        "lunch-02-13-2026"
    )


def test_unknown_tokens_are_reported():
    assert validate_id_format("{title}-{week}") == ["{week}"]
    assert validate_id_format("{title}-{close-yyyy-mm-dd}") == []


def test_unique_id_appends_a_numeric_suffix():
    existing = {"friday-lunch-02-13-2026", "friday-lunch-02-13-2026-2"}

    result = unique_contest_id("friday-lunch-02-13-2026", lambda candidate: candidate in existing)

    assert result == "friday-lunch-02-13-2026-3"


def test_suffix_respects_the_length_cap():
    base = "a" * MAX_ID_LENGTH

    result = unique_contest_id(base, lambda candidate: candidate == base)

    assert len(result) == MAX_ID_LENGTH
    assert result.endswith("-2")


def test_exhausted_suffixes_fall_back_to_a_timestamp():
    result = unique_contest_id("weekly", lambda candidate: candidate.startswith("weekly") and len(candidate) <= 12)

    assert is_valid_contest_id(result)
    assert result.startswith("weekly-")


def test_short_candidates_become_vote_ids():
    result = unique_contest_id("x", lambda candidate: False)

    assert result.startswith("vote-")
    assert is_valid_contest_id(result)


def test_generated_ids_are_valid():
    contest_id = generate_contest_id()

    assert len(contest_id) == 8
    assert is_valid_contest_id(contest_id)
