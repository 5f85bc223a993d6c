from __future__ import annotations

import pytest

from llmcord.rendering.chunking import split_into_chunks, truncate_text


def test_packs_words_greedily() -> None:
    assert split_into_chunks("Hello world, this is a test.", 10) == [
        "Hello",
        "world, this",
        "is a test.",
    ]


def test_empty_and_whitespace_only_text_have_no_chunks() -> None:
    assert split_into_chunks("", 10) == []
    assert split_into_chunks("  \n\t ", 10) == []


def test_long_word_is_never_split() -> None:
    assert split_into_chunks("a " + "x" * 25 + " b", 10) == ["a", "x" * 25, "b"]


def test_newlines_inside_a_chunk_are_preserved() -> None:
    assert split_into_chunks("one\ntwo\n\nthree", 100) == ["one\ntwo\n\nthree"]


def test_boundary_whitespace_is_dropped() -> None:
    chunks = split_into_chunks("alpha    beta", 5)
    assert chunks == ["alpha", "beta"]


def test_chunks_reconstruct_the_words_in_order() -> None:
    text = "\n".join(
        f"line {i}:\n    " + " ".join(f"w{i}{j}" for j in range(9)) for i in range(40)
    )
    chunks = split_into_chunks(text, 37)
    assert " ".join(chunks).split() == text.split()
    for chunk in chunks:
        assert len(chunk) <= 38 or len(chunk.split()) == 1


def test_long_whitespace_runs_count_towards_the_limit() -> None:
    chunks = split_into_chunks("aaaaa" + " " * 50 + "bbbbb", 10)
    assert chunks == ["aaaaa", "bbbbb"]


def test_indented_code_stays_within_one_character_of_the_limit() -> None:
    text = "def f():\n        return 1\n\n\n        pass" * 20
    for max_len in (8, 12, 25, 60):
        for chunk in split_into_chunks(text, max_len):
            assert len(chunk) <= max_len + 1 or len(chunk.split()) == 1


def test_truncate_text_marks_the_cut() -> None:
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij", 6) == "abc..."
    assert truncate_text("abcdef", 2) == ".."
    with pytest.raises(ValueError):
        truncate_text("x", 0)


def test_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        split_into_chunks("text", 0)
