"""Tests for spelling-mode answer canonicalisation."""

from __future__ import annotations

import pytest

from ielts_app.services.answer_normalizer import canonicalize_answer, spelled_word, spoken_digits


@pytest.mark.parametrize(
    "spoken, expected",
    [
        ("double oh seven", "007"),
        ("triple two", "222"),
        ("oh two oh seven", "0207"),
        ("double 4 nine", "449"),
    ],
)
def test_spoken_digits(spoken, expected):
    assert spoken_digits(spoken) == expected


def test_spoken_digits_rejects_words():
    assert spoken_digits("double room") is None
    assert spoken_digits("0207 946") is None


def test_spelled_word():
    assert spelled_word("J-O-N-E-S") == "Jones"
    assert spelled_word("s m i t h") == "Smith"
    assert spelled_word("Jones") is None


def test_canonicalize_answer_keeps_plain_text():
    assert canonicalize_answer("  Harbour   Street ") == "Harbour Street"
    assert canonicalize_answer("J-O-N-E-S") == "Jones"
    assert canonicalize_answer("triple two") == "222"
