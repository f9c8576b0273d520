"""Canonical written forms for answers that are spoken or spelled in a recording."""

from __future__ import annotations

import re

DIGIT_WORDS = {
    "zero": "0",
    "o": "0",
    "oh": "0",
    "nil": "0",
    "nought": "0",
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
}

REPEATERS = {"double": 2, "triple": 3}

_SPELLED_RE = re.compile(r"^[A-Za-z](?:[\s\-.]+[A-Za-z])+$")
_TOKEN_SPLIT_RE = re.compile(r"[\s\-,]+")


def spoken_digits(text: str) -> str | None:
    """'double oh seven' -> '007'; returns None if any token is not a digit form."""

    tokens = [token for token in _TOKEN_SPLIT_RE.split(text.strip().lower()) if token]
    if not tokens:
        return None
    digits = []
    repeat = 1
    saw_word = False
    for token in tokens:
        if token in REPEATERS:
            if repeat != 1:
                return None
            repeat = REPEATERS[token]
            saw_word = True
            continue
        if token in DIGIT_WORDS:
            digit = DIGIT_WORDS[token]
            saw_word = True
        elif token.isdigit():
            digit = token
        else:
            return None
        digits.append(digit * repeat if len(digit) == 1 else digit)
        repeat = 1
    if repeat != 1 or not saw_word:
        return None
    return "".join(digits)


def spelled_word(text: str) -> str | None:
    """'J-O-N-E-S' -> 'Jones'."""

    candidate = text.strip()
    if not _SPELLED_RE.match(candidate):
        return None
    letters = "".join(ch for ch in candidate if ch.isalpha())
    return letters[:1].upper() + letters[1:].lower()


def canonicalize_answer(text: str) -> str:
    cleaned = " ".join(str(text).split())
    if not cleaned:
        return cleaned
    for converter in (spelled_word, spoken_digits):
        converted = converter(cleaned)
        if converted:
            return converted
    return cleaned
