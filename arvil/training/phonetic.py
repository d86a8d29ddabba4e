"""NATO phonetic alphabet transcription and scoring."""

from __future__ import annotations

import re
from dataclasses import dataclass

NATO_ALPHABET: dict[str, str] = {
    "A": "Alpha", "B": "Bravo", "C": "Charlie", "D": "Delta",
    "E": "Echo", "F": "Foxtrot", "G": "Golf", "H": "Hotel",
    "I": "India", "J": "Juliet", "K": "Kilo", "L": "Lima",
    "M": "Mike", "N": "November", "O": "Oscar", "P": "Papa",
    "Q": "Quebec", "R": "Romeo", "S": "Sierra", "T": "Tango",
    "U": "Uniform", "V": "Victor", "W": "Whiskey", "X": "X-ray",
    "Y": "Yankee", "Z": "Zulu",
    "0": "Zero", "1": "One", "2": "Two", "3": "Three",
    "4": "Four", "5": "Five", "6": "Six", "7": "Seven",
    "8": "Eight", "9": "Nine",
}

_WORD_TO_CHAR = {word.lower(): char for char, word in NATO_ALPHABET.items()}


@dataclass(frozen=True)
class PhoneticScore:
    """Per-word match flags and overall accuracy (0-100)."""

    matches: list[bool]
    accuracy: float


def plate_to_nato(plate: str) -> list[str]:
    """Spell a plate in NATO words; characters without a word pass through."""
    cleaned = re.sub(r"\s", "", plate).upper()
    return [NATO_ALPHABET.get(char, char) for char in cleaned]


def nato_to_short(nato_word: str) -> str:
    """Character for a NATO word, or the word unchanged if unknown."""
    return _WORD_TO_CHAR.get(nato_word.lower(), nato_word)


def check_nato_answer(expected: list[str], user_input: str) -> PhoneticScore:
    """
    Score a typed transcription against the expected words.

    Words are compared by position. A word matches when it is equal
    (case-insensitive) or when the learner typed at least three characters
    whose first three match the expected word.
    """
    user_words = [w.lower() for w in re.split(r"[\s,]+", user_input.strip()) if w]

    matches = []
    for i, word in enumerate(expected):
        if i >= len(user_words):
            matches.append(False)
            continue
        user = user_words[i]
        exp = word.lower()
        matches.append(user == exp or (len(user) >= 3 and exp.startswith(user[:3])))

    correct = sum(matches)
    accuracy = correct / len(expected) * 100 if expected else 0.0
    return PhoneticScore(matches=matches, accuracy=accuracy)
