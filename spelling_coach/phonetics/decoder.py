from __future__ import annotations

import re

LETTER_NAMES: dict[str, str] = {
    "ay": "a",
    "aye": "a",
    "bee": "b",
    "be": "b",
    "see": "c",
    "sea": "c",
    "dee": "d",
    "de": "d",
    "ee": "e",
    "e": "e",
    "eff": "f",
    "ef": "f",
    "gee": "g",
    "jee": "g",
    "je": "g",
    "aitch": "h",
    "ach": "h",
    "eye": "i",
    "i": "i",
    "jay": "j",
    "j": "j",
    "kay": "k",
    "k": "k",
    "el": "l",
    "ell": "l",
    "em": "m",
    "en": "n",
    "oh": "o",
    "o": "o",
    "pee": "p",
    "pe": "p",
    "cue": "q",
    "queue": "q",
    "kew": "q",
    "ar": "r",
    "arr": "r",
    "ess": "s",
    "es": "s",
    "tea": "t",
    "tee": "t",
    "te": "t",
    "you": "u",
    "u": "u",
    "vee": "v",
    "ve": "v",
    "double you": "w",
    "double u": "w",
    "double-you": "w",
    "double-u": "w",
    "doubleyou": "w",
    "doubleu": "w",
    "ex": "x",
    "eks": "x",
    "why": "y",
    "y": "y",
    "wye": "y",
    "zed": "z",
    "zee": "z",
    "ze": "z",
}

DOUBLE_FOLLOWERS = {"you", "u"}
HYPHENATED_W = {"double-you", "double-u"}

_TRANSCRIPT_NOISE = re.compile(r"[^a-z'\-\s]+")
_SEPARATED_LETTERS = re.compile(r"[a-z](?:[\s.,\-]+[a-z])+")


def decode_letter_names(transcript: str) -> str:
    """Turn spoken letter names ("bee eye gee") into the literal spelling ("big").

    Unrecognized tokens are dropped, so an empty result means nothing in the
    transcript could be read as a letter.
    """
    tokens = str(transcript or "").lower().strip().split()
    letters: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "double" and i + 1 < len(tokens) and tokens[i + 1] in DOUBLE_FOLLOWERS:
            letters.append("w")
            i += 2
            continue
        if token in HYPHENATED_W:
            letters.append("w")
        elif token in LETTER_NAMES:
            letters.append(LETTER_NAMES[token])
        elif len(token) == 1 and "a" <= token <= "z":
            letters.append(token)
        i += 1
    return "".join(letters)


def normalize_transcript(text: str) -> str:
    """Strip punctuation speech-to-text providers attach to letter names."""
    lowered = str(text or "").lower()
    tokens: list[str] = []
    for token in _TRANSCRIPT_NOISE.sub(" ", lowered).split():
        if token in HYPHENATED_W:
            tokens.append(token)
        else:
            # "bee-eye-gee" is three letter names
            tokens.extend(part for part in token.split("-") if part)
    return " ".join(tokens)


def letters_from_separated(text: str) -> str:
    # "C-O-L-O-U-R", "c. o. l." and "c o l" all read as spelled-out letters
    lowered = str(text or "").strip().lower().rstrip(".")
    if not _SEPARATED_LETTERS.fullmatch(lowered):
        return ""
    return re.sub(r"[^a-z]", "", lowered)


def interpret_transcript(text: str) -> str:
    spelled = decode_letter_names(normalize_transcript(text))
    if spelled:
        return spelled
    return letters_from_separated(text)
