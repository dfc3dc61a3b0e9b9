"""Voice catalog, category groupings, and character-to-voice defaults."""

import logging

from dubbing_studio.constants import (
    NARRATOR_KEY,
    DEFAULT_MALE_VOICE,
    DEFAULT_FEMALE_VOICE,
    DEFAULT_NEUTRAL_VOICE,
)
from dubbing_studio.models import CharacterMap, Voice

logger = logging.getLogger(__name__)

# Base voices
KORE = Voice("Kore", "Kore", "Female")
ZEPHYR = Voice("Zephyr", "Zephyr", "Female")
PUCK = Voice("Puck", "Puck", "Male")
CHARON = Voice("Charon", "Charon", "Male")
FENRIR = Voice("Fenrir", "Fenrir", "Male")

# Same provider voice, different label per context
CHARON_DEEP = Voice("Charon", "Charon (Deep)", "Male")
FENRIR_DEEP = Voice("Fenrir", "Fenrir (Deep)", "Male")
CHARON_SERIOUS = Voice("Charon", "Charon (Serious)", "Male")
FENRIR_SERIOUS = Voice("Fenrir", "Fenrir (Serious)", "Male")

FEMALE_VOICES = [KORE, ZEPHYR]
MALE_VOICES = [PUCK, CHARON, FENRIR]

_ANNOUNCER = [KORE, PUCK]
_INSPIRATIONAL = [ZEPHYR]
_HORROR = [CHARON_DEEP, FENRIR_DEEP]
_DRAMA = [CHARON_SERIOUS, FENRIR_SERIOUS]

THEME_VOICES: dict[str, list[Voice]] = {
    "Drafts": _ANNOUNCER,
    "Short Story": _ANNOUNCER + _INSPIRATIONAL,
    "Fun Facts": _ANNOUNCER,
    "Quotes": _INSPIRATIONAL + _DRAMA,
    "Poetry": _INSPIRATIONAL,
    "Education": _ANNOUNCER,
    "Meditation": _INSPIRATIONAL,
    "Product": _ANNOUNCER,
    "Horror": _HORROR,
    "Ghost Story": _HORROR,
    "Spiritual Stories": _INSPIRATIONAL + _HORROR,
    "Dark Side of Truth": _DRAMA,
    "War": _DRAMA,
    "Fantasy": FEMALE_VOICES + MALE_VOICES,
    "Science Fiction": _ANNOUNCER + _DRAMA,
    "Mystery": _HORROR,
    "Drama": FEMALE_VOICES + MALE_VOICES,
    "Fairy Tale": [KORE, PUCK, ZEPHYR],
    "News": _ANNOUNCER,
    "Animal World": _ANNOUNCER,
    "All Female Voices": FEMALE_VOICES,
    "All Male Voices": MALE_VOICES,
}

LOCALE_VOICES: dict[str, list[Voice]] = {
    "Vietnam": FEMALE_VOICES + MALE_VOICES,
    "USA": [KORE, ZEPHYR, PUCK],
    "UK": [PUCK, FENRIR_SERIOUS],
    "France": [ZEPHYR],
    "Russia": [CHARON_DEEP, FENRIR_DEEP],
    "Korea": [KORE, PUCK],
    "Japan": [ZEPHYR, PUCK],
    "China": [KORE, CHARON_SERIOUS],
    "Portugal": [KORE, PUCK],
    "Spain": [ZEPHYR, CHARON],
}

VOICE_CATEGORIES: dict[str, list[Voice]] = {**THEME_VOICES, **LOCALE_VOICES}


def all_voices() -> list[Voice]:
    """Unique provider voices across every category, in first-seen order."""
    seen = set()
    voices = []
    for voice in FEMALE_VOICES + MALE_VOICES:
        if voice.name not in seen:
            seen.add(voice.name)
            voices.append(voice)
    return voices


def find_voice(name: str) -> Voice | None:
    """Look up a provider voice by name, case-insensitively."""
    for voice in all_voices():
        if voice.name.lower() == name.lower():
            return voice
    return None


def categories_for(voice_name: str) -> list[str]:
    """Names of every category that lists the given provider voice."""
    return [
        category for category, voices in VOICE_CATEGORIES.items()
        if any(v.name == voice_name for v in voices)
    ]


def default_voice_for_gender(gender: str) -> str:
    if gender == "Male":
        return DEFAULT_MALE_VOICE
    if gender == "Female":
        return DEFAULT_FEMALE_VOICE
    return DEFAULT_NEUTRAL_VOICE


def narrator_only_map() -> CharacterMap:
    return {NARRATOR_KEY: DEFAULT_NEUTRAL_VOICE}


def is_narrator(name: str) -> bool:
    return name.strip().lower() == NARRATOR_KEY.lower()


def build_character_map(detected: list[dict]) -> CharacterMap:
    """Turn detection records into a CharacterMap with gender-based voices.

    Records are ``{"name": ..., "gender": ...}``. Names matching the narrator
    key and records without a name are skipped. The narrator always gets the
    neutral default voice.
    """
    character_map = narrator_only_map()
    for record in detected:
        name = (record.get("name") or "").strip()
        if not name or is_narrator(name):
            continue
        gender = record.get("gender", "Neutral")
        if name in character_map:
            logger.debug("Duplicate character %r in detection result", name)
        character_map[name] = default_voice_for_gender(gender)
    return character_map
