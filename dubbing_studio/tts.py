"""Remote calls to Gemini: character detection, speech synthesis, voice preview."""

import json
import logging

from google import genai
from google.genai import types

from dubbing_studio.assembly import assemble_wav, decode_audio_payload
from dubbing_studio.constants import (
    TTS_MODEL,
    DETECTION_MODEL,
    NARRATOR_KEY,
    VOICE_PREVIEW_TEXT,
)
from dubbing_studio.credentials import CredentialRotator
from dubbing_studio.errors import NoAudioError

logger = logging.getLogger(__name__)

_DETECTION_PROMPT = (
    'Please read the following script, identify all unique character names '
    '(excluding "{narrator}"), and determine their likely gender (must be "Male", '
    '"Female", or "Neutral"). Return the result as a single JSON array of objects, '
    'where each object has a "name" and "gender" property. If no characters are '
    'found, return an empty array.\n\nScript: """{script}"""'
)

_DETECTION_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "name": types.Schema(type=types.Type.STRING),
            "gender": types.Schema(
                type=types.Type.STRING, enum=["Male", "Female", "Neutral"]
            ),
        },
        required=["name", "gender"],
    ),
)


def _voice_config(voice: str) -> types.VoiceConfig:
    return types.VoiceConfig(
        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
    )


def build_speech_config(
    voice: str | None = None,
    speakers: dict[str, str] | None = None,
) -> types.SpeechConfig:
    """Single-voice config, or a two-speaker config when speakers is given."""
    if speakers:
        if len(speakers) != 2:
            raise ValueError(f"Multi-speaker synthesis needs exactly 2 speakers, got {len(speakers)}")
        return types.SpeechConfig(
            multi_speaker_voice_config=types.MultiSpeakerVoiceConfig(
                speaker_voice_configs=[
                    types.SpeakerVoiceConfig(speaker=name, voice_config=_voice_config(v))
                    for name, v in speakers.items()
                ]
            )
        )
    if not voice:
        raise ValueError("A voice is required for single-voice synthesis")
    return types.SpeechConfig(voice_config=_voice_config(voice))


def _extract_audio(response) -> bytes | None:
    """Pull the first inline audio payload out of a generate_content response."""
    try:
        payload = response.candidates[0].content.parts[0].inline_data.data
    except (AttributeError, IndexError, TypeError):
        return None
    if payload is None:
        return None
    return decode_audio_payload(payload)


def detect_characters(text: str, rotator: CredentialRotator) -> list[dict]:
    """Ask the language model for the script's characters and their genders.

    Returns a list of ``{"name", "gender"}`` dicts, possibly empty.
    """
    prompt = _DETECTION_PROMPT.format(narrator=NARRATOR_KEY, script=text)
    config = types.GenerateContentConfig(
        response_mime_type="application/json",
        response_schema=_DETECTION_SCHEMA,
    )

    def call(api_key: str):
        client = genai.Client(api_key=api_key)
        return client.models.generate_content(
            model=DETECTION_MODEL, contents=prompt, config=config
        )

    response = rotator.call(call)
    records = json.loads(response.text or "[]")
    if not isinstance(records, list):
        raise ValueError(f"Expected a JSON array of characters, got {type(records).__name__}")
    logger.debug("Detected %d character(s)", len(records))
    return [r for r in records if isinstance(r, dict)]


def synthesize_segment(
    text: str,
    rotator: CredentialRotator,
    voice: str | None = None,
    speakers: dict[str, str] | None = None,
) -> bytes:
    """Synthesize one segment and return its raw PCM bytes.

    Pass ``voice`` for a single narrator voice, or ``speakers`` (name -> voice,
    exactly two entries) for a dialogue. Raises NoAudioError if the response
    carries no audio payload.
    """
    speech_config = build_speech_config(voice=voice, speakers=speakers)
    if speakers:
        prompt = f"TTS the following conversation between {' and '.join(speakers)}:\n\n{text}"
    else:
        prompt = f"TTS the following text:\n\n{text}"
    config = types.GenerateContentConfig(
        response_modalities=["AUDIO"], speech_config=speech_config
    )

    def call(api_key: str):
        client = genai.Client(api_key=api_key)
        return client.models.generate_content(
            model=TTS_MODEL, contents=prompt, config=config
        )

    response = rotator.call(call)
    pcm = _extract_audio(response)
    if pcm is None:
        raise NoAudioError(f"No audio in synthesis response for: {text[:50]}...")
    return pcm


def preview_voice(voice: str, rotator: CredentialRotator, text: str = VOICE_PREVIEW_TEXT) -> bytes:
    """Synthesize a short sample in one voice and return it as WAV bytes."""
    pcm = synthesize_segment(text, rotator, voice=voice)
    return assemble_wav([pcm])
