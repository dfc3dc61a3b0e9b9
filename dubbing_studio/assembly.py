"""Assemble raw PCM fragments into a single WAV file."""

import base64
import binascii
import struct
from dataclasses import dataclass

from dubbing_studio.constants import (
    SAMPLE_RATE,
    NUM_CHANNELS,
    BITS_PER_SAMPLE,
    WAV_HEADER_SIZE,
)
from dubbing_studio.errors import NoAudioError

# RIFF/WAVE header with a single 16-byte PCM fmt chunk, little-endian
_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"
_PCM_FORMAT_TAG = 1
_FMT_CHUNK_SIZE = 16


@dataclass(frozen=True)
class WavHeader:
    riff_size: int       # file size - 8
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def wav_header(
    data_size: int,
    sample_rate: int = SAMPLE_RATE,
    channels: int = NUM_CHANNELS,
    bits_per_sample: int = BITS_PER_SAMPLE,
) -> bytes:
    """Build the 44-byte canonical WAV header for a PCM payload of data_size bytes."""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    return struct.pack(
        _HEADER_FORMAT,
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        _FMT_CHUNK_SIZE,
        _PCM_FORMAT_TAG,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_size,
    )


def parse_wav_header(data: bytes) -> WavHeader:
    """Read back the fields of a header produced by wav_header()."""
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(data)} bytes")

    (riff, riff_size, wave, fmt, fmt_size, format_tag, channels, sample_rate,
     byte_rate, block_align, bits_per_sample, data_id, data_size) = struct.unpack(
        _HEADER_FORMAT, data[:WAV_HEADER_SIZE]
    )
    if (riff, wave, fmt, data_id) != (b"RIFF", b"WAVE", b"fmt ", b"data"):
        raise ValueError("Not a canonical PCM WAV header")
    if fmt_size != _FMT_CHUNK_SIZE:
        raise ValueError(f"Unexpected fmt chunk size: {fmt_size}")

    return WavHeader(
        riff_size=riff_size,
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


def decode_audio_payload(payload: bytes | str) -> bytes:
    """Return raw PCM from a provider payload.

    The SDK hands back bytes; the wire format is base64 text, which is
    decoded here when a str arrives.
    """
    if isinstance(payload, str):
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise NoAudioError(f"Audio payload is not valid base64: {e}") from e
    return bytes(payload)


def assemble_wav(fragments: list[bytes]) -> bytes:
    """Concatenate PCM fragments in order behind a WAV header.

    Samples are copied as-is. Raises NoAudioError if there are no fragments
    or they hold no samples at all.
    """
    pcm = b"".join(fragments)
    if not pcm:
        raise NoAudioError()

    return wav_header(len(pcm)) + pcm
