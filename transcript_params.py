"""
Synthesized params for the youtubei get_transcript endpoint.

When the watch page carries no getTranscriptEndpoint token we rebuild one.
The token is a protobuf message, base64 encoded, with '=' padding written
as a literal '%3D':

    1: video id                      (string)
    2: language blob                 (string, itself a base64'd message)
    3: 1                             (varint)
    5: transcript panel identifier   (string)
    6: flag                          (varint, 0 or 1)
    7: 1                             (varint)
    8: 1                             (varint)

The language blob is ``{1: "asr" | "", 2: <lang>, 3: ""}`` encoded the same
way. Which (asr, flag) pair the endpoint accepts differs per video, so all
four combinations are produced and tried in order.
"""

import base64
from typing import Iterable, List, Optional, Tuple

from transcript_config import DEFAULT_CANDIDATE_ORDER

TRANSCRIPT_PANEL_ID = "engagement-panel-searchable-transcript-search-panel"

ASR_KIND = "asr"

# Protobuf wire types
WIRE_VARINT = 0
WIRE_LEN = 2


def _encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint fields are unsigned")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _field_key(field_number: int, wire_type: int) -> bytes:
    return _encode_varint((field_number << 3) | wire_type)


def encode_string_field(field_number: int, value: str) -> bytes:
    data = value.encode("utf-8")
    return _field_key(field_number, WIRE_LEN) + _encode_varint(len(data)) + data


def encode_varint_field(field_number: int, value: int) -> bytes:
    return _field_key(field_number, WIRE_VARINT) + _encode_varint(value)


def _b64_with_escaped_padding(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").replace("=", "%3D")


def build_language_blob(lang: str = "en", asr: bool = True) -> str:
    """
    Field 2 of the params message.

        >>> build_language_blob("en", asr=True)
        'CgNhc3ISAmVuGgA%3D'
        >>> build_language_blob("en", asr=False)
        'CgASAmVuGgA%3D'
    """
    inner = (
        encode_string_field(1, ASR_KIND if asr else "")
        + encode_string_field(2, lang)
        + encode_string_field(3, "")
    )
    return _b64_with_escaped_padding(inner)


def encode_transcript_params(video_id: str, lang: str = "en", asr: bool = True, flag: int = 1) -> str:
    """Encode one params token for ``video_id``."""
    message = (
        encode_string_field(1, video_id)
        + encode_string_field(2, build_language_blob(lang, asr))
        + encode_varint_field(3, 1)
        + encode_string_field(5, TRANSCRIPT_PANEL_ID)
        + encode_varint_field(6, flag)
        + encode_varint_field(7, 1)
        + encode_varint_field(8, 1)
    )
    return _b64_with_escaped_padding(message)


def synthesize_transcript_params(video_id: str, lang: str = "en",
                                 order: Optional[Iterable[Tuple[bool, int]]] = None) -> List[str]:
    """
    Candidate params tokens for a video, in the order they should be tried.

    The default order (ASR/1, plain/0, ASR/0, plain/1) reflects how often
    each combination is accepted; pass ``order`` to override it.
    """
    order = DEFAULT_CANDIDATE_ORDER if order is None else order
    tokens: List[str] = []
    for asr, flag in order:
        token = encode_transcript_params(video_id, lang or "en", asr=asr, flag=flag)
        if token not in tokens:
            tokens.append(token)
    return tokens


# --- Decoding, for diagnostics and tests ---

def _decode_varint(data: bytes, pos: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7


def decode_params_bytes(token: str) -> bytes:
    """Reverse the '%3D' substitution and base64 decode."""
    return base64.b64decode(token.replace("%3D", "="))


def decode_transcript_params(token: str) -> dict:
    """
    Decode a params token into ``{field_number: value}``.

    String fields come back as str, varints as int. Raises ValueError on
    malformed input.
    """
    data = decode_params_bytes(token)
    fields = {}
    pos = 0
    while pos < len(data):
        key, pos = _decode_varint(data, pos)
        field_number, wire_type = key >> 3, key & 0x07
        if wire_type == WIRE_VARINT:
            value, pos = _decode_varint(data, pos)
        elif wire_type == WIRE_LEN:
            length, pos = _decode_varint(data, pos)
            if pos + length > len(data):
                raise ValueError("truncated length-delimited field")
            value = data[pos:pos + length].decode("utf-8")
            pos += length
        else:
            raise ValueError(f"unsupported wire type {wire_type}")
        fields[field_number] = value
    return fields
