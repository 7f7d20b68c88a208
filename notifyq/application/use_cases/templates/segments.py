"""SMS segment counting for GSM-7 and UCS-2 encoded content."""

from __future__ import annotations

import math
from dataclasses import dataclass

ENCODING_GSM7 = "GSM-7"
ENCODING_UCS2 = "UCS-2"

GSM7_BASIC_CHARACTERS = frozenset(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞÆæßÉ !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
# Extension table characters are sent as ESC + char and take two septets.
GSM7_EXTENDED_CHARACTERS = frozenset("^{}\\[~]|€\f")

GSM7_SINGLE_SEGMENT = 160
GSM7_MULTI_SEGMENT = 153
UCS2_SINGLE_SEGMENT = 70
UCS2_MULTI_SEGMENT = 67


@dataclass(frozen=True)
class SegmentInfo:
    """Encoding and billing segments of an SMS body."""

    encoding: str
    character_count: int
    units: int
    segment_count: int


def is_gsm7(content: str) -> bool:
    return all(
        char in GSM7_BASIC_CHARACTERS or char in GSM7_EXTENDED_CHARACTERS
        for char in content
    )


def calculate_segments(content: str) -> SegmentInfo:
    """Return how many SMS segments ``content`` occupies."""

    content = content or ""
    if is_gsm7(content):
        encoding = ENCODING_GSM7
        units = sum(2 if char in GSM7_EXTENDED_CHARACTERS else 1 for char in content)
        single, multi = GSM7_SINGLE_SEGMENT, GSM7_MULTI_SEGMENT
    else:
        encoding = ENCODING_UCS2
        # UCS-2 counts UTF-16 code units, so astral characters take two.
        units = len(content.encode("utf-16-le")) // 2
        single, multi = UCS2_SINGLE_SEGMENT, UCS2_MULTI_SEGMENT

    if units == 0:
        segments = 0
    elif units <= single:
        segments = 1
    else:
        segments = math.ceil(units / multi)
    return SegmentInfo(
        encoding=encoding,
        character_count=len(content),
        units=units,
        segment_count=segments,
    )


__all__ = [
    "ENCODING_GSM7",
    "ENCODING_UCS2",
    "SegmentInfo",
    "calculate_segments",
    "is_gsm7",
]
