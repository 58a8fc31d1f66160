"""Quality tiers and stream profiles."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ConfigError, UnknownFormatError


class TagFormat(Enum):
    """Tag container written for a stream profile."""

    ID3 = 1
    MP4 = 2
    VORBIS = 3


@dataclass(frozen=True)
class Quality:
    """A rendition family recognised by a substring of its stream URL."""

    key: str
    specs: str
    extension: str
    tag_format: TagFormat


# User-facing tier -> upstream quality code sent to the bulk stream endpoint.
FORMAT_CODES = {
    1: 50,  # AAC 160 / 192
    2: 70,  # MP3 320 / AAC 320
    3: 90,  # 16-bit / 44.1 kHz FLAC
}

# Matched in order, first hit wins.
QUALITY_LIST = (
    Quality("aes-128-ctr/aac-160-", "160 Kbps AAC", ".m4a", TagFormat.MP4),
    Quality("aes-128-ctr/aac-192-", "192 Kbps AAC", ".m4a", TagFormat.MP4),
    Quality("aes-128-ctr/aac-320-", "320 Kbps AAC", ".m4a", TagFormat.MP4),
    Quality("aes-128-ctr/flac-", "16-bit / 44.1 kHz FLAC", ".flac", TagFormat.VORBIS),
    Quality("aes-128-ctr/mp3-320-", "320 Kbps MP3", ".mp3", TagFormat.ID3),
)


def resolve_format(tier) -> int:
    """Map a quality tier (1-3) to the upstream format code.

    Raises:
        ConfigError: If the tier is not a whole number from 1 to 3
    """
    if isinstance(tier, bool) or (isinstance(tier, float) and not tier.is_integer()):
        raise ConfigError(f"format must be between 1 and 3, got {tier!r}")

    try:
        tier = int(tier)
    except (TypeError, ValueError):
        raise ConfigError(f"format must be between 1 and 3, got {tier!r}") from None

    code = FORMAT_CODES.get(tier)
    if code is None:
        raise ConfigError(f"format must be between 1 and 3, got {tier}")
    return code


def find_quality(stream_url: str) -> Optional[Quality]:
    for quality in QUALITY_LIST:
        if quality.key in stream_url:
            return quality
    return None


def query_quality(stream_url: str) -> Quality:
    """Recover the quality profile of a returned stream URL.

    Raises:
        UnknownFormatError: If no profile key occurs in the URL
    """
    quality = find_quality(stream_url)
    if quality is None:
        raise UnknownFormatError(stream_url)
    return quality
