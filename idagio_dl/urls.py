"""Input URL handling: list-file expansion, cleaning, de-duplication, classification."""

import re
from pathlib import Path
from typing import Iterable, List

from .errors import ConfigError
from .models import MediaKind, MediaReference

LIST_FILE_SUFFIX = ".txt"

# Checked in order; the first pattern with a capture wins.
URL_PATTERNS = [
    (re.compile(r"https?://[^/\s]+/albums/([a-zA-Z\d-]+)"), MediaKind.ALBUM),
    (re.compile(r"https?://[^/\s]+/live/event/([a-zA-Z\d-]+)"), MediaKind.VIDEO),
]


def clean_url(url: str) -> str:
    """Trim whitespace, drop any query string and a trailing slash."""
    url = url.strip()
    url = url.split("?", 1)[0]
    if url.endswith("/"):
        url = url[:-1]
    return url


def _contains(seen: Iterable[str], value: str) -> bool:
    value = value.lower()
    return any(s.lower() == value for s in seen)


def read_url_list(path: Path) -> List[str]:
    """Read a newline-delimited URL list, skipping blank lines.

    Raises:
        ConfigError: If the file cannot be read
    """
    try:
        with open(path, encoding="utf-8") as f:
            lines = [line.strip() for line in f]
    except OSError as e:
        raise ConfigError(f"failed to read URL list {path}: {e}") from e

    return [line for line in lines if line]


def process_urls(urls: Iterable[str]) -> List[str]:
    """Expand list files and de-duplicate URLs case-insensitively.

    First-seen order is preserved across direct arguments and list-file lines.
    A list file given twice is only read once.

    Args:
        urls: URLs and/or paths to ``.txt`` files holding one URL per line

    Returns:
        Cleaned, unique URLs
    """
    processed: List[str] = []
    list_paths: List[str] = []

    for url in urls:
        if url.strip().lower().endswith(LIST_FILE_SUFFIX):
            if _contains(list_paths, url):
                continue
            list_paths.append(url)
            candidates = read_url_list(Path(url.strip()))
        else:
            candidates = [url]

        for candidate in candidates:
            cleaned = clean_url(candidate)
            if cleaned and not _contains(processed, cleaned):
                processed.append(cleaned)

    return processed


def classify_url(url: str) -> MediaReference:
    """Match a cleaned URL against the album and live-event patterns."""
    for pattern, kind in URL_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return MediaReference(url=url, slug=match.group(1), kind=kind)

    return MediaReference(url=url, slug="", kind=MediaKind.UNRECOGNIZED)


def classify_urls(urls: Iterable[str]) -> List[MediaReference]:
    return [classify_url(url) for url in urls]
