"""Records for catalog metadata, streams and video renditions.

Each record is an immutable dataclass with a ``from_payload`` constructor that
reads the API's JSON shape and raises ``MalformedResponseError`` when a field is
missing or has the wrong type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from .errors import MalformedResponseError


def require_field(payload: Any, key: str, kind=None) -> Any:
    """Fetch ``payload[key]``, checking presence and (optionally) type."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"expected an object while reading '{key}', got {type(payload).__name__}"
        )
    if key not in payload:
        raise MalformedResponseError(f"missing field '{key}' in response")

    value = payload[key]
    if kind is not None and not isinstance(value, kind):
        raise MalformedResponseError(
            f"field '{key}' has unexpected type {type(value).__name__}"
        )
    return value


def normalize_id(value: Any) -> str:
    """Track ids arrive as int or str upstream; use the string form everywhere."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise MalformedResponseError(f"invalid id value: {value!r}")
    return str(value)


def unwrap_result(payload: Any) -> dict:
    """Unwrap the ``{"result": ...}`` envelope used by single-entity endpoints."""
    return require_field(payload, "result", dict)


class MediaKind(Enum):
    """What a user-supplied URL points at."""

    ALBUM = "album"
    VIDEO = "video"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class MediaReference:
    """One cleaned input URL and its classification."""

    url: str
    slug: str
    kind: MediaKind


@dataclass(frozen=True)
class Session:
    """Authenticated API session.

    Returned by ``IdagioClient.authenticate`` and passed explicitly to every
    call that needs authorization.
    """

    access_token: str
    plan_display_name: str
    premium: bool
    allow_concert_playback: bool

    @classmethod
    def from_payload(cls, payload: dict) -> "Session":
        user = require_field(payload, "user", dict)
        features = require_field(user, "features", dict)
        gch = require_field(features, "gch", dict)
        return cls(
            access_token=require_field(payload, "access_token", str),
            plan_display_name=user.get("plan_display_name") or "<no subscription>",
            premium=bool(require_field(user, "premium")),
            allow_concert_playback=bool(require_field(gch, "allow_concert_playback")),
        )

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


@dataclass(frozen=True)
class TrackRecord:
    """One track of an album or playlist."""

    id: str
    piece_title: str
    work_title: str
    persons: Tuple[str, ...]
    position: int

    @classmethod
    def from_payload(cls, payload: dict, default_position: int = 0) -> "TrackRecord":
        piece = require_field(payload, "piece", dict)
        work = require_field(require_field(piece, "workpart", dict), "work", dict)

        persons = []
        for author in require_field(work, "authors", list):
            for person in require_field(author, "persons", list):
                persons.append(require_field(person, "name", str))

        position = payload.get("position", default_position)
        if isinstance(position, bool) or not isinstance(position, int):
            raise MalformedResponseError(f"invalid track position: {position!r}")

        return cls(
            id=normalize_id(require_field(payload, "id")),
            piece_title=require_field(piece, "title", str),
            work_title=require_field(work, "title", str),
            persons=tuple(persons),
            position=position,
        )

    @property
    def title(self) -> str:
        """Work title, followed by the piece title when they differ."""
        if self.work_title != self.piece_title:
            return f"{self.work_title} - {self.piece_title}"
        return self.work_title

    @property
    def artist(self) -> str:
        return ", ".join(self.persons)


def _parse_tracks(payload: dict) -> List[TrackRecord]:
    return [
        TrackRecord.from_payload(track, default_position=index)
        for index, track in enumerate(require_field(payload, "tracks", list), 1)
    ]


@dataclass(frozen=True)
class AlbumRecord:
    """Album-level metadata as returned by ``v2.0/albums/<slug>``."""

    title: str
    artists: Tuple[str, ...]
    copyright: str
    copyright_year: int
    upc: str
    image_url: str
    tracks: Tuple[TrackRecord, ...]
    track_ids: Tuple[str, ...]
    booklet_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "AlbumRecord":
        participants = require_field(payload, "participants", list)
        year = payload.get("copyrightYear") or 0
        if isinstance(year, bool) or not isinstance(year, int):
            raise MalformedResponseError(f"invalid copyright year: {year!r}")

        return cls(
            title=require_field(payload, "title", str),
            artists=tuple(require_field(p, "name", str) for p in participants),
            copyright=payload.get("copyright") or "",
            copyright_year=year,
            upc=payload.get("upc") or "",
            image_url=payload.get("imageUrl") or "",
            tracks=tuple(_parse_tracks(payload)),
            track_ids=tuple(
                normalize_id(i) for i in require_field(payload, "trackIds", list)
            ),
            booklet_url=payload.get("bookletUrl"),
        )

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    def ordered_tracks(self) -> List[TrackRecord]:
        """Tracks in ascending position order."""
        return sorted(self.tracks, key=lambda t: t.position)


@dataclass(frozen=True)
class PlaylistRecord:
    """A curated playlist: like an album, with a curator instead of participants."""

    title: str
    curator: str
    tracks: Tuple[TrackRecord, ...]
    track_ids: Tuple[str, ...]

    @classmethod
    def from_payload(cls, payload: dict) -> "PlaylistRecord":
        curator = require_field(payload, "curator", dict)
        return cls(
            title=require_field(payload, "title", str),
            curator=require_field(curator, "name", str),
            tracks=tuple(_parse_tracks(payload)),
            track_ids=tuple(
                normalize_id(i) for i in require_field(payload, "trackIds", list)
            ),
        )

    def ordered_tracks(self) -> List[TrackRecord]:
        return sorted(self.tracks, key=lambda t: t.position)


@dataclass(frozen=True)
class StreamDescriptor:
    """A signed, time-limited stream URL for one track."""

    track_id: str
    url: str

    @classmethod
    def from_payload(cls, payload: dict) -> "StreamDescriptor":
        return cls(
            track_id=normalize_id(require_field(payload, "id")),
            url=require_field(payload, "url", str),
        )


@dataclass(frozen=True)
class Cursor:
    """Continuation tokens of one page of a paginated listing."""

    prev: Optional[str] = None
    next: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Cursor":
        cursor = require_field(require_field(payload, "meta", dict), "cursor", dict)
        return cls(prev=cursor.get("prev"), next=cursor.get("next"))


@dataclass(frozen=True)
class VideoRecord:
    """A live-concert event and where its video is hosted."""

    name: str
    source: str
    video_id: str

    @classmethod
    def from_payload(cls, payload: dict) -> "VideoRecord":
        video = require_field(payload, "video", dict)
        return cls(
            name=require_field(video, "name", str),
            source=require_field(video, "source", str),
            video_id=normalize_id(require_field(video, "videoId")),
        )


@dataclass(frozen=True)
class VideoManifest:
    """Player config of an embedded video: where the rendition master lives."""

    master_url: str

    @classmethod
    def from_payload(cls, payload: dict) -> "VideoManifest":
        files = require_field(require_field(payload, "request", dict), "files", dict)
        cdns = require_field(require_field(files, "dash", dict), "cdns", dict)
        cdn = require_field(cdns, "akfire_interconnect_quic", dict)
        return cls(master_url=require_field(cdn, "avc_url", str))


@dataclass(frozen=True)
class AudioRendition:
    id: str
    base_url: str
    avg_bitrate: int
    codecs: str

    @classmethod
    def from_payload(cls, payload: dict) -> "AudioRendition":
        return cls(
            id=require_field(payload, "id", str),
            base_url=require_field(payload, "base_url", str),
            avg_bitrate=int(require_field(payload, "avg_bitrate", (int, float))),
            codecs=require_field(payload, "codecs", str),
        )


@dataclass(frozen=True)
class VideoRendition:
    id: str
    base_url: str
    avg_bitrate: int
    width: int
    height: int
    framerate: float

    @classmethod
    def from_payload(cls, payload: dict) -> "VideoRendition":
        return cls(
            id=require_field(payload, "id", str),
            base_url=require_field(payload, "base_url", str),
            avg_bitrate=int(require_field(payload, "avg_bitrate", (int, float))),
            width=int(require_field(payload, "width", (int, float))),
            height=int(require_field(payload, "height", (int, float))),
            framerate=float(require_field(payload, "framerate", (int, float))),
        )


@dataclass(frozen=True)
class RenditionSet:
    """Audio and video renditions listed by a rendition master document."""

    audio: Tuple[AudioRendition, ...]
    video: Tuple[VideoRendition, ...]

    @classmethod
    def from_payload(cls, payload: dict) -> "RenditionSet":
        return cls(
            audio=tuple(
                AudioRendition.from_payload(a) for a in require_field(payload, "audio", list)
            ),
            video=tuple(
                VideoRendition.from_payload(v) for v in require_field(payload, "video", list)
            ),
        )


@dataclass(frozen=True)
class ParsedTrackMeta:
    """Tag-ready values for one track."""

    album_title: str = ""
    album_artist: str = ""
    artist: str = ""
    copyright: str = ""
    title: str = ""
    track_num: int = 0
    track_total: int = 0
    upc: str = ""
    year: int = 0
    cover_data: bytes = field(default=b"", repr=False)
