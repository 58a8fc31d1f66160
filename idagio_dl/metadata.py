"""Track metadata: filename sanitising, tag-ready records and tag writers.

Each container gets its own writer with the same small set of setters; the
dispatcher picks one by ``TagFormat`` and only passes values that are worth
writing (non-empty strings, numbers greater than zero).
"""

import sys
from pathlib import Path
from typing import Dict, Protocol, Type

from mutagen.flac import FLAC, Picture
from mutagen.id3 import (
    APIC,
    ID3,
    TALB,
    TCOP,
    TDRC,
    TIT2,
    TPE1,
    TPE2,
    TRCK,
    TXXX,
    ID3NoHeaderError,
)
from mutagen.mp4 import MP4, MP4Cover, MP4FreeForm

from .models import AlbumRecord, ParsedTrackMeta, PlaylistRecord, TrackRecord
from .quality import TagFormat

UNSAFE_CHARS = ["/", "\\", ":", "*", "?", '"', "<", ">", "|"]
COVER_MIME = "image/jpeg"
FRONT_COVER = 3


def sanitize_filename(text: str) -> str:
    """Sanitize text for use in filename.

    Args:
        text: Text to sanitize

    Returns:
        Sanitized text
    """
    for char in UNSAFE_CHARS:
        text = text.replace(char, "_")
    text = text.strip(". ")
    return text


def album_folder_name(album: AlbumRecord) -> str:
    """``"<primary artist> - <album title>"``, sanitised."""
    if album.primary_artist:
        return sanitize_filename(f"{album.primary_artist} - {album.title}")
    return sanitize_filename(album.title)


def track_file_stem(meta: ParsedTrackMeta) -> str:
    """``"<2-digit track number>. <title>"``, without extension."""
    return f"{meta.track_num:02d}. {sanitize_filename(meta.title)}"


def build_album_meta(
    album: AlbumRecord,
    track: TrackRecord,
    track_num: int,
    track_total: int,
    cover_data: bytes = b"",
) -> ParsedTrackMeta:
    """Flatten album and track metadata into one tag-ready record."""
    return ParsedTrackMeta(
        album_title=album.title,
        album_artist=album.primary_artist,
        artist=track.artist,
        copyright=album.copyright,
        title=track.title,
        track_num=track_num,
        track_total=track_total,
        upc=album.upc,
        year=album.copyright_year,
        cover_data=cover_data,
    )


def build_playlist_meta(
    playlist: PlaylistRecord, track: TrackRecord, track_num: int, track_total: int
) -> ParsedTrackMeta:
    """Tag-ready record for a playlist track; the curator stands in as album artist."""
    return ParsedTrackMeta(
        album_title=playlist.title,
        album_artist=playlist.curator,
        artist=track.artist,
        title=track.title,
        track_num=track_num,
        track_total=track_total,
    )


class TagWriter(Protocol):
    """Setters shared by every container-specific writer."""

    def set_album(self, value: str) -> None: ...

    def set_album_artist(self, value: str) -> None: ...

    def set_artist(self, value: str) -> None: ...

    def set_title(self, value: str) -> None: ...

    def set_copyright(self, value: str) -> None: ...

    def set_upc(self, value: str) -> None: ...

    def set_track_number(self, number: int, total: int) -> None: ...

    def set_year(self, year: int) -> None: ...

    def set_cover_art(self, data: bytes) -> None: ...

    def save(self) -> None: ...


class ID3TagWriter:
    """ID3v2.4 tags for MP3 files."""

    def __init__(self, path: Path):
        self.path = path
        try:
            self.tags = ID3(str(path))
        except ID3NoHeaderError:
            self.tags = ID3()

    def set_album(self, value: str):
        self.tags.add(TALB(encoding=3, text=value))

    def set_album_artist(self, value: str):
        self.tags.add(TPE2(encoding=3, text=value))

    def set_artist(self, value: str):
        self.tags.add(TPE1(encoding=3, text=value))

    def set_title(self, value: str):
        self.tags.add(TIT2(encoding=3, text=value))

    def set_copyright(self, value: str):
        self.tags.add(TCOP(encoding=3, text=value))

    def set_upc(self, value: str):
        self.tags.add(TXXX(encoding=3, desc="UPC", text=value))

    def set_track_number(self, number: int, total: int):
        text = f"{number}/{total}" if total > 0 else str(number)
        self.tags.add(TRCK(encoding=3, text=text))

    def set_year(self, year: int):
        self.tags.add(TDRC(encoding=3, text=str(year)))

    def set_cover_art(self, data: bytes):
        self.tags.add(
            APIC(encoding=3, mime=COVER_MIME, type=FRONT_COVER, desc="", data=data)
        )

    def save(self):
        self.tags.save(str(self.path), v2_version=4)


class MP4TagWriter:
    """iTunes-style atoms for M4A files."""

    def __init__(self, path: Path):
        self.audio = MP4(str(path))
        if self.audio.tags is None:
            self.audio.add_tags()

    def set_album(self, value: str):
        self.audio["\xa9alb"] = [value]

    def set_album_artist(self, value: str):
        self.audio["aART"] = [value]

    def set_artist(self, value: str):
        self.audio["\xa9ART"] = [value]

    def set_title(self, value: str):
        self.audio["\xa9nam"] = [value]

    def set_copyright(self, value: str):
        self.audio["cprt"] = [value]

    def set_upc(self, value: str):
        self.audio["----:com.apple.iTunes:UPC"] = [MP4FreeForm(value.encode("utf-8"))]

    def set_track_number(self, number: int, total: int):
        # trkn is always a (number, total) pair; 0 marks an unknown total
        if total > 0:
            self.audio["trkn"] = [(number, total)]
        else:
            self.audio["trkn"] = [(number, 0)]

    def set_year(self, year: int):
        self.audio["\xa9day"] = [str(year)]

    def set_cover_art(self, data: bytes):
        self.audio["covr"] = [MP4Cover(data, imageformat=MP4Cover.FORMAT_JPEG)]

    def save(self):
        self.audio.save()


class VorbisTagWriter:
    """Vorbis comments for FLAC files."""

    def __init__(self, path: Path):
        self.audio = FLAC(str(path))
        if self.audio.tags is None:
            self.audio.add_tags()

    def _set(self, key: str, value: str):
        self.audio[key] = [value]

    def set_album(self, value: str):
        self._set("ALBUM", value)

    def set_album_artist(self, value: str):
        self._set("ALBUMARTIST", value)

    def set_artist(self, value: str):
        self._set("ARTIST", value)

    def set_title(self, value: str):
        self._set("TITLE", value)

    def set_copyright(self, value: str):
        self._set("COPYRIGHT", value)

    def set_upc(self, value: str):
        self._set("UPC", value)

    def set_track_number(self, number: int, total: int):
        self._set("TRACKNUMBER", str(number))
        if total > 0:
            self._set("TRACKTOTAL", str(total))

    def set_year(self, year: int):
        self._set("DATE", str(year))

    def set_cover_art(self, data: bytes):
        picture = Picture()
        picture.type = FRONT_COVER
        picture.mime = COVER_MIME
        picture.data = data
        self.audio.add_picture(picture)

    def save(self):
        self.audio.save()


TAG_WRITERS: Dict[TagFormat, Type] = {
    TagFormat.ID3: ID3TagWriter,
    TagFormat.MP4: MP4TagWriter,
    TagFormat.VORBIS: VorbisTagWriter,
}


def apply_meta(writer: TagWriter, meta: ParsedTrackMeta):
    """Copy a record onto a writer, skipping empty strings and non-positive numbers."""
    for setter, value in (
        (writer.set_album, meta.album_title),
        (writer.set_album_artist, meta.album_artist),
        (writer.set_artist, meta.artist),
        (writer.set_title, meta.title),
        (writer.set_copyright, meta.copyright),
        (writer.set_upc, meta.upc),
    ):
        if value:
            setter(value)

    if meta.track_num > 0:
        writer.set_track_number(meta.track_num, meta.track_total)
    if meta.year > 0:
        writer.set_year(meta.year)
    if meta.cover_data:
        writer.set_cover_art(meta.cover_data)


def write_tags(track_path: Path, tag_format: TagFormat, meta: ParsedTrackMeta):
    """Write ``meta`` into the file's native tag container and save it in place."""
    writer_class = TAG_WRITERS[tag_format]
    writer = writer_class(track_path)
    apply_meta(writer, meta)
    writer.save()


def try_write_tags(track_path: Path, tag_format: TagFormat, meta: ParsedTrackMeta) -> bool:
    """Write tags, reporting a failure instead of raising.

    The media file is kept either way.

    Returns:
        True if tags were written
    """
    try:
        write_tags(track_path, tag_format, meta)
        return True
    except Exception as e:
        print(f"⚠️ Failed to write tags to {track_path.name}: {e}", file=sys.stderr)
        return False

