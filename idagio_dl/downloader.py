"""Main downloader orchestrator."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .client import IdagioClient
from .config import Config
from .errors import PlanRestrictionError
from .metadata import (
    album_folder_name,
    build_album_meta,
    build_playlist_meta,
    sanitize_filename,
    track_file_stem,
    try_write_tags,
)
from .models import (
    MediaKind,
    MediaReference,
    ParsedTrackMeta,
    Session,
    StreamDescriptor,
    TrackRecord,
)
from .quality import query_quality
from .transfer import INCOMPLETE_SUFFIX, acquire_track, download, temp_file_cleanup
from .urls import classify_urls, process_urls
from .video import (
    AUDIO_TEMP_NAME,
    VIDEO_TEMP_NAME,
    make_base_url,
    mux_mp4,
    rendition_url,
    select_audio,
    select_video,
    video_file_name,
)

COVER_FILE_NAME = "folder.jpg"


class Downloader:
    """Runs every reference of a batch through the acquisition pipeline."""

    def __init__(
        self,
        config: Config,
        client: IdagioClient,
        session: Session,
        format_code: int,
        output_dir: Optional[Path] = None,
        keep_covers: Optional[bool] = None,
        write_covers: Optional[bool] = None,
    ):
        """Initialize downloader.

        Args:
            config: Configuration object
            client: API client
            session: Authenticated session from ``client.authenticate``
            format_code: Upstream quality code (see ``quality.resolve_format``)
            output_dir: Override output directory
            keep_covers: Override ``keep_covers`` from config
            write_covers: Override ``write_covers`` from config
        """
        self.config = config
        self.client = client
        self.session = session
        self.format_code = format_code
        self.output_dir = output_dir or config.output_dir
        self.keep_covers = config.keep_covers if keep_covers is None else keep_covers
        self.write_covers = config.write_covers if write_covers is None else write_covers

        # Ensure output directory exists
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def run(self, urls: Iterable[str]) -> Dict[str, int]:
        """Download every album/concert URL, one after another.

        A failing reference is reported and logged; the batch carries on.

        Returns:
            Counts of ``succeeded``, ``failed`` and ``invalid`` references
        """
        summary = {"succeeded": 0, "failed": 0, "invalid": 0}

        for ref in classify_urls(process_urls(urls)):
            if ref.kind is MediaKind.UNRECOGNIZED:
                print(f"⚠️ Invalid URL: {ref.url}", file=sys.stderr)
                summary["invalid"] += 1
                continue

            if self.process_reference(ref):
                summary["succeeded"] += 1
            else:
                summary["failed"] += 1
            print()

        return summary

    def process_reference(self, ref: MediaReference) -> bool:
        """Process one classified reference, containing its failure.

        Returns:
            True unless the reference failed
        """
        if ref.kind is MediaKind.ALBUM:
            handler, label = self.download_album, "Album"
        else:
            handler, label = self.download_video, "Video"

        try:
            handler(ref.slug)
            return True
        except Exception as e:
            print(f"❌ {label} failed.\n{e}", file=sys.stderr)
            self._log_failure(ref.url, str(e))
            return False

    def download_album(self, slug: str) -> Path:
        """Download every available track of an album.

        A failing track aborts the rest of the album.

        Returns:
            Album folder
        """
        album = self.client.get_album(self.session, slug)
        tracks = album.ordered_tracks()

        folder_name = album_folder_name(album)
        print(f"💿 {folder_name}")
        album_path = self.output_dir / folder_name
        album_path.mkdir(parents=True, exist_ok=True)

        streams = self.client.get_streams(self.session, album.track_ids, self.format_code)

        cover_data = b""
        if (self.keep_covers or self.write_covers) and album.image_url:
            cover_data = self.client.get_bytes(album.image_url)
            if self.keep_covers:
                (album_path / COVER_FILE_NAME).write_bytes(cover_data)

        embedded_cover = cover_data if self.write_covers else b""
        total = len(tracks)
        self._process_tracks(
            tracks,
            streams,
            album_path,
            lambda track, num: build_album_meta(album, track, num, total, embedded_cover),
        )
        return album_path

    def download_playlist(self, slug: str) -> Path:
        """Download a playlist into ``"<curator> - <title>"``."""
        playlist = self.client.get_playlist(self.session, slug)
        tracks = playlist.ordered_tracks()

        folder_name = sanitize_filename(f"{playlist.curator} - {playlist.title}")
        print(f"📃 {folder_name}")
        playlist_path = self.output_dir / folder_name
        playlist_path.mkdir(parents=True, exist_ok=True)

        streams = self.client.get_streams(
            self.session, playlist.track_ids, self.format_code
        )
        total = len(tracks)
        self._process_tracks(
            tracks,
            streams,
            playlist_path,
            lambda track, num: build_playlist_meta(playlist, track, num, total),
        )
        return playlist_path

    def download_artist(self, slug: str, filters: Optional[str] = None) -> Dict[str, int]:
        """Download every album of an artist, each as its own reference."""
        album_slugs = self.client.get_artist_albums(self.session, slug, filters)
        print(f"🎼 Found {len(album_slugs)} albums")
        print()

        summary = {"succeeded": 0, "failed": 0}
        for album_slug in album_slugs:
            ref = MediaReference(
                url=f"album:{album_slug}", slug=album_slug, kind=MediaKind.ALBUM
            )
            if self.process_reference(ref):
                summary["succeeded"] += 1
            else:
                summary["failed"] += 1
            print()
        return summary

    def _process_tracks(
        self,
        tracks: Sequence[TrackRecord],
        streams: List[StreamDescriptor],
        folder: Path,
        build_meta: Callable[[TrackRecord, int], ParsedTrackMeta],
    ):
        stream_urls = {stream.track_id: stream.url for stream in streams}

        for num, track in enumerate(tracks, 1):
            url = stream_urls.get(track.id)
            if url is None:
                print(
                    f"⚠️ The API didn't return any stream metadata for track {num}.",
                    file=sys.stderr,
                )
                continue
            self.process_track(url, folder, build_meta(track, num))

    def process_track(self, stream_url: str, folder: Path, meta: ParsedTrackMeta) -> bool:
        """Download, decrypt and tag one track.

        Returns:
            True if downloaded, False if it already existed
        """
        quality = query_quality(stream_url)
        print(
            f"🎵 Track {meta.track_num} of {meta.track_total}: "
            f"{meta.title} - {quality.specs}"
        )

        stem = track_file_stem(meta)
        track_path = folder / f"{stem}{quality.extension}"
        incomplete_path = folder / f"{stem}{INCOMPLETE_SUFFIX}"

        if not acquire_track(self.client, stream_url, track_path, incomplete_path):
            print("⏭️ Track already exists locally.")
            return False

        try_write_tags(track_path, quality.tag_format, meta)
        return True

    def download_video(self, slug: str) -> Optional[Path]:
        """Download a concert's video and AAC audio and mux them into one MP4.

        Returns:
            Output path, or None if it already existed
        """
        if not self.session.allow_concert_playback:
            raise PlanRestrictionError("plan doesn't allow concerts")

        video = self.client.get_video(self.session, slug)
        print(f"🎬 {video.name}")

        manifest = self.client.get_playback_manifest(video.video_id)
        base_url = make_base_url(manifest.master_url)
        renditions = self.client.get_rendition_set(manifest.master_url)

        video_rendition = select_video(renditions.video)
        out_path = self.output_dir / video_file_name(
            sanitize_filename(video.name), video_rendition
        )
        if out_path.exists():
            print("⏭️ Concert already exists locally.")
            return None

        audio_rendition = select_audio(renditions.audio)

        video_path = self.output_dir / VIDEO_TEMP_NAME
        audio_path = self.output_dir / AUDIO_TEMP_NAME

        print(
            f"Video: ~{video_rendition.avg_bitrate // 1000} Kbps | "
            f"{video_rendition.framerate:g} FPS | {video_rendition.height}p "
            f"({video_rendition.width}x{video_rendition.height})"
        )
        response = self.client.get_file_response(
            rendition_url(base_url, video_rendition), with_range=False
        )
        download(response, video_path)

        print(f"Audio: AAC ~{audio_rendition.avg_bitrate // 1000} Kbps")
        response = self.client.get_file_response(
            rendition_url(base_url, audio_rendition), with_range=False
        )
        download(response, audio_path)

        # ffmpeg picks the container from the extension, so keep .mp4 last
        mux_path = out_path.with_name(f"{out_path.stem}{INCOMPLETE_SUFFIX}.mp4")

        print("🔄 Muxing...")
        with temp_file_cleanup(mux_path):
            mux_mp4(self.config.ffmpeg_path, video_path, audio_path, mux_path)
            mux_path.replace(out_path)

        video_path.unlink()
        audio_path.unlink()

        print(f"✅ Saved: {out_path.name}")
        return out_path

    def _log_failure(self, url: str, error: str):
        """Log failed download.

        Args:
            url: URL that failed
            error: Error message
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M")
        log_entry = f"{timestamp} | {url} | {error}\n"

        try:
            with open(self.config.failed_log, "a") as f:
                f.write(log_entry)
        except OSError as e:
            print(f"⚠️ Failed to write failure log: {e}", file=sys.stderr)
