"""Concert video: rendition selection, URL building and ffmpeg muxing."""

import subprocess
from pathlib import Path
from typing import Sequence, Tuple, Union

from .errors import MalformedResponseError, MuxFailedError, NoSuitableAudioError
from .models import AudioRendition, RenditionSet, VideoRendition

AAC_CODEC = "mp4a.40.2"
URL_SEPARATOR = "/sep/"

VIDEO_TEMP_NAME = "v.mp4"
AUDIO_TEMP_NAME = "a.mp4"


def select_audio(audio: Sequence[AudioRendition]) -> AudioRendition:
    """Highest-bitrate AAC rendition; ties keep listed order.

    Raises:
        NoSuitableAudioError: If no rendition uses the AAC codec
    """
    by_bitrate = sorted(audio, key=lambda a: -a.avg_bitrate)
    for rendition in by_bitrate:
        if rendition.codecs == AAC_CODEC:
            return rendition
    raise NoSuitableAudioError("aac audio track not present")


def select_video(video: Sequence[VideoRendition]) -> VideoRendition:
    """Lowest-height rendition; the first listed wins a tie."""
    if not video:
        raise MalformedResponseError("rendition set lists no video renditions")
    return min(video, key=lambda v: v.height)


def select_renditions(renditions: RenditionSet) -> Tuple[VideoRendition, AudioRendition]:
    return select_video(renditions.video), select_audio(renditions.audio)


def make_base_url(master_url: str) -> str:
    """Base for rendition files: everything before ``/sep/``, plus ``/parcel/``."""
    idx = master_url.find(URL_SEPARATOR)
    if idx == -1:
        raise MalformedResponseError(
            "url separator not present", {"url": master_url}
        )
    return f"{master_url[:idx]}/parcel/"


def rendition_url(base_url: str, rendition: Union[AudioRendition, VideoRendition]) -> str:
    return f"{base_url}{rendition.base_url}{rendition.id}.mp4"


def video_file_name(sanitized_title: str, rendition: VideoRendition) -> str:
    return f"{sanitized_title} ({rendition.height}p).mp4"


def mux_mp4(ffmpeg_path: str, video_path: Path, audio_path: Path, out_path: Path):
    """Copy the video and audio streams into one MP4 with ffmpeg.

    Raises:
        MuxFailedError: If ffmpeg cannot be started or exits non-zero
    """
    cmd = [
        str(ffmpeg_path),
        "-i",
        str(video_path),
        "-i",
        str(audio_path),
        "-c",
        "copy",
        str(out_path),
    ]

    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        raise MuxFailedError(f"bad exit code, output: {e.stderr}", e.stderr or "") from e
    except OSError as e:
        raise MuxFailedError(f"failed to run ffmpeg: {e}") from e
