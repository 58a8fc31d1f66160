"""Pytest fixtures for integration tests."""

from unittest.mock import Mock

import pytest
import yaml

from idagio_dl.client import IdagioClient
from idagio_dl.config import Config
from idagio_dl.models import (
    AlbumRecord,
    AudioRendition,
    RenditionSet,
    StreamDescriptor,
    TrackRecord,
    VideoManifest,
    VideoRecord,
    VideoRendition,
)

MP3_BODY = b"\xff\xfb\x90\x64" + b"\x00" * 413
MP3_STREAM = "https://streams.example/aes-128-ctr/mp3-320-{}?sig=abc"


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "downloads"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def temp_config_file(tmp_path, temp_output_dir):
    """Create a temporary config file."""
    config_path = tmp_path / "config.yaml"
    config_data = {
        "email": "listener@example.com",
        "password": "hunter2",
        "format": 2,
        "output_dir": str(temp_output_dir),
        "failed_log": str(tmp_path / "failed.txt"),
        "ffmpeg": {"path": "/opt/ffmpeg"},
    }
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def test_config(temp_config_file):
    """Create a Config instance for testing."""
    return Config(config_path=temp_config_file)


def make_track(track_id, position, piece):
    return TrackRecord(
        id=track_id,
        piece_title=piece,
        work_title="Goldberg Variations",
        persons=("Johann Sebastian Bach",),
        position=position,
    )


@pytest.fixture
def album():
    tracks = (make_track("2", 2, "Variation 1"), make_track("1", 1, "Aria"))
    return AlbumRecord(
        title="Goldberg Variations",
        artists=("Glenn Gould",),
        copyright="(P) 1982 Sony",
        copyright_year=1982,
        upc="0886",
        image_url="https://img.example/cover.jpg",
        tracks=tracks,
        track_ids=("1", "2"),
    )


@pytest.fixture
def renditions():
    return RenditionSet(
        audio=(
            AudioRendition("ec3", "../audio/", 640000, "ec-3"),
            AudioRendition("aac", "../audio/", 128000, "mp4a.40.2"),
        ),
        video=(
            VideoRendition("hd", "../video/", 5000000, 1920, 1080, 25.0),
            VideoRendition("sd", "../video/", 800000, 640, 360, 25.0),
        ),
    )


@pytest.fixture
def fake_client(album, renditions, make_response):
    """IdagioClient mock serving one album and one concert."""
    client = Mock(spec=IdagioClient)
    client.get_album.return_value = album
    client.get_streams.return_value = [
        StreamDescriptor(track_id=i, url=MP3_STREAM.format(i)) for i in album.track_ids
    ]
    client.get_bytes.return_value = b"\xff\xd8cover"
    client.get_video.return_value = VideoRecord(name="Gala: Live", source="vimeo", video_id="99")
    client.get_playback_manifest.return_value = VideoManifest(
        master_url="https://cdn.example/abc/sep/video/master.json"
    )
    client.get_rendition_set.return_value = renditions

    def file_response(url, with_range=True):
        return make_response(body=MP3_BODY, headers={"Content-Length": str(len(MP3_BODY))})

    client.get_file_response.side_effect = file_response
    return client
