"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from idagio_dl.config import Config
from idagio_dl.models import Session


def flac_bytes() -> bytes:
    """A metadata-only FLAC file: signature plus a single STREAMINFO block."""
    streaminfo = (4096).to_bytes(2, "big") * 2  # min/max block size
    streaminfo += (0).to_bytes(3, "big") * 2  # min/max frame size
    # 20 bits sample rate, 3 bits channels-1, 5 bits bps-1, 36 bits total samples
    packed = (44100 << 44) | (1 << 41) | (15 << 36)
    streaminfo += packed.to_bytes(8, "big")
    streaminfo += b"\x00" * 16  # MD5
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")
    return b"fLaC" + header + streaminfo


@pytest.fixture(autouse=True)
def reset_config():
    """Config is a process-wide singleton; give every test a fresh one."""
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def session():
    return Session(
        access_token="token-123",
        plan_display_name="Premium+",
        premium=True,
        allow_concert_playback=True,
    )


@pytest.fixture
def make_response():
    """Factory for mocked ``requests.Response`` objects."""

    def _make(status=200, json_data=None, body=b"", headers=None, text=None, url="https://x"):
        response = Mock(spec=requests.Response)
        response.status_code = status
        response.url = url
        response.headers = CaseInsensitiveDict(headers or {})
        response.content = body
        response.text = text if text is not None else body.decode("utf-8", "replace")
        if json_data is not None:
            response.json.return_value = json_data
        else:
            response.json.side_effect = ValueError("No JSON object could be decoded")

        def iter_content(chunk_size=1):
            for i in range(0, len(body), chunk_size):
                yield body[i : i + chunk_size]

        response.iter_content.side_effect = iter_content
        return response

    return _make


@pytest.fixture
def flac_file(tmp_path) -> Path:
    path = tmp_path / "01. Track.flac"
    path.write_bytes(flac_bytes())
    return path


@pytest.fixture
def mp3_file(tmp_path) -> Path:
    path = tmp_path / "01. Track.mp3"
    # Tag writer only needs a file to prepend an ID3 header to
    path.write_bytes(b"\xff\xfb\x90\x64" + b"\x00" * 413)
    return path
