"""Tests for track acquisition: skip, plain and encrypted downloads, cleanup."""

from unittest.mock import Mock

import pytest
import requests
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from idagio_dl.crypto import derive_key
from idagio_dl.errors import CipherParamError, MissingLengthError, TransportError
from idagio_dl.transfer import acquire_track, download

STREAM_URL = "https://streams.example/aes-128-ctr/flac-abc?sig=1"
PLAINTEXT = b"fLaC" + bytes(range(256)) * 20


def encrypt(plaintext: bytes, seed: bytes, iv: bytes) -> bytes:
    encryptor = Cipher(algorithms.AES(derive_key(seed)), modes.CTR(iv)).encryptor()
    return encryptor.update(plaintext) + encryptor.finalize()


@pytest.fixture
def client():
    return Mock()


def test_existing_file_is_not_requested(tmp_path, client):
    out = tmp_path / "01. Track.flac"
    out.write_bytes(b"already here")

    assert acquire_track(client, STREAM_URL, out) is False
    client.get_file_response.assert_not_called()
    assert out.read_bytes() == b"already here"


def test_plain_download(tmp_path, client, make_response):
    out = tmp_path / "01. Track.flac"
    client.get_file_response.return_value = make_response(
        body=PLAINTEXT, headers={"Content-Length": str(len(PLAINTEXT))}
    )

    assert acquire_track(client, STREAM_URL, out) is True

    client.get_file_response.assert_called_once_with(STREAM_URL, with_range=True)
    assert out.read_bytes() == PLAINTEXT
    assert list(tmp_path.iterdir()) == [out]


def test_encrypted_download_is_decrypted(tmp_path, client, make_response):
    out = tmp_path / "01. Track.flac"
    iv = b"fedcba9876543210"
    body = encrypt(PLAINTEXT, b"seed42", iv)
    client.get_file_response.return_value = make_response(
        body=body,
        headers={"Content-Length": str(len(body)), "x-x": "seed42 fedcba9876543210"},
    )

    assert acquire_track(client, STREAM_URL, out) is True

    assert out.read_bytes() == PLAINTEXT
    assert list(tmp_path.iterdir()) == [out]


def test_custom_incomplete_path(tmp_path, client, make_response):
    out = tmp_path / "01. Track.mp3"
    incomplete = tmp_path / "01. Track.incomplete"
    client.get_file_response.return_value = make_response(
        body=b"abc", headers={"Content-Length": "3"}
    )

    acquire_track(client, STREAM_URL, out, incomplete)

    assert out.read_bytes() == b"abc"
    assert not incomplete.exists()


def test_missing_length_leaves_nothing(tmp_path, client, make_response):
    out = tmp_path / "01. Track.flac"
    client.get_file_response.return_value = make_response(body=b"abc")

    with pytest.raises(MissingLengthError):
        acquire_track(client, STREAM_URL, out)

    assert list(tmp_path.iterdir()) == []


def test_malformed_cipher_header(tmp_path, client, make_response):
    out = tmp_path / "01. Track.flac"
    response = make_response(body=b"abc", headers={"Content-Length": "3", "x-x": "garbage"})
    client.get_file_response.return_value = response

    with pytest.raises(CipherParamError):
        acquire_track(client, STREAM_URL, out)

    response.close.assert_called()
    assert list(tmp_path.iterdir()) == []


def test_interrupted_body_removes_partial_file(tmp_path, client, make_response):
    out = tmp_path / "01. Track.flac"
    response = make_response(headers={"Content-Length": "100"})

    def broken(chunk_size=1):
        yield b"partial"
        raise requests.ConnectionError("reset by peer")

    response.iter_content.side_effect = broken
    client.get_file_response.return_value = response

    with pytest.raises(TransportError):
        acquire_track(client, STREAM_URL, out)

    assert list(tmp_path.iterdir()) == []


def test_download_returns_byte_count(tmp_path, make_response, capsys):
    response = make_response(body=b"x" * 10, headers={"Content-Length": "10"})

    assert download(response, tmp_path / "v.mp4") == 10
    assert "Progress: 100.0%" in capsys.readouterr().out
    response.close.assert_called_once()
