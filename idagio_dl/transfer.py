"""Streaming downloads and track acquisition."""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import requests

from .crypto import CHUNK_SIZE, CIPHER_HEADER, decrypt_file, parse_cipher_params
from .errors import MissingLengthError, TransportError

INCOMPLETE_SUFFIX = ".incomplete"


@contextmanager
def temp_file_cleanup(*paths: Path):
    """Remove the given temp files if the block raises.

    Files are left alone on success; the block is expected to have renamed them.
    """
    try:
        yield
    except Exception:
        for path in paths:
            if path.exists():
                try:
                    path.unlink()
                    print(f"🧹 Cleaned up temp file: {path.name}", file=sys.stderr)
                except OSError as cleanup_error:
                    print(
                        f"⚠️ Failed to clean up temp file: {cleanup_error}",
                        file=sys.stderr,
                    )
        raise


def _content_length(response: requests.Response) -> int:
    value = response.headers.get("content-length")
    if value is None:
        raise MissingLengthError("no content length header", {"url": response.url})
    try:
        return int(value)
    except ValueError:
        raise MissingLengthError(
            f"invalid content length header: {value!r}", {"url": response.url}
        ) from None


def _print_progress(downloaded: int, total: int):
    progress = (downloaded / total) * 100 if total else 100.0
    print(
        f"\rProgress: {progress:.1f}% "
        f"({downloaded / 1048576:.1f}/{total / 1048576:.1f} MiB)",
        end="",
        flush=True,
    )


def download(response: requests.Response, out_path: Path, show_progress: bool = True) -> int:
    """Write a streaming response body to ``out_path`` in 1 MiB chunks.

    Args:
        response: Open streaming response
        out_path: Destination file, created or truncated
        show_progress: Print an in-place progress line

    Returns:
        Number of bytes written

    Raises:
        MissingLengthError: If the response has no Content-Length
        TransportError: If the connection drops mid-body
    """
    try:
        total_size = _content_length(response)
    except MissingLengthError:
        response.close()
        raise
    downloaded = 0

    try:
        with open(out_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)
                if show_progress:
                    _print_progress(downloaded, total_size)
    except requests.RequestException as e:
        raise TransportError(f"download interrupted: {e}", {"url": response.url}) from e
    finally:
        response.close()

    if show_progress:
        print()
    return downloaded


def acquire_track(client, stream_url: str, out_path: Path, incomplete_path: Optional[Path] = None) -> bool:
    """Download one track, decrypting it when the response carries ``x-x``.

    The body lands in ``<name>.incomplete`` and is only renamed to ``out_path``
    once fully written (and decrypted). Nothing is requested if ``out_path``
    already exists.

    Args:
        client: IdagioClient used for the ranged GET
        stream_url: Signed stream URL
        out_path: Final track path, extension included
        incomplete_path: Temp path override (defaults to out_path + .incomplete)

    Returns:
        True if downloaded, False if the track already existed
    """
    if out_path.is_file():
        return False

    if incomplete_path is None:
        incomplete_path = out_path.with_name(out_path.name + INCOMPLETE_SUFFIX)

    with temp_file_cleanup(incomplete_path, incomplete_path.with_suffix(".decrypted")):
        response = client.get_file_response(stream_url, with_range=True)
        try:
            cipher_params = parse_cipher_params(response.headers.get(CIPHER_HEADER))
        except Exception:
            response.close()
            raise

        download(response, incomplete_path)

        if cipher_params is not None:
            print("🔓 Decrypting...")
            decrypt_file(incomplete_path, cipher_params)

        incomplete_path.replace(out_path)

    return True
