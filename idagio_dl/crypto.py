"""Stream decryption: ``x-x`` header parsing, key derivation, AES-128-CTR."""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import CipherParamError

CIPHER_HEADER = "x-x"
SECRET = b"prod-media-c-YaiJaoni7iebeed5"
CHUNK_SIZE = 1024 * 1024
IV_SIZE = 16


@dataclass(frozen=True)
class CipherParams:
    """Key seed and IV for one encrypted stream, taken verbatim as ASCII bytes."""

    key_seed: bytes
    iv: bytes


def parse_cipher_params(value: Optional[str]) -> Optional[CipherParams]:
    """Parse the ``x-x`` header value ``"<key-seed> <iv>"``.

    Args:
        value: Header value, or None when the header is absent

    Returns:
        CipherParams, or None for an unencrypted stream

    Raises:
        CipherParamError: If the header is present but malformed
    """
    if value is None:
        return None

    parts = value.split(" ", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise CipherParamError("failed to parse key and iv")

    try:
        key_seed = parts[0].encode("ascii")
        iv = parts[1].encode("ascii")
    except UnicodeEncodeError as e:
        raise CipherParamError(f"key and iv must be ASCII: {e}") from e

    if len(iv) != IV_SIZE:
        raise CipherParamError(f"iv must be {IV_SIZE} bytes, got {len(iv)}")

    return CipherParams(key_seed=key_seed, iv=iv)


def derive_key(key_seed: bytes, secret: bytes = SECRET) -> bytes:
    """SHA-256 of seed + secret; the first 8 digest bytes, hex-encoded, are the key."""
    digest = hashlib.sha256(key_seed + secret).digest()
    return digest[:8].hex().encode("ascii")


def _apply_keystream(src: Path, dst: Path, key: bytes, iv: bytes):
    cipher = Cipher(algorithms.AES(key), modes.CTR(iv)).decryptor()
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        while True:
            chunk = fin.read(CHUNK_SIZE)
            if not chunk:
                break
            fout.write(cipher.update(chunk))
        fout.write(cipher.finalize())


def decrypt_file(path: Path, params: CipherParams):
    """Decrypt ``path`` in place.

    The plaintext is written to a ``.decrypted`` sibling which then atomically
    replaces ``path``.
    """
    key = derive_key(params.key_seed)
    decrypted_path = path.with_suffix(".decrypted")
    try:
        _apply_keystream(path, decrypted_path, key, params.iv)
    except Exception:
        decrypted_path.unlink(missing_ok=True)
        raise
    decrypted_path.replace(path)
