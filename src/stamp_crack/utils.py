import base64
import binascii
from typing import Literal, TypeAlias, Union

import structlog

from stamp_crack.config import CipherConfig, DEFAULT_CONFIG

CiphertextFormat: TypeAlias = Union[Literal[
    "b64",
    "b64_urlsafe",
    "hex",
    "raw"
], str]

CIPHERTEXT_FORMATS = ("raw", "b64", "b64_urlsafe", "hex")

log = structlog.get_logger()


class CiphertextError(ValueError):
    pass


def decode_ciphertext(data: bytes, format: CiphertextFormat) -> bytes:
    """Turn file contents in the given format into raw ciphertext bytes."""
    try:
        if format == "b64":
            return b64_decode(data.strip())
        elif format == "b64_urlsafe":
            return b64_decode(data.strip(), urlsafe=True)
        elif format == "hex":
            return bytes.fromhex(data.decode("ascii"))
        elif format == "raw":
            return data
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise CiphertextError(f"Ciphertext is not valid {format}: {e}") from e
    raise ValueError(f"Invalid ciphertext format: {format}")


def encode_ciphertext(ciphertext: bytes, format: CiphertextFormat) -> bytes:
    """Inverse of `decode_ciphertext`, for writing files."""
    if format == "b64":
        return b64_encode(ciphertext).encode("ascii")
    elif format == "b64_urlsafe":
        return b64_encode(ciphertext, urlsafe=True).encode("ascii")
    elif format == "hex":
        return ciphertext.hex().encode("ascii")
    elif format == "raw":
        return ciphertext
    raise ValueError(f"Invalid ciphertext format: {format}")


def load_ciphertext(file_path: str, format: CiphertextFormat = "raw") -> bytes:
    """Load the ciphertext from a file. OSError propagates to the caller."""
    with open(file_path, "rb") as f:
        data = f.read()
    ciphertext = decode_ciphertext(data, format)
    log.info("ciphertext loaded", path=file_path, format=format, ciphertext_len=len(ciphertext))
    return ciphertext


def validate_ciphertext(ciphertext: bytes, config: CipherConfig = DEFAULT_CONFIG) -> None:
    """The search needs a block-aligned buffer holding at least one trailing block."""
    if len(ciphertext) % config.block_size:
        raise CiphertextError(
            f"Ciphertext length {len(ciphertext)} is not a multiple of the block size {config.block_size}"
        )
    if len(ciphertext) < config.trailing_size:
        raise CiphertextError(
            f"Ciphertext must be at least {config.trailing_size} bytes long, got {len(ciphertext)}"
        )


def split_trailing_block(ciphertext: bytes, trailing_size: int = DEFAULT_CONFIG.trailing_size) -> tuple[bytes, bytes]:
    """Split into (body, trailing block). The body is empty for a single trailing block."""
    split_at = len(ciphertext) - trailing_size
    return ciphertext[:split_at], ciphertext[split_at:]


def _as_bytes(
    data: Union[str, bytes, bytearray, memoryview],
    *,
    encoding: str = "utf-8",
) -> bytes:
    """Normalize values to type bytes."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        return data.encode(encoding)
    raise TypeError(f"Expected str or bytes-like, got {type(data).__name__}")


def b64_encode(
    data: Union[str, bytes, bytearray, memoryview],
    *,
    urlsafe: bool = False,
    text_encoding: str = "utf-8",
) -> str:
    """Accepts str/bytes/etc and return a base64 string (standard or URL-safe)."""
    raw = _as_bytes(data, encoding=text_encoding)
    fn = base64.urlsafe_b64encode if urlsafe else base64.b64encode
    return fn(raw).decode("ascii")


def b64_decode(
    b64_text: Union[str, bytes],
    *,
    urlsafe: bool = False,
) -> bytes:
    """Decodes standard or URL-safe b64. Tolerates missing '=' padding."""
    b64_text = _as_bytes(b64_text, encoding="ascii")
    missing = len(b64_text) % 4
    if missing:
        b64_text += b"=" * (4 - missing)

    if urlsafe:
        return base64.urlsafe_b64decode(b64_text)
    return base64.b64decode(b64_text, validate=True)
