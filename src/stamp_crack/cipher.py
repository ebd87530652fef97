from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
import structlog

from stamp_crack.config import CipherConfig, DEFAULT_CONFIG
from stamp_crack.password import generate_password
from stamp_crack.text import BytesLike, TextDecodeFailure, decode_text


log = structlog.get_logger()

ALGORITHM = "AES-256-ECB"


class CipherError(RuntimeError):
    pass


def _ecb(key: BytesLike) -> Cipher:
    try:
        return Cipher(algorithms.AES(bytes(key)), modes.ECB())
    except ValueError as e:
        log.error("cipher rejected key", key_len=len(key), error=str(e))
        raise CipherError(f"Invalid key for {ALGORITHM}: {e}") from e


def pad_plaintext(plaintext: bytes, config: CipherConfig = DEFAULT_CONFIG) -> bytes:
    """ Pad the way the broken scheme did: `trailing_size - len % block_size` bytes,
    each holding the pad length. The pad is always longer than one block.
    """
    pad_length = config.trailing_size - len(plaintext) % config.block_size
    return plaintext + bytes([pad_length]) * pad_length


def strip_padding(plaintext: BytesLike, config: CipherConfig = DEFAULT_CONFIG) -> bytes:
    """ Strip the padding added by `pad_plaintext`. Returns the input unchanged if it is not padded. """
    plaintext = bytes(plaintext)
    if not plaintext:
        return plaintext

    pad_length = plaintext[-1]
    if pad_length <= config.block_size or pad_length > config.trailing_size or pad_length > len(plaintext):
        return plaintext
    if plaintext[-pad_length:] != bytes([pad_length]) * pad_length:
        return plaintext

    return plaintext[:-pad_length]


def decode(key: BytesLike, ciphertext: BytesLike, out: bytearray | memoryview,
           config: CipherConfig = DEFAULT_CONFIG) -> None:
    """ Decrypt `ciphertext` into `out` in place. No padding is removed. """
    if len(ciphertext) == 0 or len(ciphertext) % config.block_size:
        raise CipherError(
            f"Ciphertext length must be a non-zero multiple of {config.block_size}: {len(ciphertext)}"
        )
    if len(out) != len(ciphertext):
        raise CipherError(f"Output buffer is {len(out)} bytes, ciphertext is {len(ciphertext)} bytes")

    decryptor = _ecb(key).decryptor()
    out[:] = decryptor.update(ciphertext) + decryptor.finalize()


def try_decode_text(key: BytesLike, ciphertext: BytesLike, scratch: bytearray | memoryview,
                    config: CipherConfig = DEFAULT_CONFIG) -> str | TextDecodeFailure:
    """ Decrypt into `scratch` and interpret the result as UTF-8, then ASCII. """
    decode(key, ciphertext, scratch, config)
    return decode_text(scratch)


def encrypt(key: BytesLike, plaintext: bytes, config: CipherConfig = DEFAULT_CONFIG) -> bytes:
    """ Pad and encrypt the plaintext, reproducing the broken scheme's output. """
    padded = pad_plaintext(plaintext, config)
    encryptor = _ecb(key).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


class TimestampCipher:
    """ The broken scheme bound to one set of constants. Holds no mutable state. """

    def __init__(self, config: CipherConfig = DEFAULT_CONFIG):
        self.config = config

    def __repr__(self) -> str:
        return f"TimestampCipher({self.config!r})"

    def generate_password(self, seed: int) -> bytes:
        return generate_password(seed, self.config)

    def decode(self, key: BytesLike, ciphertext: BytesLike, out: bytearray | memoryview) -> None:
        decode(key, ciphertext, out, self.config)

    def try_decode_text(self, key: BytesLike, ciphertext: BytesLike,
                        scratch: bytearray | memoryview) -> str | TextDecodeFailure:
        return try_decode_text(key, ciphertext, scratch, self.config)

    def encrypt(self, key: BytesLike, plaintext: bytes) -> bytes:
        return encrypt(key, plaintext, self.config)

    def encrypt_with_seed(self, seed: int, plaintext: bytes) -> bytes:
        return self.encrypt(self.generate_password(seed), plaintext)
