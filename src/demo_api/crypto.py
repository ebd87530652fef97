import time

import structlog

from stamp_crack.cipher import ALGORITHM, TimestampCipher


log = structlog.get_logger()

cipher = TimestampCipher()


def current_timestamp() -> int:
    return int(time.time())


def encrypt(plaintext: bytes) -> bytes:
    """ Encrypt the plaintext the way the broken scheme did:
    the password is generated from the current timestamp.
    """
    timestamp = current_timestamp()
    password = cipher.generate_password(timestamp)
    ciphertext = cipher.encrypt(password, plaintext)
    log.info(
        "encrypted",
        alg=ALGORITHM,
        plaintext_len=len(plaintext),
        ciphertext_len=len(ciphertext),
        ciphertext_hex=ciphertext.hex(" "),
    )
    return ciphertext
