from fastapi import FastAPI, APIRouter, HTTPException
import structlog

from stamp_crack.utils import b64_encode, b64_decode

from . import crypto, models

log = structlog.get_logger()

app = FastAPI(title="Timestamp Password Demo API")

router = APIRouter()


def build_encrypted_response(plaintext: bytes) -> models.EncryptResponse:
    """ Build a response with the ciphertext of the given plaintext. """
    ct = crypto.encrypt(plaintext)
    return models.EncryptResponse(
        ciphertext_b64=b64_encode(ct),
        ciphertext_hex=ct.hex(),
    )


@router.get("/demo1", response_model=models.EncryptResponse)
def demo1():
    """ Short text, padding spans both trailing blocks. """
    return build_encrypted_response(b"Hello, world!")


@router.get("/demo2", response_model=models.EncryptResponse)
def demo2():
    """ Multi-line text over several blocks. """
    plaintext = (
        "The password for this file was generated from the clock.\n"
        "Anyone who knows roughly when it was encrypted can find it.\n"
        "Zaszyfrowane o północy, odszyfrowane przed świtem.\n"
    )
    return build_encrypted_response(plaintext.encode("utf-8"))


@router.post("/encrypt", response_model=models.EncryptResponse)
def encrypt_api(req: models.EncryptRequest):
    """ Encrypt the given plaintext with a password seeded by the current time. """
    try:
        plaintext = b64_decode(req.plaintext_b64)
    except ValueError as e:
        log.warning("invalid plaintext encoding", error=str(e))
        raise HTTPException(status_code=400, detail=f"Invalid base64 plaintext: {e}")
    return build_encrypted_response(plaintext)


app.include_router(router, prefix="/api")
