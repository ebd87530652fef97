from dataclasses import dataclass
from typing import Protocol, Sequence, Union

BytesLike = Union[bytes, bytearray, memoryview]


class TextValidator(Protocol):
    """Anything that can interpret bytes as text, raising UnicodeDecodeError otherwise."""

    name: str

    def decode(self, data: BytesLike) -> str: ...


@dataclass(frozen=True, slots=True)
class CodecValidator:
    name: str

    def decode(self, data: BytesLike) -> str:
        return bytes(data).decode(self.name)


UTF8 = CodecValidator("utf-8")
ASCII = CodecValidator("ascii")

# Stricter encodings first.
DEFAULT_VALIDATORS: tuple[TextValidator, ...] = (UTF8, ASCII)


@dataclass(frozen=True, slots=True)
class TextDecodeFailure:
    """Decoded bytes are not text. `invalid_byte` comes from the first validator tried."""

    invalid_byte: int
    encoding: str


def decode_text(
    data: BytesLike,
    validators: Sequence[TextValidator] = DEFAULT_VALIDATORS,
) -> str | TextDecodeFailure:
    """Try each validator in turn. Returns the text or a failure, never raises for bad text."""
    if not validators:
        raise ValueError("At least one text validator is required")

    failure = None
    for validator in validators:
        try:
            return validator.decode(data)
        except UnicodeDecodeError as e:
            if failure is None:
                failure = TextDecodeFailure(invalid_byte=e.start, encoding=validator.name)

    return failure
