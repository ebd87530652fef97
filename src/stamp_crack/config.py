from dataclasses import dataclass


MULTIPLIER = 0xB11924E1
SHIFT = 0x27100001
ALPHABET = b"abcdefghijklmnopqrstuvwxyz0123456789"
PASSWORD_LENGTH = 32
BLOCK_SIZE = 16
TRAILING_BLOCK_SIZE = 32

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

DEFAULT_UPPER_SEED = 1467121149
DEFAULT_LOWER_SEED = 0
DEFAULT_STEP = 1

PROGRESS_INTERVAL = 100_000
CHECK_INTERVAL = 1024
DEFAULT_CHUNK_SIZE = 50_000

AES_KEY_SIZES = (16, 24, 32)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class CipherConfig:
    """Constants of the timestamp password scheme. Shared read-only by every worker."""

    multiplier: int = MULTIPLIER
    shift: int = SHIFT
    alphabet: bytes = ALPHABET
    password_length: int = PASSWORD_LENGTH
    block_size: int = BLOCK_SIZE
    trailing_size: int = TRAILING_BLOCK_SIZE

    def __post_init__(self):
        if not self.alphabet:
            raise ConfigError("Alphabet must not be empty")
        if self.password_length not in AES_KEY_SIZES:
            raise ConfigError(f"Password length must be one of {AES_KEY_SIZES}: {self.password_length}")
        if self.block_size <= 0:
            raise ConfigError(f"Block size must be positive: {self.block_size}")
        if self.trailing_size < self.block_size or self.trailing_size % self.block_size:
            raise ConfigError(
                f"Trailing block size must be a positive multiple of the block size: {self.trailing_size}"
            )


DEFAULT_CONFIG = CipherConfig()


@dataclass(frozen=True, slots=True)
class SearchRange:
    """Seeds searched from `upper` down to `lower` (both inclusive)."""

    upper: int = DEFAULT_UPPER_SEED
    lower: int = DEFAULT_LOWER_SEED
    step: int = DEFAULT_STEP

    def __post_init__(self):
        if self.step < 1:
            raise ConfigError(f"Step must be at least 1: {self.step}")
        for name, bound in (("upper", self.upper), ("lower", self.lower)):
            if not INT32_MIN <= bound <= INT32_MAX:
                raise ConfigError(f"The {name} seed is outside the signed 32-bit range: {bound}")
        if self.lower > self.upper:
            raise ConfigError(
                f"Empty search range: lower seed {self.lower} is above upper seed {self.upper}"
            )

    @classmethod
    def window(cls, upper: int, size: int, step: int = DEFAULT_STEP) -> "SearchRange":
        """The `size` seeds ending at `upper`, e.g. the last hour of timestamps."""
        if size < 1:
            raise ConfigError(f"Window size must be at least 1: {size}")
        return cls(upper=upper, lower=max(upper - (size - 1) * step, INT32_MIN), step=step)

    def seeds(self) -> range:
        return range(self.upper, self.lower - 1, -self.step)

    def __len__(self) -> int:
        return len(self.seeds())
