from stamp_crack.config import CipherConfig, DEFAULT_CONFIG


def generate_password(seed: int, config: CipherConfig = DEFAULT_CONFIG) -> bytes:
    """
    Derive the password the broken scheme generated from a timestamp seed.

    Each round emits `alphabet[state % len(alphabet)]`, then advances the state
    with `(state * multiplier + shift) >> 8`. The state grows past 64 bits after
    a few rounds, so it has to stay an unbounded int.

    Python's `%` and `>>` both floor, so a negative seed still yields indices in
    [0, len(alphabet)) and the shift stays a floor division by 256.
    """
    alphabet = config.alphabet
    alphabet_length = len(alphabet)
    password = bytearray(config.password_length)

    state = seed
    for position in range(config.password_length):
        password[position] = alphabet[state % alphabet_length]
        state = (state * config.multiplier + config.shift) >> 8

    return bytes(password)
