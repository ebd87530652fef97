import pytest

from stamp_crack.config import ALPHABET, INT32_MAX, INT32_MIN, PASSWORD_LENGTH, CipherConfig
from stamp_crack.password import generate_password


class TestGeneratePassword:
    """Test suite for the timestamp password generator"""

    @pytest.mark.parametrize("seed,expected", [
        (1473444112, b"etjvga7g3ph2eoickljmii4mi6fngono"),
        (1473445202, b"ovbu8d12dnvt6ftatp8pjtj617m1r2xs"),
    ])
    def test_golden_vectors(self, seed, expected):
        """Test passwords known from previously encrypted files"""
        assert generate_password(seed) == expected

    def test_first_character_is_seed_modulo_alphabet(self):
        """Test the first round uses the untouched seed"""
        seed = 1473444112
        assert generate_password(seed)[0] == ALPHABET[seed % len(ALPHABET)]

    def test_deterministic(self):
        """Test the same seed always gives the same password"""
        assert generate_password(1467121149) == generate_password(1467121149)

    def test_different_seeds_differ(self):
        """Test neighbouring seeds give different passwords"""
        assert generate_password(1473444112) != generate_password(1473444113)

    @pytest.mark.parametrize("seed", [0, 1, 35, 36, 1467121149, INT32_MAX, INT32_MIN, -1, -123456789])
    def test_length_and_alphabet(self, seed):
        """Test every password is 32 alphabet bytes, negative seeds included"""
        password = generate_password(seed)
        assert isinstance(password, bytes)
        assert len(password) == PASSWORD_LENGTH
        assert all(byte in ALPHABET for byte in password)

    def test_negative_seed_uses_non_negative_remainder(self):
        """Test a negative seed maps to the floor remainder"""
        assert generate_password(-1)[0] == ALPHABET[35]

    def test_custom_config(self):
        """Test the generator honours a custom alphabet and length"""
        config = CipherConfig(alphabet=b"xy", password_length=16)
        password = generate_password(1473444112, config)
        assert len(password) == 16
        assert set(password) <= set(b"xy")

    def test_single_letter_alphabet(self):
        """Test a one letter alphabet yields a constant password"""
        config = CipherConfig(alphabet=b"a")
        assert generate_password(42, config) == b"a" * 32
