import pytest

from stamp_crack.text import ASCII, UTF8, CodecValidator, TextDecodeFailure, decode_text


class TestDecodeText:
    """Test suite for the text validator chain"""

    def test_ascii_text(self):
        """Test plain ASCII decodes"""
        assert decode_text(b"lollollol") == "lollollol"

    def test_utf8_text(self):
        """Test multi-byte UTF-8 decodes"""
        text = "zażółć gęślą jaźń"
        assert decode_text(text.encode("utf-8")) == text

    def test_accepts_bytearray(self):
        """Test scratch buffers can be validated directly"""
        assert decode_text(bytearray(b"abc")) == "abc"

    def test_failure_reports_first_invalid_byte(self):
        """Test the failure carries the offset from the UTF-8 pass"""
        result = decode_text(b"abc\xffdef")
        assert result == TextDecodeFailure(invalid_byte=3, encoding="utf-8")

    def test_truncated_multibyte_sequence(self):
        """Test a cut multi-byte character is reported at its start"""
        data = "ab".encode("utf-8") + "ż".encode("utf-8")[:1]
        result = decode_text(data)
        assert isinstance(result, TextDecodeFailure)
        assert result.invalid_byte == 2

    def test_falls_back_to_next_validator(self):
        """Test a stricter validator failing hands over to the next one"""
        text = "naïve"
        assert decode_text(text.encode("utf-8"), validators=(ASCII, UTF8)) == text

    def test_failure_offset_comes_from_first_validator(self):
        """Test the reported offset is the one from the first validator tried"""
        result = decode_text("aż\xff".encode("utf-8") + b"\xff", validators=(ASCII, UTF8))
        assert result == TextDecodeFailure(invalid_byte=1, encoding="ascii")

    def test_custom_codec_validator(self):
        """Test any codec can be plugged in"""
        latin1 = CodecValidator("latin-1")
        assert decode_text(b"ab\xff", validators=(UTF8, latin1)) == "ab\xff"

    def test_requires_validators(self):
        """Test an empty validator chain is rejected"""
        with pytest.raises(ValueError, match="At least one text validator"):
            decode_text(b"abc", validators=())
