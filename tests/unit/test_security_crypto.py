import os
from unittest.mock import patch

import pytest

from aesstream.core.exceptions import CodecError
from aesstream.security.crypto import (
    decrypt_file_stream,
    encrypt_file_stream,
    encrypted_size,
    generate_iv,
    generate_key,
)


@pytest.fixture
def key():
    return generate_key()


@pytest.fixture
def iv():
    return generate_iv()


def test_encrypt_decrypt_roundtrip(tmp_path, key, iv):
    # create random input file
    data = os.urandom(250_000)
    in_file = tmp_path / "input.bin"
    enc_file = tmp_path / "input.bin.enc"
    dec_file = tmp_path / "input.dec"
    in_file.write_bytes(data)

    encrypt_file_stream(str(in_file), str(enc_file), key, iv)
    decrypt_file_stream(str(enc_file), str(dec_file), key, iv)

    assert enc_file.stat().st_size == encrypted_size(len(data))
    assert dec_file.read_bytes() == data


def test_decrypt_from_offset(tmp_path, key, iv):
    data = os.urandom(10_000)
    in_file = tmp_path / "offset.bin"
    enc_file = tmp_path / "offset.bin.enc"
    dec_file = tmp_path / "offset.dec"
    in_file.write_bytes(data)

    encrypt_file_stream(str(in_file), str(enc_file), key, iv)
    decrypt_file_stream(str(enc_file), str(dec_file), key, iv, offset=4_321)

    assert dec_file.read_bytes() == data[4_321:]


def test_empty_file(tmp_path, key, iv):
    in_file = tmp_path / "empty.bin"
    enc_file = tmp_path / "empty.bin.enc"
    dec_file = tmp_path / "empty.dec"
    in_file.write_bytes(b"")

    encrypt_file_stream(str(in_file), str(enc_file), key, iv)
    assert enc_file.stat().st_size == 16
    decrypt_file_stream(str(enc_file), str(dec_file), key, iv)
    assert dec_file.read_bytes() == b""


@pytest.mark.parametrize(
    "size,expected",
    [(0, 16), (1, 16), (15, 16), (16, 32), (17, 32), (32, 48)],
)
def test_encrypted_size(size, expected):
    assert encrypted_size(size) == expected


def test_decrypt_fails_on_truncated(tmp_path, key, iv):
    data = os.urandom(10_000)
    in_file = tmp_path / "trinput.bin"
    enc_file = tmp_path / "trinput.bin.enc"
    dec_file = tmp_path / "trinput.dec"
    in_file.write_bytes(data)
    encrypt_file_stream(str(in_file), str(enc_file), key, iv)

    # truncate the encrypted file (remove last 10 bytes)
    with open(enc_file, "r+b") as f:
        f.seek(0, os.SEEK_END)
        size = f.tell()
        f.truncate(max(0, size - 10))

    with pytest.raises(CodecError):
        decrypt_file_stream(str(enc_file), str(dec_file), key, iv)
    # partial plaintext is not left behind
    assert not dec_file.exists()


def test_failed_encryption_removes_output(tmp_path, key, iv):
    in_file = tmp_path / "input.bin"
    enc_file = tmp_path / "input.bin.enc"
    in_file.write_bytes(b"hello" * 100)

    with patch("aesstream.security.crypto.shutil.copyfileobj", side_effect=OSError("disk full")):
        with pytest.raises(OSError, match="disk full"):
            encrypt_file_stream(str(in_file), str(enc_file), key, iv)
    assert not enc_file.exists()


def test_missing_input_leaves_existing_output(tmp_path, key, iv):
    enc_file = tmp_path / "existing.enc"
    enc_file.write_bytes(b"keep me")
    with pytest.raises(FileNotFoundError):
        encrypt_file_stream(str(tmp_path / "nope.bin"), str(enc_file), key, iv)
    assert enc_file.read_bytes() == b"keep me"


def test_invalid_key_rejected(tmp_path, iv):
    in_file = tmp_path / "input.bin"
    in_file.write_bytes(b"data")
    with pytest.raises(ValueError, match="AES key must be"):
        encrypt_file_stream(str(in_file), str(tmp_path / "out.enc"), b"short", iv)


def test_bad_iv_closes_ciphertext_file(tmp_path, key, iv):
    in_file = tmp_path / "input.bin"
    enc_file = tmp_path / "input.bin.enc"
    in_file.write_bytes(b"data")
    encrypt_file_stream(str(in_file), str(enc_file), key, iv)

    opened = []

    def tracking_open(*args, **kwargs):
        f = open(*args, **kwargs)
        opened.append(f)
        return f

    with patch("aesstream.security.crypto.open", side_effect=tracking_open, create=True):
        with pytest.raises(ValueError, match="chaining value must be 16 bytes"):
            decrypt_file_stream(str(enc_file), str(tmp_path / "out.dec"), key, b"short")
    assert opened
    assert all(f.closed for f in opened)
    assert not (tmp_path / "out.dec").exists()
