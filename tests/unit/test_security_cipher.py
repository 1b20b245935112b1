"""Unit tests for the AES block primitive."""

import pytest
from aesstream.security.cipher import AES_BLOCK_SIZE, AesBlockCipher

# NIST SP 800-38A, F.1.1 (ECB-AES128), first block
NIST_KEY = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
NIST_PLAIN = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
NIST_CIPHER = bytes.fromhex("3ad77bb40d7a3660a89ecaf32466ef97")


def test_block_size_is_aes_block():
    assert AesBlockCipher(NIST_KEY).block_size == AES_BLOCK_SIZE == 16


def test_encrypt_block_known_answer():
    assert AesBlockCipher(NIST_KEY).encrypt_block(NIST_PLAIN) == NIST_CIPHER


def test_decrypt_block_inverts_encrypt():
    cipher = AesBlockCipher(NIST_KEY)
    assert cipher.decrypt_block(NIST_CIPHER) == NIST_PLAIN


def test_contexts_are_reusable():
    """The same primitive must keep working block after block (no finalize in between)."""
    cipher = AesBlockCipher(NIST_KEY)
    for _ in range(3):
        assert cipher.encrypt_block(NIST_PLAIN) == NIST_CIPHER


@pytest.mark.parametrize("size", [16, 24, 32])
def test_accepts_aes_key_sizes(size):
    cipher = AesBlockCipher(bytes(size))
    block = cipher.encrypt_block(bytes(16))
    assert len(block) == 16
    assert cipher.decrypt_block(block) == bytes(16)


@pytest.mark.parametrize("size", [0, 8, 15, 33])
def test_rejects_invalid_key_sizes(size):
    with pytest.raises(ValueError, match="AES key must be"):
        AesBlockCipher(bytes(size))


def test_rejects_wrong_block_length():
    cipher = AesBlockCipher(NIST_KEY)
    with pytest.raises(ValueError, match="block must be 16 bytes"):
        cipher.encrypt_block(b"short")
    with pytest.raises(ValueError, match="block must be 16 bytes"):
        cipher.decrypt_block(bytes(17))
