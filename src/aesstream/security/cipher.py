"""Keyed single-block cipher primitives used by the CBC engine.

The stream adapters never touch a key directly. They receive an object that
satisfies :class:`BlockCipher`: a fixed block size plus one-block encrypt and
decrypt operations. :class:`AesBlockCipher` is the stock implementation backed
by ``cryptography``'s AES.
"""
from __future__ import annotations

from typing import Protocol

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


AES_BLOCK_SIZE = 16
AES_KEY_SIZES = (16, 24, 32)


class BlockCipher(Protocol):
    """Anything that can encrypt or decrypt exactly one block at a time."""

    block_size: int

    def encrypt_block(self, block: bytes) -> bytes:
        ...

    def decrypt_block(self, block: bytes) -> bytes:
        ...


class AesBlockCipher:
    """AES as a raw block permutation.

    ECB with a single block is the bare AES permutation; chaining is done by
    :class:`aesstream.security.modes.CbcEngine`. The encryptor and decryptor
    contexts are created once so the key schedule is derived only here.
    """

    block_size = AES_BLOCK_SIZE

    def __init__(self, key: bytes):
        if len(key) not in AES_KEY_SIZES:
            raise ValueError(f"AES key must be 16, 24 or 32 bytes, got {len(key)} bytes")
        cipher = Cipher(algorithms.AES(key), modes.ECB())
        self._encryptor = cipher.encryptor()
        self._decryptor = cipher.decryptor()

    def _check(self, block: bytes) -> None:
        if len(block) != self.block_size:
            raise ValueError(f"block must be {self.block_size} bytes, got {len(block)}")

    def encrypt_block(self, block: bytes) -> bytes:
        self._check(block)
        return self._encryptor.update(bytes(block))

    def decrypt_block(self, block: bytes) -> bytes:
        self._check(block)
        return self._decryptor.update(bytes(block))
