"""Security package of aesstream: streaming AES-CBC encryption and decryption.

This package provides:
- a resettable CBC + PKCS#7 engine over any single-block cipher
- StreamEncryptor / StreamDecryptor, file-like adapters over byte sinks and sources
- seeking into ciphertext by plaintext offset
- Argon2id key derivation and key/IV generation helpers
"""

from .cipher import AES_BLOCK_SIZE, AesBlockCipher, BlockCipher
from .modes import BufferResult, CbcEngine, ModeResult
from .writer import StreamEncryptor
from .reader import BUFFER_SIZE, ReadState, StreamDecryptor, next_read_state
from .kdf import generate_salt, derive_key
from .crypto import (
    generate_key,
    generate_iv,
    encrypted_size,
    encrypt_file_stream,
    decrypt_file_stream,
)

__all__ = [
    "AES_BLOCK_SIZE",
    "AesBlockCipher",
    "BlockCipher",
    "BufferResult",
    "CbcEngine",
    "ModeResult",
    "StreamEncryptor",
    "StreamDecryptor",
    "BUFFER_SIZE",
    "ReadState",
    "next_read_state",
    "generate_salt",
    "derive_key",
    "generate_key",
    "generate_iv",
    "encrypted_size",
    "encrypt_file_stream",
    "decrypt_file_stream",
]
