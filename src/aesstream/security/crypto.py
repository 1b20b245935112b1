"""File-level helpers on top of the stream adapters.

The output is raw AES-CBC ciphertext with PKCS#7 padding: no magic, no
header, no embedded IV. Keep the IV (and the salt, for password-derived
keys) next to the file yourself; without them the file cannot be read back.
"""
import os
import shutil

from .cipher import AES_BLOCK_SIZE, AesBlockCipher
from .reader import StreamDecryptor
from .writer import StreamEncryptor


CHUNK_SIZE = 64 * 1024


def generate_key(length: int = 32) -> bytes:
    return os.urandom(length)


def generate_iv(block_size: int = AES_BLOCK_SIZE) -> bytes:
    return os.urandom(block_size)


def encrypted_size(plaintext_size: int, block_size: int = AES_BLOCK_SIZE) -> int:
    # padding always adds at least one byte, a full block for aligned input
    return block_size * (plaintext_size // block_size + 1)


def encrypt_file_stream(in_path: str, out_path: str, key: bytes, iv: bytes, chunk_size: int = CHUNK_SIZE) -> None:
    cipher = AesBlockCipher(key)
    with open(in_path, "rb") as inf:
        outf = open(out_path, "wb")
        try:
            with StreamEncryptor(outf, cipher, iv) as enc:
                shutil.copyfileobj(inf, enc, chunk_size)
        except BaseException:
            # a finalized but incomplete output would decrypt cleanly, so never leave one behind
            outf.close()
            os.remove(out_path)
            raise


def decrypt_file_stream(
    in_path: str,
    out_path: str,
    key: bytes,
    iv: bytes,
    offset: int = 0,
    chunk_size: int = CHUNK_SIZE,
) -> None:
    """Decrypt in_path into out_path, starting at plaintext byte ``offset``.

    On failure (bad key, corrupted or truncated ciphertext) the partial output is removed.
    """
    cipher = AesBlockCipher(key)
    with open(in_path, "rb") as inf, StreamDecryptor(inf, cipher, iv) as dec:
        outf = open(out_path, "wb")
        try:
            with outf:
                if offset:
                    dec.seek(offset)
                shutil.copyfileobj(dec, outf, chunk_size)
        except BaseException:
            os.remove(out_path)
            raise
