"""Password-based AES keys for the CLI and the file helpers.

Keys are stretched with Argon2id. The salt is not secret but must be stored
next to the ciphertext (the output carries no header), and the cost
parameters used for encryption have to be repeated exactly for decryption.
"""
import os
from typing import Union

from argon2.low_level import Type, hash_secret_raw

from .cipher import AES_KEY_SIZES

SALT_SIZE = 16

# Argon2id costs: 3 passes over 64 MiB on a single lane
TIME_COST = 3
MEMORY_COST_KIB = 64 * 1024
PARALLELISM = 1


def generate_salt(length: int = SALT_SIZE) -> bytes:
    return os.urandom(length)


def derive_key(
    password: Union[str, bytes],
    salt: bytes,
    time_cost: int = TIME_COST,
    memory_cost: int = MEMORY_COST_KIB,
    parallelism: int = PARALLELISM,
    key_len: int = 32,
) -> bytes:
    """Derive an AES-128/192/256 key from ``password`` and ``salt``.

    Raises ValueError unless ``key_len`` is a valid AES key size.
    """
    if key_len not in AES_KEY_SIZES:
        raise ValueError(f"key_len must be one of {AES_KEY_SIZES} for AES, got {key_len}")
    if isinstance(password, str):
        password = password.encode("utf-8")
    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )
