"""CBC chaining with PKCS#7 padding as an incremental engine.

:class:`CbcEngine` is what the stream adapters drive. It accepts input in
arbitrary slices, emits whole blocks, and only touches the padding on the
call flagged ``final``:

- encryption buffers any sub-block remainder itself, always consumes all of
  its input, and runs ``cryptography``'s PKCS#7 padder over that remainder
  only on the final call;
- decryption holds back the most recently decrypted block, because it can
  only be told apart from the padding block once another block follows it
  or the caller declares the input finished.

Decryption output can be bounded with ``limit``. Plaintext that does not fit
stays inside the engine and is handed out first on the next call, and input
the engine did not get to is reported back through ``ModeResult.consumed``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import padding

from aesstream.core.exceptions import CodecError
from .cipher import BlockCipher


class BufferResult(enum.Enum):
    # more input is needed before the engine can produce anything else
    UNDERFLOW = "underflow"
    # the output limit was hit while plaintext or input was still waiting
    OVERFLOW = "overflow"


@dataclass(frozen=True)
class ModeResult:
    output: bytes
    consumed: int
    status: BufferResult


def _xor(a: bytes, b: bytes) -> bytes:
    n = len(a)
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(n, "big")


class CbcEngine:
    """Stateful CBC encrypt/decrypt over a keyed :class:`BlockCipher`.

    One engine serves one direction for its lifetime; mixing ``encrypt`` and
    ``decrypt`` calls on the same chain is not meaningful.
    """

    def __init__(self, cipher: BlockCipher, iv: bytes):
        self._cipher = cipher
        self._block_size = cipher.block_size
        self.reset(iv)

    @property
    def block_size(self) -> int:
        return self._block_size

    def reset(self, chaining_value: bytes) -> None:
        """Restart the chain from ``chaining_value`` and drop all buffered state.

        The cipher (and with it the key schedule) is kept.
        """
        if len(chaining_value) != self._block_size:
            raise ValueError(
                f"chaining value must be {self._block_size} bytes, got {len(chaining_value)}"
            )
        self._chain = bytes(chaining_value)
        # encryption state: plaintext short of a whole block, padded on the final call
        self._tail = bytearray()
        self._encrypt_done = False
        # decryption state
        self._partial = bytearray()
        self._held: Optional[bytes] = None
        self._ready = bytearray()
        self._decrypt_done = False

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, data: bytes, final: bool = False) -> ModeResult:
        """Encrypt ``data`` and return every whole ciphertext block available.

        With ``final=True`` the padding is appended and the remaining block(s)
        are emitted; the engine must be reset before encrypting again.
        """
        if self._encrypt_done:
            raise CodecError("encryption already finalized; reset the engine first")
        bs = self._block_size
        self._tail += data
        whole = len(self._tail) - len(self._tail) % bs
        plain = bytes(self._tail[:whole])
        del self._tail[:whole]
        if final:
            padder = padding.PKCS7(bs * 8).padder()
            plain += padder.update(bytes(self._tail)) + padder.finalize()
            self._tail.clear()
            self._encrypt_done = True

        out = bytearray()
        for i in range(0, len(plain), bs):
            block = self._cipher.encrypt_block(_xor(plain[i:i + bs], self._chain))
            self._chain = block
            out += block
        return ModeResult(bytes(out), len(data), BufferResult.UNDERFLOW)

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def decrypt(self, data: bytes, final: bool = False, limit: Optional[int] = None) -> ModeResult:
        """Decrypt as much of ``data`` as possible, emitting at most ``limit`` bytes.

        Non-final calls never emit the last block seen so far. A final call
        validates and strips the padding of that block and raises
        :class:`CodecError` if the input does not end on a block boundary, is
        empty, or carries invalid padding.
        """
        if self._decrypt_done and len(data):
            raise CodecError("ciphertext continues after the final padded block")

        bs = self._block_size
        out = bytearray()
        pos = 0
        while True:
            if self._ready:
                room = len(self._ready) if limit is None else limit - len(out)
                out += self._ready[:room]
                del self._ready[:room]
                if self._ready:
                    return ModeResult(bytes(out), pos, BufferResult.OVERFLOW)

            need = bs - len(self._partial)
            remaining = len(data) - pos
            if limit is not None and len(out) >= limit:
                if remaining >= need or (final and not self._decrypt_done):
                    return ModeResult(bytes(out), pos, BufferResult.OVERFLOW)

            if remaining >= need:
                self._partial += data[pos:pos + need]
                pos += need
                self._decrypt_partial()
                continue

            self._partial += data[pos:]
            pos = len(data)
            if not final or self._decrypt_done:
                return ModeResult(bytes(out), pos, BufferResult.UNDERFLOW)
            self._finish()

    def _decrypt_partial(self) -> None:
        block = bytes(self._partial)
        self._partial.clear()
        plain = _xor(self._cipher.decrypt_block(block), self._chain)
        self._chain = block
        if self._held is not None:
            self._ready += self._held
        self._held = plain

    def _finish(self) -> None:
        if self._partial:
            raise CodecError(
                f"ciphertext length is not a multiple of the block size ({self._block_size})"
            )
        if self._held is None:
            raise CodecError("no ciphertext block to finalize; expected at least one padded block")
        self._ready += self._strip_padding(self._held)
        self._held = None
        self._decrypt_done = True

    def _strip_padding(self, block: bytes) -> bytes:
        unpadder = padding.PKCS7(self._block_size * 8).unpadder()
        try:
            return unpadder.update(block) + unpadder.finalize()
        except ValueError as err:
            raise CodecError(f"decryption error: invalid padding ({err})") from err
