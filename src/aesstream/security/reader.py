"""Streaming CBC decryption from a byte source, with random access.

The tricky part of reading CBC ciphertext as a stream is the last block:
its padding may only be stripped once we know no block follows it. Reads
therefore decrypt speculatively (the engine holds back the newest block) and
only finalize after the source has reported end-of-stream. The read loop is
an explicit state machine, see :class:`ReadState` and :func:`next_read_state`.

Seeking cannot be O(1). Decrypting block ``n`` needs the ciphertext of block
``n - 1`` as its chaining value, so a seek re-reads one block from the
source, resets the engine to it, and then decrypts forward to the exact
offset inside the target block.
"""
from __future__ import annotations

import enum
import io
import logging
from typing import BinaryIO, Optional

from aesstream.core.exceptions import CodecError, StreamError
from .cipher import BlockCipher
from .modes import BufferResult, CbcEngine, ModeResult

logger = logging.getLogger(__name__)

# ciphertext pulled from the source per refill
BUFFER_SIZE = 8192


class ReadState(enum.Enum):
    ATTEMPTING = "attempting"  # decrypt what is already pending
    AWAITING_INPUT = "awaiting_input"  # pull the next chunk from the source
    FINALIZING = "finalizing"  # end of stream seen, strip the padding


def next_read_state(status: BufferResult, produced: int, eof: bool) -> Optional[ReadState]:
    """Decide what follows a non-final decrypt attempt.

    Returns ``None`` when the read can return what it has: the caller's buffer
    is full (``OVERFLOW``) or some plaintext was produced. Otherwise the
    engine needs more ciphertext, which either has to be fetched or, once the
    source is exhausted, means the held-back block is the last one.
    """
    if status is BufferResult.OVERFLOW or produced:
        return None
    if eof:
        return ReadState.FINALIZING
    return ReadState.AWAITING_INPUT


class StreamDecryptor(io.RawIOBase):
    """Read-only stream yielding the plaintext of CBC ciphertext read from ``reader``.

    Args:
        reader: source of raw ciphertext; seeking requires a seekable source
        cipher: keyed block cipher matching the one used for encryption
        iv: initialization vector used for encryption
        owns_stream: close the source when this stream is closed
        buffer_size: ciphertext bytes requested from the source per refill
    """

    def __init__(
        self,
        reader: BinaryIO,
        cipher: BlockCipher,
        iv: bytes,
        owns_stream: bool = True,
        buffer_size: int = BUFFER_SIZE,
    ):
        super().__init__()
        self._reader: Optional[BinaryIO] = None
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._cipher = cipher
        self._block_size = cipher.block_size
        self._iv = bytes(iv)
        self._engine = CbcEngine(cipher, self._iv)
        self._buffer_size = buffer_size
        self._owns_stream = owns_stream
        # ciphertext read from the source that the engine has not consumed yet
        self._pending = bytearray()
        self._eof = False
        self._position = 0
        self._reader = reader

    @property
    def block_size(self) -> int:
        return self._block_size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        if self._reader is None:
            return False
        seekable = getattr(self._reader, "seekable", None)
        if seekable is None:
            return hasattr(self._reader, "seek")
        return bool(seekable())

    def tell(self) -> int:
        self._check_attached()
        return self._position

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def readinto(self, buf) -> int:
        self._check_attached()
        view = memoryview(buf).cast("B")
        size = len(view)
        if size == 0:
            return 0

        state = ReadState.ATTEMPTING
        while True:
            if state is ReadState.ATTEMPTING:
                result = self._decrypt_pending(size, final=False)
                state = next_read_state(result.status, len(result.output), self._eof)
                if state is None:
                    break
            elif state is ReadState.AWAITING_INPUT:
                self._fill_pending()
                state = ReadState.ATTEMPTING
            else:
                result = self._decrypt_pending(size, final=True)
                break

        n = len(result.output)
        view[:n] = result.output
        self._position += n
        return n

    def _decrypt_pending(self, size: int, final: bool) -> ModeResult:
        result = self._engine.decrypt(self._pending, final=final, limit=size)
        del self._pending[:result.consumed]
        return result

    def _fill_pending(self) -> None:
        chunk = self._reader.read(self._buffer_size)
        if not chunk:
            self._eof = True
            logger.debug("end of ciphertext after %d plaintext bytes", self._position)
            return
        self._pending += chunk

    # ------------------------------------------------------------------
    # Seeking
    # ------------------------------------------------------------------

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to plaintext ``offset`` and return the new absolute position.

        ``SEEK_CUR`` is relative to the current plaintext position and
        ``SEEK_END`` to the plaintext length. Every seek measures that length
        (one extra block decryption at the end of the source) and rejects
        targets beyond it with :class:`StreamError`, leaving the stream where
        it was.
        """
        self._check_attached()
        if not self.seekable():
            raise io.UnsupportedOperation("underlying source is not seekable")
        if whence not in (io.SEEK_SET, io.SEEK_CUR, io.SEEK_END):
            raise ValueError(f"invalid whence ({whence!r}, should be 0, 1 or 2)")
        length = self._plaintext_length()
        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._position + offset
        else:
            position = length + offset
        if position < 0:
            raise ValueError(f"negative seek position {position}")
        if position > length:
            raise StreamError(f"cannot seek to {position}: past the end of the plaintext ({length} bytes)")
        return self._seek_absolute(position)

    def _seek_absolute(self, position: int) -> int:
        bs = self._block_size
        block_index, block_offset = divmod(position, bs)
        if block_index == 0:
            self._reader.seek(0)
            self._engine.reset(self._iv)
        else:
            here = self._reader.tell()
            self._reader.seek((block_index - 1) * bs)
            previous = self._read_source_exact(bs)
            if previous is None:
                # nothing was reset yet, so put the source back where the pending state expects it
                self._reader.seek(here)
                raise StreamError(f"cannot seek to {position}: past the end of the ciphertext")
            self._engine.reset(previous)

        self._pending = bytearray()
        self._eof = False
        self._position = block_index * bs
        logger.debug("seek to %d (block %d, offset %d)", position, block_index, block_offset)

        self._skip(block_offset)
        return position

    def _skip(self, count: int) -> None:
        scratch = bytearray(count)
        view = memoryview(scratch)
        while view:
            n = self.readinto(view)
            if n == 0:
                raise StreamError(f"cannot seek to {self._position + len(view)}: past the end of the plaintext")
            view = view[n:]

    def _plaintext_length(self) -> int:
        bs = self._block_size
        here = self._reader.tell()
        try:
            end = self._reader.seek(0, io.SEEK_END)
            if end == 0 or end % bs:
                raise CodecError(
                    f"ciphertext length {end} is not a positive multiple of the block size ({bs})"
                )
            if end == bs:
                previous = self._iv
                self._reader.seek(0)
            else:
                self._reader.seek(end - 2 * bs)
                previous = self._read_source_exact(bs)
            last = self._read_source_exact(bs)
            if previous is None or last is None:
                raise StreamError("ciphertext shrank while measuring its length")
            tail = CbcEngine(self._cipher, previous).decrypt(last, final=True).output
        finally:
            self._reader.seek(here)
        return end - bs + len(tail)

    def _read_source_exact(self, count: int) -> Optional[bytes]:
        data = bytearray()
        while len(data) < count:
            chunk = self._reader.read(count - len(data))
            if not chunk:
                return None
            data += chunk
        return bytes(data)

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def into_inner(self) -> BinaryIO:
        """Detach and return the source without closing it."""
        self._check_attached()
        reader = self._reader
        self._reader = None
        super().close()
        return reader

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            if self._reader is not None and self._owns_stream:
                self._reader.close()

    def _check_attached(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed StreamDecryptor")
        if self._reader is None:
            raise ValueError("underlying source already detached")
