"""Streaming CBC encryption onto a byte sink.

Usage::

    with StreamEncryptor(open(path, "wb"), AesBlockCipher(key), iv) as enc:
        for chunk in chunks:
            enc.write(chunk)

Leaving the ``with`` block (or calling :meth:`StreamEncryptor.close`)
finalizes the stream, which writes the padding block. A stream that is never
finalized is truncated: the last partial block and the padding are missing
and the result cannot be decrypted.

An encryptor that still owns its sink and is garbage-collected without being
finalized makes a best-effort attempt to finalize. That attempt is logged
(warning on entry, traceback on failure) and never raises, so a failing
final write goes unnoticed by the caller. Use :meth:`finalize`,
:meth:`close`, :meth:`into_inner` or a ``with`` block instead.
"""
from __future__ import annotations

import io
import logging
from typing import BinaryIO, Optional

from aesstream.core.exceptions import AdapterClosedError
from .cipher import BlockCipher
from .modes import CbcEngine

logger = logging.getLogger(__name__)


class StreamEncryptor(io.RawIOBase):
    """Write-only stream that CBC-encrypts everything written to it.

    Args:
        writer: sink receiving the raw ciphertext (no header, no IV)
        cipher: keyed block cipher, e.g. :class:`~aesstream.security.cipher.AesBlockCipher`
        iv: initialization vector, ``cipher.block_size`` bytes
        owns_stream: close the sink on :meth:`close`, and finalize implicitly on
            garbage collection. Pass ``False`` for sinks the caller keeps using.
    """

    def __init__(self, writer: BinaryIO, cipher: BlockCipher, iv: bytes, owns_stream: bool = True):
        super().__init__()
        self._writer: Optional[BinaryIO] = None
        self._finalized = False
        self._engine = CbcEngine(cipher, iv)
        # padding block(s) produced by finalize() that the sink has not taken yet
        self._final_blocks: Optional[bytes] = None
        self._owns_stream = owns_stream
        self._writer = writer

    @property
    def finalized(self) -> bool:
        return self._finalized

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self._finalized or self._final_blocks is not None:
            raise AdapterClosedError("StreamEncryptor is closed")
        result = self._engine.encrypt(bytes(data))
        self._write_all(result.output)
        return result.consumed

    def finalize(self) -> None:
        """Write the padding block(s) and flush the sink. Safe to call repeatedly.

        If the sink fails, the unwritten part of the final output is kept and
        the next call retries it.
        """
        if self._finalized:
            return
        if self._final_blocks is None:
            self._final_blocks = self._engine.encrypt(b"", final=True).output
        while self._final_blocks:
            written = self._write_some(self._final_blocks)
            self._final_blocks = self._final_blocks[written:]
        self._finalized = True
        self._writer.flush()
        logger.debug("encryption stream finalized")

    def flush(self) -> None:
        # never finalizes: buffered writers and text wrappers call flush() freely
        if self._writer is not None and not self.closed:
            self._writer.flush()

    def into_inner(self) -> BinaryIO:
        """Finalize, detach and return the sink without closing it."""
        if self._writer is None:
            raise ValueError("underlying sink already detached")
        self.finalize()
        writer = self._writer
        self._writer = None
        super().close()
        return writer

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._writer is not None:
                self.finalize()
        finally:
            try:
                super().close()
            finally:
                if self._writer is not None and self._owns_stream:
                    self._writer.close()

    def __del__(self):
        if getattr(self, "_writer", None) is None or self.closed:
            return
        if not self._owns_stream:
            if not self._finalized:
                logger.warning("StreamEncryptor discarded without finalize(); sink left unfinalized")
            return
        if not self._finalized:
            logger.warning("StreamEncryptor discarded without finalize(); finalizing implicitly")
        try:
            self.close()
        except Exception:
            logger.exception("implicit finalize failed; ciphertext is probably truncated")

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            view = view[self._write_some(view):]

    def _write_some(self, data) -> int:
        written = self._writer.write(data)
        # None is a non-blocking raw sink that would block
        if not written:
            raise OSError(f"sink accepted no bytes of a {len(data)}-byte write")
        return written
