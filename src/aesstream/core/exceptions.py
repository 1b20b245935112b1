"""
Exceptions for aesstream
Everything the package raises on purpose derives from StreamError so callers have one catch-all
"""


class StreamError(Exception):
    # general container for errors
    pass


class CodecError(StreamError):
    # raised when the cipher mode engine fails (bad padding, truncated ciphertext, misuse)
    pass


class AdapterClosedError(StreamError):
    # raised on a write after the encryptor was finalized
    pass
