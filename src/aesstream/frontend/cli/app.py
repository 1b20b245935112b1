"""Command line front end: encrypt or decrypt files as raw AES-CBC streams.

Examples::

    aesstream keygen
    aesstream encrypt notes.txt notes.bin --key <hex> --iv <hex>
    aesstream decrypt notes.bin notes.txt --password - --salt <hex> --iv <hex>
    aesstream decrypt big.bin tail.bin --key <hex> --iv <hex> --offset 1048576

The ciphertext carries no header, so the IV (and the salt when a password is
used) has to be supplied again for decryption.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import List, Optional

from aesstream.core.exceptions import StreamError
from aesstream.security.cipher import AES_BLOCK_SIZE
from aesstream.security.crypto import (
    decrypt_file_stream,
    encrypt_file_stream,
    generate_iv,
    generate_key,
)
from aesstream.security.kdf import derive_key, generate_salt
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _add_stream_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Path to read from")
    parser.add_argument("output", help="Path to write to")
    parser.add_argument(
        "--iv",
        required=True,
        help=f"Initialization vector as hex ({AES_BLOCK_SIZE} bytes)",
    )
    key_group = parser.add_mutually_exclusive_group(required=True)
    key_group.add_argument("--key", help="AES key as hex (16, 24 or 32 bytes)")
    key_group.add_argument(
        "--password",
        help="Derive the key from this password with Argon2id ('-' prompts for it)",
    )
    parser.add_argument(
        "--salt",
        default=None,
        help="Salt as hex, required with --password",
    )


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aesstream",
        description="Encrypt or decrypt files as raw AES-CBC (PKCS#7) streams.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encrypt", help="Encrypt INPUT into OUTPUT")
    _add_stream_arguments(enc)

    dec = sub.add_parser("decrypt", help="Decrypt INPUT into OUTPUT")
    _add_stream_arguments(dec)
    dec.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Start at this plaintext byte offset (default: 0)",
    )

    keygen = sub.add_parser("keygen", help="Print a fresh random key, IV and salt")
    keygen.add_argument(
        "--key-size",
        type=int,
        choices=(16, 24, 32),
        default=32,
        help="Key length in bytes (default: 32)",
    )
    return parser


def _resolve_key(args: argparse.Namespace) -> bytes:
    if args.key is not None:
        return bytes.fromhex(args.key)
    if args.salt is None:
        raise ValueError("--password requires --salt (generate one with 'aesstream keygen')")
    password = args.password
    if password == "-":
        password = getpass.getpass("Password: ")
    return derive_key(password, bytes.fromhex(args.salt))


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "keygen":
            print(f"key:  {generate_key(args.key_size).hex()}")
            print(f"iv:   {generate_iv().hex()}")
            print(f"salt: {generate_salt().hex()}")
            return 0

        key = _resolve_key(args)
        iv = bytes.fromhex(args.iv)
        if args.command == "encrypt":
            encrypt_file_stream(args.input, args.output, key, iv)
        else:
            decrypt_file_stream(args.input, args.output, key, iv, offset=args.offset)
        logger.debug("%s %s -> %s done", args.command, args.input, args.output)
    except (StreamError, ValueError, OSError) as err:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
