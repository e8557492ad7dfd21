"""Generate an RSA key pair for signing auth tokens."""

from __future__ import annotations

import base64
import os
import textwrap
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

KEY_SIZE = 2048
PRIVATE_FILE = "private.pem"
PUBLIC_FILE = "public.pem"


def _pem(label: str, der: bytes) -> bytes:
    body = "\n".join(textwrap.wrap(base64.b64encode(der).decode(), 64))
    return f"-----BEGIN {label}-----\n{body}\n-----END {label}-----\n".encode()


def gen_key(directory: str | os.PathLike[str] | None = None) -> tuple[Path, Path]:
    """Write private.pem and public.pem into directory; return their paths."""
    base = Path(directory) if directory is not None else Path.cwd()
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)

    private_der = private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    private_path = base / PRIVATE_FILE
    private_path.write_bytes(_pem("PRIVATE KEY", private_der))

    public_der = private_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    public_path = base / PUBLIC_FILE
    public_path.write_bytes(_pem("PUBLIC KEY", public_der))

    print("private and public key files generated")
    return private_path, public_path