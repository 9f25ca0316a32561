from typing import Tuple
import secrets

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_rsa_keypair(key_size: int = 2048) -> Tuple[bytes, bytes]:
    """
    Generates an RSA key pair for RS256 token signing.
    Returns (private_pem, public_pem) as bytes.
    """
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )

    # PKCS8, unencrypted: the key lives in the server environment
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return private_pem, public_pem


def generate_hmac_secret(num_bytes: int = 48) -> str:
    """
    Random URL-safe secret for HS256 signing.
    """
    return secrets.token_urlsafe(num_bytes)


def escape_pem(pem: bytes) -> str:
    # Escape newlines for .env
    return pem.decode("utf-8").replace("\n", "\\n")
