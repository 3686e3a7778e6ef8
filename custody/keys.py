"""
Principal keys and addresses
"""

import hashlib
from typing import Tuple

from cryptography.hazmat.primitives import hashes
from ecdsa import (
    BadDigestError, BadSignatureError, MalformedPointError, SECP256k1, SigningKey, VerifyingKey
)
from ecdsa.util import sigencode_string, sigdecode_string

from .errors import InvalidAddress

NULL_ADDRESS = "0x" + "00" * 20


def sha3_256(data: bytes) -> bytes:
    """SHA3-256 digest"""
    digest = hashes.Hash(hashes.SHA3_256())
    digest.update(data)
    return digest.finalize()


def normalize_address(address: str) -> str:
    """Lower-case an address and make sure it is 20 bytes of hex"""
    if not isinstance(address, str):
        raise InvalidAddress(f"Address must be a string, got {type(address).__name__}")
    body = address[2:] if address.startswith("0x") else address
    try:
        raw = bytes.fromhex(body)
    except ValueError:
        raise InvalidAddress(f"Address {address!r} is not hex") from None
    if len(raw) != 20:
        raise InvalidAddress(f"Address {address!r} must be 20 bytes")
    return "0x" + raw.hex()


def require_address(address: str) -> str:
    """Normalize address and reject the null address"""
    address = normalize_address(address)
    if address == NULL_ADDRESS:
        raise InvalidAddress("Null address not allowed")
    return address


def _raw_public_key(public_key_hex: str) -> bytes:
    try:
        raw = bytes.fromhex(public_key_hex)
    except (TypeError, ValueError):
        raise InvalidAddress("Public key is not hex") from None
    # Accept the 0x04-prefixed uncompressed encoding too
    if len(raw) == 65 and raw[0] == 4:
        raw = raw[1:]
    return raw


def address_from_public_key(public_key_hex: str) -> str:
    """Derive address from an uncompressed secp256k1 public key (x || y)"""
    raw = _raw_public_key(public_key_hex)
    if len(raw) != 64:
        raise InvalidAddress("Public key must be 64 bytes (uncompressed x || y)")
    return "0x" + sha3_256(raw)[-20:].hex()


def verify_digest(public_key_hex: str, digest: bytes, signature_hex: str) -> bool:
    """Verify a raw (r || s) signature over a 32-byte digest"""
    try:
        vk = VerifyingKey.from_string(_raw_public_key(public_key_hex), curve=SECP256k1)
        return vk.verify_digest(bytes.fromhex(signature_hex), digest, sigdecode=sigdecode_string)
    except (BadSignatureError, BadDigestError, MalformedPointError, ValueError):
        return False


class PrincipalKey:
    """secp256k1 key pair identifying one principal"""

    def __init__(self, private_key: bytes = None):
        if private_key:
            self.signing_key = SigningKey.from_string(private_key, curve=SECP256k1)
        else:
            self.signing_key = SigningKey.generate(curve=SECP256k1)
        self.verifying_key = self.signing_key.get_verifying_key()

    @property
    def public_key_hex(self) -> str:
        return self.verifying_key.to_string().hex()

    @property
    def address(self) -> str:
        return address_from_public_key(self.public_key_hex)

    def sign_digest(self, digest: bytes) -> str:
        """Deterministic (RFC 6979) signature over digest, hex encoded"""
        signature = self.signing_key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string
        )
        return signature.hex()

    @staticmethod
    def generate_key_pair() -> Tuple[str, str]:
        """Generate new key pair and return (private_key_hex, address)"""
        key = PrincipalKey()
        return key.signing_key.to_string().hex(), key.address
