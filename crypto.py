"""Shared crypto utilities for the star registry.

Provides:
- SHA-256 digests and canonical JSON for block hashing
- Ed25519 identity (keypair generation, key files, addresses)
- Challenge message signing and verification

Dependencies: hashlib, json, os, cryptography
"""

import hashlib
import json
import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives import serialization

from protocol import ADDRESS_PREFIX


# ---------------------------------------------------------------------------
# SHA-256 + canonical JSON -- block hashing
# ---------------------------------------------------------------------------

def sha256_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def canonical_json(obj) -> bytes:
    """Canonical JSON: sorted keys, no extra whitespace, UTF-8."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


# ---------------------------------------------------------------------------
# Ed25519 identity
# ---------------------------------------------------------------------------

def generate_ed25519_keypair() -> tuple[bytes, bytes]:
    """Generate a new Ed25519 keypair. Returns (privkey_bytes, pubkey_bytes).
    Both are 32 bytes raw."""
    privkey = Ed25519PrivateKey.generate()
    priv_bytes = privkey.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    pub_bytes = privkey.public_key().public_bytes(
        serialization.Encoding.Raw,
        serialization.PublicFormat.Raw,
    )
    return priv_bytes, pub_bytes


def load_ed25519_key(path: str) -> bytes:
    """Load a 32-byte raw Ed25519 private key from file."""
    with open(path, "rb") as f:
        data = f.read()
    if len(data) != 32:
        raise ValueError(f"Expected 32-byte Ed25519 key, got {len(data)} bytes")
    return data


def save_ed25519_key(path: str, key: bytes) -> None:
    """Save a 32-byte raw Ed25519 private key to file (mode 0600)."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        os.write(fd, key)
    finally:
        os.close(fd)


def ed25519_privkey_to_pubkey(privkey_bytes: bytes) -> bytes:
    """Derive the 32-byte public key from a 32-byte private key."""
    privkey = Ed25519PrivateKey.from_private_bytes(privkey_bytes)
    return privkey.public_key().public_bytes(
        serialization.Encoding.Raw,
        serialization.PublicFormat.Raw,
    )


def ed25519_sign(privkey_bytes: bytes, data: bytes) -> str:
    """Sign data with Ed25519 private key. Returns 128-char hex signature."""
    privkey = Ed25519PrivateKey.from_private_bytes(privkey_bytes)
    return privkey.sign(data).hex()


def ed25519_verify(pubkey_bytes: bytes, data: bytes, sig_hex: str) -> bool:
    """Verify Ed25519 signature. Returns True if valid."""
    try:
        pubkey = Ed25519PublicKey.from_public_bytes(pubkey_bytes)
        pubkey.verify(bytes.fromhex(sig_hex), data)
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False


# ---------------------------------------------------------------------------
# Addresses: pubkey <-> star_<64hex>
# ---------------------------------------------------------------------------

def pubkey_to_address(pubkey_bytes: bytes) -> str:
    """Convert 32-byte Ed25519 pubkey to a registry address: 'star_<64hex>'."""
    return ADDRESS_PREFIX + pubkey_bytes.hex()


def address_to_pubkey(address: str) -> bytes:
    """Convert 'star_<64hex>' address to 32-byte pubkey."""
    if not address.startswith(ADDRESS_PREFIX):
        raise ValueError(f"Invalid address: {address}")
    hex_part = address[len(ADDRESS_PREFIX):]
    if len(hex_part) != 64:
        raise ValueError(f"Invalid address length: {address}")
    return bytes.fromhex(hex_part)


def privkey_to_address(privkey_bytes: bytes) -> str:
    """Registry address for the holder of a 32-byte private key."""
    return pubkey_to_address(ed25519_privkey_to_pubkey(privkey_bytes))


# ---------------------------------------------------------------------------
# Challenge messages
# ---------------------------------------------------------------------------

def sign_message(privkey_bytes: bytes, message: str) -> str:
    """Sign a challenge message. Returns hex signature."""
    return ed25519_sign(privkey_bytes, message.encode("utf-8"))


def verify_message(message: str, address: str, signature: str) -> bool:
    """Check that *signature* over *message* was made by the key behind *address*.

    Malformed addresses or signatures verify as False instead of raising.
    """
    try:
        pubkey_bytes = address_to_pubkey(address)
    except (ValueError, AttributeError, TypeError):
        return False
    if not isinstance(signature, str) or not isinstance(message, str):
        return False
    return ed25519_verify(pubkey_bytes, message.encode("utf-8"), signature)
