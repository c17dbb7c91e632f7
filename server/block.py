"""Block and validation records for the star registry.

A block's body is the hex encoding of the canonical JSON of its payload.
Its hash is SHA-256 over the canonical JSON of every other field.
"""

import binascii
import json
from dataclasses import dataclass

from crypto import canonical_json, sha256_hash
from protocol import DiscrepancyKind, DISCREPANCY_MESSAGES, NO_PREVIOUS_HASH


class BlockDecodeError(ValueError):
    """Block body is not hex-encoded JSON of an object."""


def encode_body(data: dict) -> str:
    return canonical_json(data).hex()


def decode_body(body: str) -> dict:
    try:
        data = json.loads(bytes.fromhex(body).decode("utf-8"))
    except (ValueError, TypeError, UnicodeDecodeError, binascii.Error) as e:
        raise BlockDecodeError(f"Undecodable block body: {e}") from e
    if not isinstance(data, dict):
        raise BlockDecodeError(f"Block body is {type(data).__name__}, expected object")
    return data


@dataclass
class Block:
    """One record in the chain.

    Only ``body`` is set by the creator; height, time, previous_hash and
    hash are filled in by Blockchain._add_block.
    """
    body: str
    height: int = -1
    time: int = 0
    previous_hash: str = NO_PREVIOUS_HASH
    hash: str = ""

    @classmethod
    def from_data(cls, data: dict) -> "Block":
        return cls(body=encode_body(data))

    def hash_fields(self) -> dict:
        return {
            "body": self.body,
            "height": self.height,
            "previous_hash": self.previous_hash,
            "time": self.time,
        }

    def compute_hash(self) -> str:
        return sha256_hash(canonical_json(self.hash_fields()))

    def validate(self) -> bool:
        """Recompute the hash from the current fields and compare to the stored one."""
        return bool(self.hash) and self.compute_hash() == self.hash

    def get_data(self) -> dict:
        return decode_body(self.body)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "height": self.height,
            "body": self.body,
            "time": self.time,
            "previous_hash": self.previous_hash,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Block":
        return cls(
            body=d.get("body", ""),
            height=d.get("height", -1),
            time=d.get("time", 0),
            previous_hash=d.get("previous_hash", NO_PREVIOUS_HASH),
            hash=d.get("hash", ""),
        )


@dataclass
class Discrepancy:
    """A single inconsistency found by Blockchain.validate_chain."""
    kind: DiscrepancyKind
    height: int
    block_hash: str
    expected_previous_hash: str | None = None
    actual_previous_hash: str | None = None

    @property
    def message(self) -> str:
        return DISCREPANCY_MESSAGES[self.kind]

    def to_dict(self) -> dict:
        d = {
            "error": self.message,
            "kind": self.kind.value,
            "height": self.height,
            "hash": self.block_hash,
        }
        if self.kind is DiscrepancyKind.BROKEN_LINKAGE:
            d["expected_previous_hash"] = self.expected_previous_hash
            d["actual_previous_hash"] = self.actual_previous_hash
        return d
