"""Shared constants and interfaces for the star registry protocol.

All modules import from here to avoid circular dependencies.
"""

import os
from enum import Enum

# --- Protocol Constants ---

# Third field of every ownership challenge: "<address>:<time>:starRegistry"
PROTOCOL_TAG = "starRegistry"
MESSAGE_SEPARATOR = ":"
MESSAGE_FIELDS = 3

# Seconds a signed challenge stays valid (elapsed >= window is rejected)
VALIDATION_WINDOW = 300  # 5 minutes

# Payload of block 0
GENESIS_DATA = {"data": "Genesis Block"}

# previous_hash of the genesis block
NO_PREVIOUS_HASH = ""

# Identity strings are "star_" + hex(Ed25519 pubkey)
ADDRESS_PREFIX = "star_"

# --- Server / client defaults (overridable from the environment) ---

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_URL = os.environ.get("STAR_URL", f"http://localhost:{DEFAULT_PORT}")


# --- Rejections ---

class Rejection(Enum):
    INCORRECT_MESSAGE_FORMAT = "Incorrect message format"
    INCORRECT_TIME = "Incorrect time"
    UNVERIFIED_SIGNATURE = "Message signature unverified"
    BLOCK_NOT_FOUND = "Block Not Found!"


class RegistryError(Exception):
    """An expected failure of a registry operation.

    str(err) is the human-readable reason; err.rejection says which kind.
    """

    def __init__(self, rejection: Rejection, detail: str = ""):
        self.rejection = rejection
        self.detail = detail
        msg = rejection.value if not detail else f"{rejection.value}: {detail}"
        super().__init__(msg)


# --- Validation discrepancies ---

class DiscrepancyKind(Enum):
    TAMPERED_DATA = "tampered_data"
    BROKEN_LINKAGE = "broken_linkage"


DISCREPANCY_MESSAGES = {
    DiscrepancyKind.TAMPERED_DATA: "Block data was tampered",
    DiscrepancyKind.BROKEN_LINKAGE: "Previous block hash doesn't match the hash of the previous block",
}
