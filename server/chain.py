"""In-memory star registry chain.

Holds the ordered list of blocks, admits new blocks after ownership
verification, validates linkage and answers read-only queries.
All mutation goes through _add_block under the writer lock.
"""

import logging
import threading
import time
from typing import Callable

from server.block import Block, BlockDecodeError, Discrepancy
from crypto import verify_message
from protocol import (
    DiscrepancyKind, GENESIS_DATA, MESSAGE_FIELDS, MESSAGE_SEPARATOR,
    NO_PREVIOUS_HASH, PROTOCOL_TAG, Rejection, RegistryError, VALIDATION_WINDOW,
)

log = logging.getLogger(__name__)


class Blockchain:
    """Single authoritative chain, populated with a genesis block on construction."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        validation_window: int = VALIDATION_WINDOW,
    ):
        self.chain: list[Block] = []
        self.height = -1
        self._clock = clock
        self._window = validation_window
        self._lock = threading.Lock()
        self.initialize_chain()

    def _now(self) -> int:
        return int(self._clock())

    def initialize_chain(self) -> None:
        """Create the genesis block if the chain is still empty."""
        if self.height == -1:
            self._add_block(Block.from_data(GENESIS_DATA))

    def get_chain_height(self) -> int:
        return self.height

    def snapshot(self) -> list[Block]:
        """Copy of the block list taken under the writer lock."""
        with self._lock:
            return list(self.chain)

    # --- Admission ---

    def _add_block(self, block: Block) -> Block:
        """Link, hash and append *block*. The only mutation path."""
        with self._lock:
            block.time = self._now()
            if not self.chain:
                block.height = 0
                block.previous_hash = NO_PREVIOUS_HASH
            else:
                tip = next((b for b in self.chain if b.height == self.height), None)
                if tip is None or not tip.hash:
                    log.warning("No tip block at height %d; appending height %d unlinked",
                                self.height, self.height + 1)
                    block.previous_hash = NO_PREVIOUS_HASH
                else:
                    block.previous_hash = tip.hash
                block.height = self.height + 1
            block.hash = block.compute_hash()
            self.chain.append(block)
            self.height = block.height
        log.info("Admitted block %d (%s)", block.height, block.hash[:16])
        return block

    # --- Ownership verification ---

    def request_message_ownership_verification(self, address: str) -> str:
        """Challenge the holder of *address* must sign: '<address>:<time>:starRegistry'."""
        return MESSAGE_SEPARATOR.join([address, str(self._now()), PROTOCOL_TAG])

    def submit_star(self, address: str, message: str, signature: str, star) -> Block:
        """Admit a star block once the signed challenge checks out.

        Raises RegistryError with INCORRECT_MESSAGE_FORMAT, INCORRECT_TIME or
        UNVERIFIED_SIGNATURE; the chain is untouched on any rejection.
        """
        parts = message.split(MESSAGE_SEPARATOR)
        if len(parts) != MESSAGE_FIELDS:
            log.info("Rejected submission from %s: %d message fields", address, len(parts))
            raise RegistryError(Rejection.INCORRECT_MESSAGE_FORMAT)

        # Plain ASCII digits only
        stamp = parts[1]
        issued = int(stamp) if stamp.isascii() and stamp.isdigit() else 0
        if issued <= 0:
            log.info("Rejected submission from %s: bad timestamp %r", address, parts[1])
            raise RegistryError(Rejection.INCORRECT_TIME, f"unparsable timestamp {parts[1]!r}")

        elapsed = self._now() - issued
        if elapsed >= self._window:
            log.info("Rejected submission from %s: challenge %ds old", address, elapsed)
            raise RegistryError(
                Rejection.INCORRECT_TIME,
                f"challenge is {elapsed}s old (max {self._window - 1}s)",
            )

        if not verify_message(message, address, signature):
            log.info("Rejected submission from %s: bad signature", address)
            raise RegistryError(Rejection.UNVERIFIED_SIGNATURE)

        block = Block.from_data({
            "address": address,
            "message": message,
            "signature": signature,
            "star": star,
        })
        return self._add_block(block)

    # --- Queries ---

    def get_block_by_hash(self, block_hash: str) -> Block | None:
        """First block with this stored hash, or None."""
        return next((b for b in self.snapshot() if b.hash == block_hash), None)

    def get_block_by_height(self, height: int) -> Block:
        block = next((b for b in self.snapshot() if b.height == height), None)
        if block is None:
            raise RegistryError(Rejection.BLOCK_NOT_FOUND, f"height {height}")
        return block

    def get_stars_by_wallet_address(self, address: str) -> list[dict]:
        """All stars registered by *address* as [{"owner": ..., "star": ...}]."""
        stars = []
        for block in self.snapshot():
            try:
                data = block.get_data()
            except BlockDecodeError as e:
                log.debug("Skipping block %d: %s", block.height, e)
                continue
            if data.get("address") == address:
                stars.append({"owner": address, "star": data.get("star")})
        return stars

    # --- Validation ---

    def validate_chain(self, strict: bool = False) -> list[Discrepancy]:
        """Walk the chain in height order and report every discrepancy.

        An empty list means the chain is valid. Tampered blocks (stored hash
        differs from the recomputed one) are always reported.

        The default mode carries each valid block's own previous_hash forward
        as the expectation before comparing, so it only ever reports tampered
        blocks; existing validation reports depend on that. With strict=True
        every block above genesis must name the stored hash of the block
        before it.
        """
        blocks = self.snapshot()
        errors = []
        expected_previous = NO_PREVIOUS_HASH
        for i, block in enumerate(blocks):
            if not block.validate():
                errors.append(Discrepancy(DiscrepancyKind.TAMPERED_DATA, block.height, block.hash))
                continue

            if strict:
                expected_previous = blocks[i - 1].hash if i > 0 else NO_PREVIOUS_HASH
            else:
                expected_previous = block.previous_hash

            if block.height > 0 and block.previous_hash != expected_previous:
                errors.append(Discrepancy(
                    DiscrepancyKind.BROKEN_LINKAGE,
                    block.height,
                    block.hash,
                    expected_previous_hash=expected_previous,
                    actual_previous_hash=block.previous_hash,
                ))
        if errors:
            log.warning("Chain validation found %d discrepancies", len(errors))
        return errors
