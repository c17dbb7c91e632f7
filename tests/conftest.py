import sys
import os

# Ensure the repository root is on the path for all tests
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from crypto import generate_ed25519_keypair, pubkey_to_address, sign_message
from server.chain import Blockchain


# Pre-generated test keypairs
_OWNER_PRIV, _OWNER_PUB = generate_ed25519_keypair()
_OTHER_PRIV, _OTHER_PUB = generate_ed25519_keypair()

OWNER_ADDRESS = pubkey_to_address(_OWNER_PUB)
OTHER_ADDRESS = pubkey_to_address(_OTHER_PUB)

OWNER_PRIV = _OWNER_PRIV
OTHER_PRIV = _OTHER_PRIV

SAMPLE_STAR = {"dec": "68° 52' 56.9", "ra": "16h 29m 1.0s", "story": "Testing the story 4"}

T0 = 1_700_000_000


class FakeClock:
    """Settable clock for Blockchain(clock=...)."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain(clock):
    return Blockchain(clock=clock)


def submit(chain, privkey=OWNER_PRIV, address=OWNER_ADDRESS, star=None):
    """Request a challenge, sign it and submit a star. Returns the admitted block."""
    message = chain.request_message_ownership_verification(address)
    signature = sign_message(privkey, message)
    return chain.submit_star(address, message, signature, star or SAMPLE_STAR)
