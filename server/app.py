# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2026 Karan Sharma
"""HTTP API for the star registry (FastAPI).

Endpoints: chain height, block lookup by height or hash, ownership
challenge, star submission, stars by address, chain validation.

Submissions are authenticated by an Ed25519 signature over a challenge
issued by /requestValidation within the last 5 minutes.
"""

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from server.chain import Blockchain
from protocol import Rejection, RegistryError


# --- Request models ---

class ValidationRequest(BaseModel):
    address: str

class SubmitStarRequest(BaseModel):
    address: str
    message: str
    signature: str
    star: dict


REJECTION_STATUS = {
    Rejection.INCORRECT_MESSAGE_FORMAT: 400,
    Rejection.INCORRECT_TIME: 400,
    Rejection.UNVERIFIED_SIGNATURE: 401,
    Rejection.BLOCK_NOT_FOUND: 404,
}


def _http_error(err: RegistryError) -> HTTPException:
    """Map a registry rejection onto an HTTP error."""
    return HTTPException(REJECTION_STATUS.get(err.rejection, 400), str(err))


# --- App factory ---

def create_app(chain: Blockchain | None = None) -> FastAPI:
    """Create FastAPI app around an injected (or fresh) Blockchain."""

    app = FastAPI(title="Star Registry", version="1.0")

    _chain = chain or Blockchain()

    # Expose for testing
    app.state.chain = _chain

    @app.get("/height")
    async def get_height():
        return {"height": _chain.get_chain_height()}

    @app.get("/block/height/{height}")
    async def get_block_by_height(height: int):
        try:
            block = _chain.get_block_by_height(height)
        except RegistryError as e:
            raise _http_error(e)
        return block.to_dict()

    @app.get("/block/hash/{block_hash}")
    async def get_block_by_hash(block_hash: str):
        block = _chain.get_block_by_hash(block_hash)
        if block is None:
            raise HTTPException(404, Rejection.BLOCK_NOT_FOUND.value)
        return block.to_dict()

    @app.post("/requestValidation")
    async def request_validation(req: ValidationRequest):
        if not req.address.strip():
            raise HTTPException(400, "Address cannot be empty")
        return {"message": _chain.request_message_ownership_verification(req.address)}

    @app.post("/submitstar")
    async def submit_star(req: SubmitStarRequest):
        try:
            block = _chain.submit_star(req.address, req.message, req.signature, req.star)
        except RegistryError as e:
            raise _http_error(e)
        return block.to_dict()

    @app.get("/blocks/{address}")
    async def get_stars(address: str):
        return _chain.get_stars_by_wallet_address(address)

    @app.get("/validateChain")
    async def validate_chain(strict: bool = False):
        errors = _chain.validate_chain(strict=strict)
        return {"valid": not errors, "errors": [e.to_dict() for e in errors]}

    return app
