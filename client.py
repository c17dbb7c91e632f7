#!/usr/bin/env python3
"""Star registry API client.

Thin HTTP client with a pluggable transport interface.
The client holds the Ed25519 key; it signs the ownership challenge
the server issues and submits the signature with the star.

Usage:
    python client.py keygen KEYFILE             Create a new Ed25519 key
    python client.py address KEYFILE            Print the address for a key
    python client.py height                     Current chain height
    python client.py block HEIGHT               Show the block at HEIGHT
    python client.py submit KEYFILE --ra RA --dec DEC [--story TEXT]
                                                Request a challenge, sign it, submit a star
    python client.py stars ADDRESS              Stars registered by ADDRESS
    python client.py validate [--strict]        Validate the chain

Config:
    STAR_URL                                    Registry base URL (default http://localhost:8000)
"""

import asyncio
import json
import os
import sys
from abc import ABC, abstractmethod

import httpx

from crypto import (
    generate_ed25519_keypair, load_ed25519_key, save_ed25519_key,
    privkey_to_address, sign_message,
)
from protocol import DEFAULT_URL


class Transport(ABC):
    """Override this to talk to the registry over something other than HTTP."""

    @abstractmethod
    async def post(self, path: str, data: dict) -> dict:
        ...

    @abstractmethod
    async def get(self, path: str, params: dict | None = None) -> dict | list:
        ...


class HTTPTransport(Transport):
    """Default. Talks to a registry server over HTTP."""

    def __init__(self, base_url: str = DEFAULT_URL, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def post(self, path: str, data: dict) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self.base_url}{path}",
                json=data,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()

    async def get(self, path: str, params: dict | None = None) -> dict | list:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{self.base_url}{path}",
                params=params,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()


class StarClient:
    """High-level client for the star registry."""

    def __init__(self, transport: Transport | None = None, base_url: str = DEFAULT_URL,
                 privkey_bytes: bytes | None = None):
        self.privkey_bytes = privkey_bytes
        self.address = privkey_to_address(privkey_bytes) if privkey_bytes else ""
        self.transport = transport or HTTPTransport(base_url)

    async def get_height(self) -> int:
        resp = await self.transport.get("/height")
        return resp["height"]

    async def get_block_by_height(self, height: int) -> dict:
        return await self.transport.get(f"/block/height/{height}")

    async def get_block_by_hash(self, block_hash: str) -> dict:
        return await self.transport.get(f"/block/hash/{block_hash}")

    async def request_validation(self, address: str | None = None) -> str:
        """Ask the registry for an ownership challenge. Returns the message to sign."""
        resp = await self.transport.post("/requestValidation", {"address": address or self.address})
        return resp["message"]

    async def submit_star(self, star: dict, message: str | None = None) -> dict:
        """Sign a challenge with our key and register *star*. Returns the new block.

        Requests a fresh challenge unless *message* is given.
        """
        if not self.privkey_bytes:
            raise RuntimeError("A private key is required to submit stars")
        if message is None:
            message = await self.request_validation()
        return await self.transport.post("/submitstar", {
            "address": self.address,
            "message": message,
            "signature": sign_message(self.privkey_bytes, message),
            "star": star,
        })

    async def get_stars(self, address: str | None = None) -> list[dict]:
        return await self.transport.get(f"/blocks/{address or self.address}")

    async def validate_chain(self, strict: bool = False) -> dict:
        return await self.transport.get("/validateChain", {"strict": str(strict).lower()})


# --- CLI ---

def _usage(code: int = 0):
    print(__doc__.strip(), file=sys.stderr if code else sys.stdout)
    sys.exit(code)


def _parse_options(args: list[str]) -> tuple[list[str], dict]:
    """Split '--name value' pairs and bare '--flag's from positional args."""
    positional, options = [], {}
    i = 0
    while i < len(args):
        a = args[i]
        if a.startswith("--") and "=" in a:
            name, value = a[2:].split("=", 1)
            options[name] = value
        elif a.startswith("--") and i + 1 < len(args) and not args[i + 1].startswith("--"):
            options[a[2:]] = args[i + 1]
            i += 1
        elif a.startswith("--"):
            options[a[2:]] = True
        else:
            positional.append(a)
        i += 1
    return positional, options


def _show(obj):
    print(json.dumps(obj, indent=2))


async def run_command(command: str, args: list[str], base_url: str = DEFAULT_URL,
                      transport: Transport | None = None) -> int:
    """Run one CLI command against the registry. Returns an exit code."""
    positional, options = _parse_options(args)

    if command in ("keygen", "address", "submit") and not positional:
        _usage(2)
    if command == "submit" and ("ra" not in options or "dec" not in options):
        _usage(2)

    # Key file problems are reported, not raised
    privkey = None
    try:
        if command == "keygen":
            priv, _ = generate_ed25519_keypair()
            save_ed25519_key(positional[0], priv)
            print(privkey_to_address(priv))
            return 0
        if command in ("address", "submit"):
            privkey = load_ed25519_key(positional[0])
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if command == "address":
        print(privkey_to_address(privkey))
        return 0

    client = StarClient(transport=transport, base_url=base_url, privkey_bytes=privkey)

    try:
        if command == "height":
            print(await client.get_height())
        elif command == "block":
            if not positional or not (positional[0].isascii() and positional[0].isdigit()):
                _usage(2)
            _show(await client.get_block_by_height(int(positional[0])))
        elif command == "submit":
            star = {"ra": options["ra"], "dec": options["dec"]}
            if isinstance(options.get("story"), str):
                star["story"] = options["story"]
            _show(await client.submit_star(star))
        elif command == "stars":
            if not positional:
                _usage(2)
            _show(await client.get_stars(positional[0]))
        elif command == "validate":
            result = await client.validate_chain(strict=bool(options.get("strict")))
            _show(result)
            return 0 if result.get("valid") else 1
        else:
            print(f"Unknown command: {command}", file=sys.stderr)
            return 2
    except httpx.HTTPStatusError as e:
        try:
            detail = e.response.json().get("detail", e.response.text)
        except ValueError:
            detail = e.response.text
        print(f"Error ({e.response.status_code}): {detail}", file=sys.stderr)
        return 1
    except httpx.TransportError as e:
        print(f"Error: cannot reach registry at {base_url}: {e}", file=sys.stderr)
        return 1
    return 0


def main():
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        _usage()
    base_url = os.environ.get("STAR_URL", DEFAULT_URL)
    sys.exit(asyncio.run(run_command(sys.argv[1], sys.argv[2:], base_url=base_url)))


if __name__ == "__main__":
    main()
