#!/usr/bin/env python3
"""Star registry server.

The chain lives in memory for the lifetime of the process.
Config from env: STAR_HOST, STAR_PORT, STAR_LOG_LEVEL.
"""

import os, sys, logging
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import uvicorn
from server.app import create_app
from server.chain import Blockchain
from protocol import DEFAULT_HOST, DEFAULT_PORT

HOST = os.environ.get("STAR_HOST", DEFAULT_HOST)
PORT = int(os.environ.get("STAR_PORT", str(DEFAULT_PORT)))
LOG_LEVEL = os.environ.get("STAR_LOG_LEVEL", "INFO").upper()


def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("run_server")

    chain = Blockchain()
    app = create_app(chain=chain)

    genesis = chain.get_block_by_height(0)
    log.info("Genesis block %s", genesis.hash)
    log.info("Listening on %s:%d", HOST, PORT)

    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
