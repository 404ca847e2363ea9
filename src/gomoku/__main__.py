"""Entry point for running the server via ``python -m gomoku``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered gomoku room server."""

    level = os.environ.get("GOMOKU_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    host = os.environ.get("GOMOKU_HOST", "0.0.0.0")
    port = int(os.environ.get("GOMOKU_PORT", "8000"))
    uvicorn.run("gomoku.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
