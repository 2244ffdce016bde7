"""Main entry point for the Emoset backend."""

import logging
import os

import uvicorn
from dotenv import load_dotenv

from .api.app import create_app
from .config import load_config


def main():
    """Run the Emoset backend server."""
    _ = load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = load_config()
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
