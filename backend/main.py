"""Run the Haku API with uvicorn (``python main.py`` from ``backend/``)."""

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from src.services.config import get_config  # noqa: E402  (reads the loaded .env)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = get_config()
    uvicorn.run(
        "src.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=config.port,
        reload=os.getenv("RELOAD", "false").lower() in {"1", "true", "yes"},
    )


if __name__ == "__main__":
    main()
