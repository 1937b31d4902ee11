"""Run the deck merge service with uvicorn."""

from __future__ import annotations

import uvicorn

from common.config import get_settings

from .app import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
