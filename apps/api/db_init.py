"""One-off command creating the database schema (``python -m apps.api.db_init``)."""

from __future__ import annotations

import asyncio

from libs.db import init_db
from libs.logging import setup_logging


def main() -> None:
    setup_logging()
    asyncio.run(init_db())


if __name__ == "__main__":
    main()
