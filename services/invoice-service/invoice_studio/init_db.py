#!/usr/bin/env python3
"""Create the invoice service tables"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

from . import models  # noqa: F401  registers the tables on Base.metadata
from .core.logging import get_logger, setup_logging
from .database import Base, engine

logger = get_logger("init_db")


async def create_tables(bind: AsyncEngine = engine):
    """Create database tables"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_tables())
