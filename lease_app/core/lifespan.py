import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from .get_db import AsyncSessionLocal, async_engine

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        logger.info("Database connected.")
    except Exception:
        logger.exception("Database connection failed")

    yield

    await async_engine.dispose()
    logger.info("Database engine disposed.")
