# camrent/db/database.py
import logging
from contextlib import asynccontextmanager

import motor.motor_asyncio
from beanie import init_beanie

from camrent.core.config import MONGODB_URL, DATABASE_NAME, MONGODB_TRANSACTIONS
from camrent.models.user import User
from camrent.models.camera import Camera
from camrent.models.rental import Rental
from camrent.models.extension import RentalExtension
from camrent.models.payment import Payment

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [User, Camera, Rental, RentalExtension, Payment]


async def init_db(database=None):
    """Connect to MongoDB and initialize Beanie. Tests pass their own database."""
    if database is None:
        logger.info("Connecting to MongoDB...")
        client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL)
        database = client[DATABASE_NAME]
        logger.info(f"Using database: {DATABASE_NAME}")

    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")


@asynccontextmanager
async def transaction_session():
    """
    Yield a session inside a started transaction when MONGODB_TRANSACTIONS is on,
    otherwise yield None so callers fall back to single-document writes.
    """
    if not MONGODB_TRANSACTIONS:
        yield None
        return

    motor_client = Rental.get_motor_collection().database.client
    async with await motor_client.start_session() as session:
        async with session.start_transaction():
            logger.debug("Transaction started.")
            yield session
