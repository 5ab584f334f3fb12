# Usage: python -m app.scripts.create_admin <username> <password> [org_id]
import asyncio
import logging
import sys

from sqlalchemy.future import select

from app.core.db import AsyncSessionLocal, init_models
from app.core.logging_config import setup_logging
from app.core.security import hash_password
from app.models.user_models import User

logger = logging.getLogger(__name__)


async def create_admin(username: str, password: str, org_id: int = 1):
    await init_models()
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(User).where(User.username == username))
        if existing.scalars().first():
            logger.warning("User '%s' already exists", username)
            return
        owner = User(
            org_id=org_id,
            username=username,
            password_hash=hash_password(password),
            role="owner",
            is_active=True,
        )
        session.add(owner)
        await session.commit()
        logger.info("Owner '%s' created for org %s", username, org_id)


if __name__ == "__main__":
    setup_logging()
    if len(sys.argv) < 3:
        sys.exit("usage: python -m app.scripts.create_admin <username> <password> [org_id]")
    asyncio.run(create_admin(sys.argv[1], sys.argv[2], int(sys.argv[3]) if len(sys.argv) > 3 else 1))
