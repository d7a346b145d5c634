"""
Admin bootstrap script - creates (or promotes) an admin account

Run against the configured Redis:
    python scripts/create_admin.py admin@example.com 'a-strong-password' Ada Obi
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import logging

from cush.core.exceptions import CushError
from cush.db.redis_client import connect_to_redis, close_redis_connection, get_store
from cush.services.user_service import create_admin_user

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


async def create_admin(email: str, password: str, first_name: str, last_name: str):
    """Create or promote the admin account"""
    await connect_to_redis()

    try:
        if get_store().is_fallback:
            logger.error("❌ Redis is unreachable; refusing to create an admin in the process-local store")
            return False

        user, created = await create_admin_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )

        if created:
            logger.info(f"✅ Admin created: {user['email']} (id={user['id']})")
        else:
            logger.info(f"✅ Existing user promoted to admin: {user['email']}")
        return True

    except CushError as e:
        logger.error(f"\n❌ Error: {e.message}")
        return False

    finally:
        await close_redis_connection()


if __name__ == "__main__":
    if len(sys.argv) != 5:
        print("Usage: python scripts/create_admin.py <email> <password> <first-name> <last-name>")
        sys.exit(1)

    ok = asyncio.run(create_admin(*sys.argv[1:5]))
    sys.exit(0 if ok else 1)
