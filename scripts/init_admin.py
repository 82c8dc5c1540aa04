"""Script to create the global roles and the initial admin user."""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import settings
from app.core.logging import setup_logging
from app.core.security import ROLE_PERMISSIONS
from app.database import AsyncSessionLocal
from app.services.bootstrap_service import ensure_default_admin, ensure_roles


async def init_admin():
    """Create roles and the admin user if they don't exist."""
    async with AsyncSessionLocal() as db:
        role_map = await ensure_roles(db, role_names=ROLE_PERMISSIONS.keys())
        print("✓ Roles ready:", ", ".join(sorted(role_map)))

        admin_user = await ensure_default_admin(db, role_map=role_map)
        print(f"✓ Admin user ready: {admin_user.email}")
        if admin_user.email == settings.DEFAULT_ADMIN_EMAIL:
            print("(Password comes from DEFAULT_ADMIN_PASSWORD on first creation)")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_admin())
