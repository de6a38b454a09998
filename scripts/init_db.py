import logging

from app.config import get_settings
from app.database import Base, build_engine

# Registers students, subjects, marks and the scrape_* tables on Base.metadata.
import app.models

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_db(database_url: str = None):
    logger.info("🏗️  Starting Database Construction...")

    # 1. Resolve URL (explicit argument wins over settings)
    if database_url is None:
        try:
            database_url = get_settings().DATABASE_URL
        except Exception as e:
            logger.error(f"Failed to load settings: {e}")
            raise

    # 2. Create Engine
    engine = build_engine(database_url)

    # 3. Create All Tables (checkfirst: safe to re-run)
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database Tables Created Successfully!")
        logger.info(f"   - Created: {list(Base.metadata.tables.keys())}")
    finally:
        engine.dispose()


if __name__ == "__main__":
    init_db()
