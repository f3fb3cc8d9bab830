from sqlalchemy import inspect

from series_service.db.connection import engine as default_engine
from series_service.db.models import Base
from series_service.utils.logger import logger


def init_database(engine=None):
    """Create any missing series tables. Existing tables are left untouched."""
    engine = engine or default_engine
    existing = set(inspect(engine).get_table_names())
    missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]
    if not missing:
        logger.info("Series schema already present.")
        return []

    Base.metadata.create_all(bind=engine, tables=missing)
    created = [t.name for t in missing]
    logger.info(f"Created tables: {', '.join(created)}")
    return created


if __name__ == "__main__":
    init_database()
