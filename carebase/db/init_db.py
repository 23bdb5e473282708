# carebase/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy.engine import Engine

from carebase.core.config import settings
from carebase.db.base import Base
from carebase.db.session import make_engine

# Import all models so metadata is complete
from carebase import models  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables(eng: Engine) -> None:
    Base.metadata.create_all(bind=eng)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create carebase tables")
    parser.add_argument("--db-url", default=settings.DATABASE_URL)
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)
    eng = make_engine(args.db_url)
    create_tables(eng)
    logger.info("Tables ready: %s", sorted(Base.metadata.tables))


if __name__ == "__main__":
    main()
