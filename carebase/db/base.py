# carebase/db/base.py
from sqlalchemy.orm import DeclarativeBase

MYSQL_ARGS = {
    "mysql_engine": "InnoDB",
    "mysql_charset": "utf8mb4",
    "mysql_collate": "utf8mb4_unicode_ci",
}


class Base(DeclarativeBase):
    """All carebase tables inherit from this."""
    pass
