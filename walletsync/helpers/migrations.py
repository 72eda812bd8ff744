import logging
from typing import Optional

from alembic import command
from alembic.config import Config


def apply_migrations(database_url: Optional[str] = None):
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.propagate = True
    # Path to your Alembic config file
    alembic_cfg = Config("alembic.ini")
    if database_url:
        alembic_cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    # Run the migrations
    command.upgrade(alembic_cfg, "head")
