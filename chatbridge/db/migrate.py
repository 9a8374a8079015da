"""Apply Alembic migrations programmatically."""

from alembic import command
from alembic.config import Config

from chatbridge.core import get_logger

logger = get_logger(__name__)

SCRIPT_LOCATION = "chatbridge:migrations"


def alembic_config(database_url: str) -> Config:
    """Build an Alembic config pointing at the packaged migrations."""
    cfg = Config()
    cfg.set_main_option("script_location", SCRIPT_LOCATION)
    # configparser interpolation treats % specially
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def run_migrations(database_url: str, revision: str = "head") -> None:
    """Upgrade the database at ``database_url`` to ``revision``."""
    command.upgrade(alembic_config(database_url), revision)
    logger.info("Database migrations applied", data={"revision": revision})
