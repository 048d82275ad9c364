"""
Programmatic Alembic migration runner.

Runs migrations without an alembic.ini by pointing the script location at this
package's migrations directory.

Usage examples:
    python -m siteproof.db.run_migrations upgrade head
    python -m siteproof.db.run_migrations downgrade -1
    python -m siteproof.db.run_migrations stamp head
    python -m siteproof.db.run_migrations history
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from siteproof.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


# PUBLIC_INTERFACE
def build_config() -> Config:
    """Return an Alembic Config bound to this package's migrations and the configured URL."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline URL; env.py builds its own async engine for online runs.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


def _with_default(fn: Callable[..., None], default: str) -> Callable[[Config, List[str]], None]:
    return lambda cfg, rest: fn(cfg, *(rest or [default]))


_COMMANDS: Dict[str, Callable[[Config, List[str]], None]] = {
    "upgrade": _with_default(command.upgrade, "head"),
    "downgrade": _with_default(command.downgrade, "-1"),
    "stamp": _with_default(command.stamp, "head"),
    "history": lambda cfg, rest: command.history(cfg, *rest),
    "current": lambda cfg, rest: command.current(cfg, *rest),
    "heads": lambda cfg, rest: command.heads(cfg, *rest),
}


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """
    Run an Alembic command with programmatic configuration.

    In-memory SQLite databases are skipped: they live only inside the serving process,
    which creates its schema from model metadata instead.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("No Alembic arguments provided. Example: upgrade head")
        sys.exit(1)

    if get_settings().is_in_memory:
        logger.info("In-memory database configured; skipping Alembic %s", args[0])
        return

    cmd, rest = args[0], args[1:]
    handler = _COMMANDS.get(cmd)
    if handler is None:
        print(f"Unsupported Alembic command: {cmd}")
        sys.exit(2)
    handler(build_config(), rest)


if __name__ == "__main__":
    main()
