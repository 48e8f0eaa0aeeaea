import argparse
import asyncio
import logging
import sys

from luukahead.app.core.config import settings
from luukahead.app.core.logging import setup_logging
from luukahead.app.db.session import Database
from luukahead.app.security.sessions import SessionStore

logger = logging.getLogger("init_db")


async def init_models(database: Database, reset: bool = False, purge_sessions: bool = False) -> None:
    try:
        if reset:
            # Drops every table - DEV MODE ONLY
            await database.drop_all()
        await database.create_all()

        if purge_sessions:
            async with database.session() as db:
                removed = await SessionStore(db).delete_expired_sessions()
            logger.info("Removed %d expired sessions", removed)
    finally:
        await database.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the Luukahead tables.")
    parser.add_argument("--reset", action="store_true", help="drop all tables first (development only)")
    parser.add_argument("--purge-sessions", action="store_true", help="delete expired sessions")
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    if args.reset and settings.is_production:
        logger.error("Refusing to drop tables in production")
        return 1

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    asyncio.run(init_models(database, reset=args.reset, purge_sessions=args.purge_sessions))
    logger.info("Tables created for %s", settings.DATABASE_URL.split("@")[-1])
    return 0


if __name__ == "__main__":
    sys.exit(main())
