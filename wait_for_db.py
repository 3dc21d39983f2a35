"""Block until the configured database accepts connections (container start-up)."""
import logging
import os
import time

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

logger = logging.getLogger("wait_for_db")


def wait(url: str, timeout_s: int) -> None:
    engine = create_engine(url, pool_pre_ping=True)
    start = time.time()
    logger.info("Waiting for database at %s (timeout=%ss)", engine.url.render_as_string(hide_password=True), timeout_s)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("Database is ready.")
                return
            except OperationalError as e:
                if time.time() - start > timeout_s:
                    logger.error("Timed out waiting for database. Last error: %s", e)
                    raise
                time.sleep(1)
    finally:
        engine.dispose()


logging.basicConfig(level=logging.INFO, format="[%(name)s] %(message)s")

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise SystemExit("DATABASE_URL is not set")
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql+psycopg2://" + DATABASE_URL[11:]

wait(DATABASE_URL, int(os.getenv("DB_WAIT_TIMEOUT", "60")))
