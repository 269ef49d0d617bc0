import logging
import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("prompt_wizard")

# --- Configuration ---
DATABASE_URL            = os.getenv("DATABASE_URL", "sqlite:///prompt_wizard.db")
LLM_TIMEOUT             = float(os.getenv("LLM_TIMEOUT", "60"))
LLM_RETRIES             = int(os.getenv("LLM_RETRIES", "3"))
CATALOG_PATH            = os.getenv("CATALOG_PATH")
STEP_CACHE_TTL_SECONDS  = int(os.getenv("STEP_CACHE_TTL_SECONDS", "3600"))

IS_LOCAL_DB = DATABASE_URL.startswith("sqlite")


def get_db_engine(url: str | None = None):
    url = url or DATABASE_URL

    if url.startswith("sqlite"):
        logger.info(f"[DB] Using SQLite URL: {url}")
        return create_engine(url, connect_args={"check_same_thread": False})

    logger.info(f"[DB] Connecting to Postgres host: {url.split('@')[-1]}")

    # pg8000 supports 'timeout' in seconds
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args={"timeout": 10},  # fail in 10s instead of hanging forever
    )


def create_session_factory(url: str | None = None) -> sessionmaker:
    engine = get_db_engine(url)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
