"""
Runtime configuration read from the environment (and a local .env file)
"""
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = Path(__file__).resolve().parents[1]


@dataclass
class Settings:
    """Settings for the store, logging, booking retries and payment gateways"""
    store_backend: str = 'memory'
    database_url: Optional[str] = None
    log_level: str = 'INFO'
    log_dir: Optional[str] = None
    booking_max_retries: int = 5
    booking_retry_delay: float = 0.01
    card_failure_rate: float = 0.1
    wallet_failure_rate: float = 0.1
    default_currency: str = 'PKR'

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables"""
        store_backend = os.getenv('STORE_BACKEND', 'memory').lower()
        if store_backend not in ('memory', 'postgres'):
            raise ValueError(f"Unsupported STORE_BACKEND: {store_backend}")

        return cls(
            store_backend=store_backend,
            database_url=os.getenv('DATABASE_URL'),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_dir=os.getenv('LOG_DIR') or None,
            booking_max_retries=int(os.getenv('BOOKING_MAX_RETRIES', '5')),
            booking_retry_delay=float(os.getenv('BOOKING_RETRY_DELAY', '0.01')),
            card_failure_rate=float(os.getenv('CARD_FAILURE_RATE', '0.1')),
            wallet_failure_rate=float(os.getenv('WALLET_FAILURE_RATE', '0.1')),
            default_currency=os.getenv('DEFAULT_CURRENCY', 'PKR'),
        )


def create_store(settings: Settings):
    """Build the document store selected by ``settings.store_backend``"""
    from database import DatabaseManager, MemoryDocumentStore, PostgresDocumentStore

    if settings.store_backend == 'postgres':
        db_manager = DatabaseManager(database_url=settings.database_url)
        db_manager.create_tables()
        return PostgresDocumentStore(db_manager)
    return MemoryDocumentStore()
