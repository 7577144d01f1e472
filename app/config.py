import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_RPC_URL = "https://eth-sepolia.g.alchemy.com/v2/demo"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self):
        self.PROJECT_NAME = "Wallet Tracker API"
        self.PROJECT_VERSION = "1.0.0"

        # Database
        self.POSTGRES_USER = os.getenv("POSTGRES_USER")
        self.POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
        self.POSTGRES_DB = os.getenv("POSTGRES_DB")
        self.POSTGRES_HOST = os.getenv("POSTGRES_HOST")
        self.POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

        self.DATABASE_URL = self._database_url()
        self.SQL_ECHO = _env_bool("SQL_ECHO")
        self.DB_AUTO_CREATE = _env_bool("DB_AUTO_CREATE")

        # Ethereum JSON-RPC
        self.ETHEREUM_RPC_URL = os.getenv("ETHEREUM_RPC_URL")
        self.RPC_TIMEOUT_SECONDS = float(os.getenv("RPC_TIMEOUT_SECONDS", "30"))
        self.RPC_MAX_RETRIES = int(os.getenv("RPC_MAX_RETRIES", "3"))
        self.RPC_RETRY_DELAY_SECONDS = float(os.getenv("RPC_RETRY_DELAY_SECONDS", "0.5"))
        self.BLOCK_CACHE_SIZE = int(os.getenv("BLOCK_CACHE_SIZE", "256"))

        # Block scan policy used by transaction sync
        self.SCAN_BLOCKS_PER_RESULT = int(os.getenv("SCAN_BLOCKS_PER_RESULT", "10"))
        self.SCAN_MAX_BLOCKS = int(os.getenv("SCAN_MAX_BLOCKS", "1000"))
        self.SCAN_CONCURRENCY = int(os.getenv("SCAN_CONCURRENCY", "5"))
        self.SCAN_TIMEOUT_SECONDS = float(os.getenv("SCAN_TIMEOUT_SECONDS", "60"))

        # HTTP
        self.CORS_ORIGINS = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]
        self.SYNC_RATE_LIMIT = int(os.getenv("SYNC_RATE_LIMIT", "10"))
        self.SYNC_RATE_WINDOW_SECONDS = int(os.getenv("SYNC_RATE_WINDOW_SECONDS", "60"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    def _database_url(self) -> str:
        """Resolve the async SQLAlchemy URL.

        An explicit ``DATABASE_URL`` wins. Otherwise the ``POSTGRES_*``
        variables build an asyncpg URL, and with no Postgres host configured a
        local SQLite file is used so the API can run without external services.
        """
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            if explicit.startswith("postgresql://"):
                return explicit.replace("postgresql://", "postgresql+asyncpg://", 1)
            return explicit
        if self.POSTGRES_HOST:
            return (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        return "sqlite+aiosqlite:///./wallet_tracker.db"

    @property
    def rpc_url(self) -> str:
        return self.ETHEREUM_RPC_URL or DEFAULT_RPC_URL


settings = Settings()
