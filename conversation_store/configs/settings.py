import logging
import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_PARTITION_KEY = "/userId"
DEFAULT_TIMEZONE = "America/Mexico_City"
DEFAULT_TTL_DAYS = 90
DEFAULT_KEEP_LAST = 50
DEFAULT_MAX_MESSAGE_LENGTH = 4000


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


class StoreSettings(BaseModel):
    """
    Connection and retention settings for the conversation store.
    """
    endpoint: Optional[str] = Field(default=None, description="MongoDB-API connection URI of the account.")
    key: Optional[str] = Field(default=None, description="Account key used as the connection password.")
    database_id: Optional[str] = Field(default=None, description="Database name.")
    container_id: Optional[str] = Field(default=None, description="Collection holding messages and conversation info.")
    partition_key: str = Field(default=DEFAULT_PARTITION_KEY, description="Partition key path, e.g. '/userId'.")
    account: Optional[str] = Field(default=None, description="Username for the key; derived from the endpoint host when empty.")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="Named timezone for stored timestamps.")
    ttl_days: int = Field(default=DEFAULT_TTL_DAYS, description="Expiry horizon applied to every document.")
    keep_last: int = Field(default=DEFAULT_KEEP_LAST, description="Default number of messages kept by trimming.")
    max_message_length: int = Field(default=DEFAULT_MAX_MESSAGE_LENGTH, description="Stored message text is cut to this length.")
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "StoreSettings":
        load_dotenv(env_file)
        return cls(
            endpoint=os.getenv("COSMOS_DB_ENDPOINT") or None,
            key=os.getenv("COSMOS_DB_KEY") or None,
            database_id=os.getenv("COSMOS_DB_DATABASE_ID") or None,
            container_id=os.getenv("COSMOS_DB_CONTAINER_ID") or None,
            partition_key=os.getenv("COSMOS_DB_PARTITION_KEY") or DEFAULT_PARTITION_KEY,
            account=os.getenv("COSMOS_DB_ACCOUNT") or None,
            timezone=os.getenv("COSMOS_DB_TIMEZONE") or DEFAULT_TIMEZONE,
            ttl_days=_int_from_env("COSMOS_DB_TTL_DAYS", DEFAULT_TTL_DAYS),
            keep_last=_int_from_env("COSMOS_DB_KEEP_LAST", DEFAULT_KEEP_LAST),
            max_message_length=_int_from_env("COSMOS_DB_MAX_MESSAGE_LENGTH", DEFAULT_MAX_MESSAGE_LENGTH),
            log_level=os.getenv("LOG_LEVEL") or "INFO",
        )

    @property
    def ttl_seconds(self) -> int:
        return 60 * 60 * 24 * self.ttl_days

    @property
    def partition_field(self) -> str:
        """Document field named by the partition key path ('/userId' -> 'userId')."""
        return self.partition_key.strip("/").replace("/", ".") or "userId"

    @property
    def username(self) -> Optional[str]:
        if self.account:
            return self.account
        if not self.endpoint:
            return None
        host = urlparse(self.endpoint).hostname or ""
        return host.split(".")[0] or None

    def missing_fields(self) -> list[str]:
        """Names of the required connection variables that are not set."""
        required = {
            "COSMOS_DB_ENDPOINT": self.endpoint,
            "COSMOS_DB_KEY": self.key,
            "COSMOS_DB_DATABASE_ID": self.database_id,
            "COSMOS_DB_CONTAINER_ID": self.container_id,
        }
        return [name for name, value in required.items() if not value]
