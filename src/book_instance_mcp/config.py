"""Configuration management for the Book Instance MCP Server.

Settings are loaded from the environment (``BOOK_INSTANCE_`` prefix) or a
local ``.env`` file and validated with Pydantic v2:
1. Protocol Metadata - server identification for the MCP handshake
2. Storage - database location and lock timeout
3. Lifecycle - sweep budget, pagination and notification workers
4. Development - debug and log level
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Book Instance MCP Server configuration.

    The lifecycle core itself reads no loan policy from here: the loan
    duration lives in the ``library_policies`` table so librarians can
    change it without a restart. ``default_max_loan_duration`` is only
    used when seeding a fresh database.
    """

    model_config = SettingsConfigDict(
        # Use BOOK_INSTANCE_ prefix for all env vars
        env_prefix="BOOK_INSTANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # === Server Metadata (Required by MCP Protocol) ===

    server_name: str = Field(
        default="book-instances",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    database_timeout_seconds: float = Field(
        default=5.0,
        description="How long a statement waits on a locked database before failing",
        gt=0,
        le=60,
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="stdio",
        description="Primary transport mechanism",
        pattern=r"^(stdio|streamable_http)$",
    )

    # === Lifecycle Configuration ===

    pagination_limit: int = Field(
        default=10,
        description="Number of instances returned per listing page",
        ge=1,
        le=100,
    )

    sweep_timeout_seconds: float = Field(
        default=2.0,
        description="Time budget for one reservation sweep before it yields to the request",
        gt=0,
    )

    notification_workers: int = Field(
        default=2,
        description="Worker threads used for availability notifications",
        ge=1,
        le=32,
    )

    default_max_loan_duration: int = Field(
        default=14,
        description="MaxLoanDuration policy value written when seeding an empty database",
        ge=1,
        le=365,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging for protocol messages",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database directory exists and is writable."""
        abs_path = v.absolute()

        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        """Validate server name meets MCP naming conventions."""
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Get server information for MCP handshake."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
