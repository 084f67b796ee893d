"""Configuration management for the dbconfig settings service.

Uses Pydantic Settings for type-safe, environment-based configuration.
"""

from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv(override=True)


class UnauthenticatedAction(str, Enum):
    """What the settings pages do for a request without an identity."""

    REDIRECT = "redirect"  # Redirect to the login URL with a notice
    DENY = "deny"  # 401, recommended
    ALLOW = "allow"  # Anonymous read-only access (not recommended)


class IdentityResolverMode(str, Enum):
    """Where the identity of the current request is read from."""

    ATTRIBUTE = "attribute"  # request.state.identity
    SESSION = "session"  # request.session["Auth"]


IdentityResolver = IdentityResolverMode | Callable[[Any], Any]


class PermissionConfig(BaseModel):
    """Role based permissions for the settings pages.

    Host applications override these with a JSON object in ``DBCONFIG_PERMISSIONS``,
    nested variables such as ``DBCONFIG_PERMISSIONS__view_roles='["admin", "editor"]'``,
    or by passing their own instance to the resolver.
    """

    model_config = ConfigDict(frozen=True)

    # Identity attribute holding the role; dotted paths reach one level down (e.g. "role.name")
    role_attribute: str = "role"
    # "*" in a list allows every authenticated role
    view_roles: list[str] = Field(default_factory=lambda: ["admin", "super_admin"])
    update_roles: list[str] = Field(default_factory=lambda: ["admin", "super_admin"])
    # These roles always have full access regardless of view_roles/update_roles
    bypass_roles: list[str] = Field(default_factory=lambda: ["super_admin"])
    unauthenticated_action: UnauthenticatedAction = UnauthenticatedAction.REDIRECT
    # Plain URL, or a route mapping such as {"name": "login"} resolved with request.url_for
    login_url: str | dict[str, Any] = "/login"
    identity_resolver: IdentityResolver = IdentityResolverMode.ATTRIBUTE

    @field_validator("view_roles", "update_roles", "bypass_roles", mode="before")
    @classmethod
    def validate_roles(cls, v: str | list | None) -> list:
        """Parse roles from comma-separated string or list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [role.strip() for role in v.split(",") if role.strip()]
        return [str(role).strip() for role in v if str(role).strip()]

    @field_validator("identity_resolver", mode="before")
    @classmethod
    def validate_identity_resolver(cls, v: Any) -> Any:
        """Accept mode names or a callable taking the request."""
        if isinstance(v, IdentityResolverMode):
            return v
        if callable(v):
            return v
        try:
            return IdentityResolverMode(str(v).lower())
        except ValueError:
            raise ValueError(
                f"Identity resolver must be one of: {[m.value for m in IdentityResolverMode]} or a callable"
            )

    @field_validator("login_url")
    @classmethod
    def validate_login_url(cls, v: str | Mapping) -> str | dict:
        """Route mappings must name the route to resolve."""
        if isinstance(v, Mapping):
            if not v.get("name"):
                raise ValueError("login_url route mapping requires a 'name'")
            return dict(v)
        return v


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # App configuration
    app_name: str = Field("dbconfig", alias="DBCONFIG_APP_NAME")
    version: str = Field("0.0.0-dev", alias="DBCONFIG_APP_VERSION")
    debug: bool = Field(False, alias="DBCONFIG_DEBUG")
    environment: str = Field("development", alias="DBCONFIG_ENVIRONMENT")

    # API configuration
    api_v1_prefix: str = "/api/v1"
    api_host: str = Field("127.0.0.1", alias="DBCONFIG_API_HOST")
    api_port: int = Field(8000, alias="DBCONFIG_API_PORT")

    # Database configuration
    database_url: str = Field(alias="DBCONFIG_DATABASE_URL")
    database_pool_size: int = 20
    database_max_overflow: int = 30
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # Logging configuration
    log_level: str = Field("INFO", alias="DBCONFIG_LOG_LEVEL")
    log_format: str = Field("text", alias="DBCONFIG_LOG_FORMAT")  # text or json
    log_dir: str | None = Field(None, alias="DBCONFIG_LOG_DIR")  # unset = console only

    # Secret used to encrypt values stored with type "encrypted"
    encryption_key: str | None = Field(None, alias="DBCONFIG_ENCRYPTION_KEY")

    # Trust X-Forwarded-Proto when deriving App.fullBaseUrl
    trust_proxy: bool = Field(False, alias="DBCONFIG_TRUST_PROXY")

    # Insert the installation defaults when the settings table is empty
    seed_defaults: bool = Field(False, alias="DBCONFIG_SEED_DEFAULTS")

    # Route authorization through AppSettingPolicy instead of the resolver directly
    use_policy: bool = Field(False, alias="DBCONFIG_USE_POLICY")

    # Registry defaults, overridden by rows in the settings table
    default_timezone: str = Field("UTC", alias="DBCONFIG_DEFAULT_TIMEZONE")
    default_locale: str | None = Field(None, alias="DBCONFIG_DEFAULT_LOCALE")
    app_encoding: str = Field("UTF-8", alias="DBCONFIG_APP_ENCODING")
    full_base_url: str | None = Field(None, alias="DBCONFIG_FULL_BASE_URL")

    permissions: PermissionConfig = Field(default_factory=PermissionConfig, alias="DBCONFIG_PERMISSIONS")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+psycopg2://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("Database URL must be PostgreSQL or SQLite (aiosqlite)")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["text", "json"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        valid_environments = ["development", "staging", "production", "test"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("log_dir")
    @classmethod
    def _resolve_log_dir(cls, v: str | None) -> str | None:
        if not v:
            return None
        return str(Path(v).expanduser().resolve())

    def registry_defaults(self) -> dict[str, Any]:
        """Dotted-key defaults the configuration registry starts from on every reload."""
        return {
            "debug": self.debug,
            "App.defaultTimezone": self.default_timezone,
            "App.defaultLocale": self.default_locale,
            "App.encoding": self.app_encoding,
            "App.fullBaseUrl": self.full_base_url,
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=True,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Build a fresh settings instance from the environment."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - will be created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings


def reset_settings_instance() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings  # noqa: PLW0603
    settings = None
