from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from schedule_relay.exceptions import ConfigError

ENV_PREFIX = "SHAREPOINT_"
REQUIRED_FIELDS = ("tenant_id", "client_id", "client_secret", "hostname")


class RelaySettings(BaseSettings):
    """
    Settings for the schedule relay.  This is a pydantic settings class, so every field can be overridden by an
    environment variable (prefixed with SHAREPOINT_ unless an alias says otherwise) or by an optional .env file.

    Example:
        export SHAREPOINT_HOSTNAME=contoso.sharepoint.com
        export SHAREPOINT_SITE_NAME=Operations

    The settings object is frozen; it is built once at startup and handed to every component.
    """
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Azure AD app registration (client-credentials)
    tenant_id: str = Field(default="", description="Azure AD Tenant ID")
    client_id: str = Field(default="", description="Azure AD App (client) ID")
    client_secret: str = Field(default="", description="Azure AD App client secret")
    hostname: str = Field(default="", description="SharePoint hostname, e.g., contoso.sharepoint.com")

    # Where to look
    site_name: str = Field(default="SuniqueKnowledgeBase", description="Preferred SharePoint site name")
    fallback_site_name: str = Field(default="SuniqueKnowledgeBase",
                                    description="Site name probed after site_name, before the root site")
    legacy_file_id: Optional[str] = Field(
        default=None,
        description="Known file UniqueId; enables the direct SharePoint REST lookup",
        validation_alias=AliasChoices("SHAREPOINT_FILE_ID", "SHAREPOINT_LEGACY_FILE_ID"),
    )
    file_name: str = Field(default="Assembly Schedule (New Version).xlsx", description="File to retrieve")

    # Server
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "SHAREPOINT_PORT"))
    environment: str = Field(
        default="production",
        description="'development' adds stack traces to error responses",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Outbound behaviour
    request_timeout_s: float = Field(default=30.0, description="Timeout for each outbound HTTP/token call")
    pipeline_timeout_s: float = Field(default=120.0, description="Deadline for one full retrieval run")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates for outbound requests")
    log_token_claims: bool = Field(default=False, description="Log decoded token claims (never the raw token)")

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    def site_name_candidates(self) -> list[str]:
        """Configured name, fallback name, then the hostname root site (empty name)."""
        return [self.site_name, self.fallback_site_name, ""]

    def legacy_site_names(self) -> list[str]:
        names: list[str] = []
        for name in (self.site_name, self.fallback_site_name):
            if name and name not in names:
                names.append(name)
        return names


def missing_required(settings: RelaySettings) -> list[str]:
    return [f"{ENV_PREFIX}{name.upper()}" for name in REQUIRED_FIELDS
            if not (getattr(settings, name) or "").strip()]


def validate_settings(settings: RelaySettings) -> RelaySettings:
    missing = missing_required(settings)
    if missing:
        raise ConfigError(missing)
    return settings


def load_settings(**overrides) -> RelaySettings:
    """Build settings from the environment (plus overrides) and validate required fields."""
    return validate_settings(RelaySettings(**overrides))
