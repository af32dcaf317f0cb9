from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.domain.proxy_domain import GRAPH_DEFAULT_SCOPE, CredentialSet
from app.services.errors import ConfigurationError

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Microsoft identity (documents + mailbox share one app registration)
    SP_TENANT_ID: str | None = None
    SP_CLIENT_ID: str | None = None
    SP_CLIENT_SECRET: str | None = None
    SP_SITE_URL: str | None = None
    GRAPH_SCOPE: str = GRAPH_DEFAULT_SCOPE
    MAIL_FROM: str | None = None

    # Twilio settings
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_FROM_NUMBER: str | None = None
    TWILIO_WHATSAPP_NUMBER: str | None = None

    # Appenate settings
    APPENATE_INTEGRATION_KEY: str | None = None
    APPENATE_PROVIDER_ID: str | None = None

    # Table storage settings
    STORAGE_ACCOUNT: str | None = None
    STORAGE_KEY: str | None = None
    JOBS_TABLE: str = "OpsClientJobs"
    CONTACTS_TABLE: str = "OpsMoveManagers"

    # Reminder schedule
    REMINDER_RUN_HOUR_UTC: int = 7

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def missing(self, *names: str) -> list[str]:
        """Return the configuration names from ``names`` that have no value."""
        return [name for name in names if not getattr(self, name, None)]

    def require(self, *names: str) -> None:
        """
        Fail fast when any of ``names`` is unset.

        Raises:
            ConfigurationError: listing every missing name
        """
        missing = self.missing(*names)
        if missing:
            raise ConfigurationError(f"Missing env vars: {', '.join(missing)}")

    def graph_credentials(self) -> CredentialSet:
        self.require("SP_TENANT_ID", "SP_CLIENT_ID", "SP_CLIENT_SECRET")
        return CredentialSet(
            tenant_id=self.SP_TENANT_ID,
            client_id=self.SP_CLIENT_ID,
            client_secret=self.SP_CLIENT_SECRET,
            scope=self.GRAPH_SCOPE,
        )

    def sharepoint_site(self) -> tuple[str, str]:
        """
        Split SP_SITE_URL into host and server-relative path, e.g.
        https://contoso.sharepoint.com/sites/Ops -> ("contoso.sharepoint.com", "/sites/Ops")
        """
        self.require("SP_SITE_URL")
        parsed = urlparse(self.SP_SITE_URL)
        if not parsed.hostname:
            raise ConfigurationError(f"SP_SITE_URL is not a valid URL: {self.SP_SITE_URL}")
        return parsed.hostname, parsed.path.rstrip("/") or "/"

    def integration_status(self) -> dict[str, list[str]]:
        """Missing configuration per integration, used by the readiness probe."""
        graph = ["SP_TENANT_ID", "SP_CLIENT_ID", "SP_CLIENT_SECRET"]
        return {
            "sharepoint": self.missing(*graph, "SP_SITE_URL"),
            "mailbox": self.missing(*graph, "MAIL_FROM"),
            "twilio": self.missing("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"),
            "appenate": self.missing("APPENATE_INTEGRATION_KEY", "APPENATE_PROVIDER_ID"),
            "table_storage": self.missing("STORAGE_ACCOUNT", "STORAGE_KEY"),
        }


settings = Settings()
