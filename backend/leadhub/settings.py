from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="NODE_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_base_url: str = Field(
        default="http://localhost:3000", validation_alias="FRONTEND_BASE_URL"
    )
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    aws_endpoint_url: str | None = Field(default=None, validation_alias="AWS_ENDPOINT_URL")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    attachments_bucket_name: str | None = Field(
        default=None, validation_alias="ATTACHMENTS_BUCKET_NAME"
    )

    # Auth (bearer tokens issued by the identity service)
    jwt_secret: str | None = Field(default=None, validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_audience: str | None = Field(default=None, validation_alias="JWT_AUDIENCE")

    # Sealing key for list pagination tokens (falls back to JWT_SECRET).
    pagination_token_key: str | None = Field(default=None, validation_alias="PAGINATION_TOKEN_KEY")

    # Auxiliary collaborators: bounded and treated as soft failures.
    directory_timeout_seconds: float = Field(default=2.0, validation_alias="DIRECTORY_TIMEOUT_SECONDS")
    notify_timeout_seconds: float = Field(default=2.0, validation_alias="NOTIFY_TIMEOUT_SECONDS")
    notify_max_workers: int = Field(default=8, validation_alias="NOTIFY_MAX_WORKERS")
    vendor_directory_cache_ttl_seconds: int = Field(
        default=30, validation_alias="VENDOR_DIRECTORY_CACHE_TTL_SECONDS"
    )

    # Links embedded in notifications / signed URLs.
    workspace_url_template: str = Field(
        default="/VendorDashboard/workspace/{workspace_id}", validation_alias="WORKSPACE_URL_TEMPLATE"
    )
    lead_signed_url_ttl_seconds: int = Field(default=600, validation_alias="LEAD_SIGNED_URL_TTL_SECONDS")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    def workspace_url(self, workspace_id: str | None) -> str | None:
        wid = str(workspace_id or "").strip()
        if not wid:
            return None
        return self.workspace_url_template.format(workspace_id=wid)

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/staging are allowed to run with partial config for local work,
        but production must be fully configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []
        if not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")
        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "log_level": self.log_level,
            "frontend": {
                "frontend_base_url": self.frontend_base_url,
                "frontend_urls": self.frontend_urls,
            },
            "aws": {
                "aws_region": self.aws_region,
                "aws_endpoint_url": self.aws_endpoint_url,
                "ddb_table_name": self.ddb_table_name,
                "attachments_bucket_name": self.attachments_bucket_name,
            },
            "auth": {
                "jwt_secret_configured": _has(self.jwt_secret),
                "jwt_algorithm": self.jwt_algorithm,
                "jwt_audience": self.jwt_audience,
                "pagination_token_key_configured": _has(self.pagination_token_key),
            },
            "collaborators": {
                "directory_timeout_seconds": self.directory_timeout_seconds,
                "notify_timeout_seconds": self.notify_timeout_seconds,
                "notify_max_workers": self.notify_max_workers,
                "vendor_directory_cache_ttl_seconds": self.vendor_directory_cache_ttl_seconds,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


# Backwards-compatible module-level singleton.
settings = get_settings()
