import logging
from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portal.core.keys import decode_secret, generate_secure_hex

logger = logging.getLogger(__name__)


class TokenSettings(BaseModel):
    """Secret and cookie attributes shared by session and CSRF tokens."""

    secret: str = Field(
        default_factory=generate_secure_hex,
        description="Hex-encoded signing secret. MUST be set in production.",
    )
    cookie_name: str
    cookie_max_age: int = Field(..., gt=0, description="Cookie lifetime in seconds")
    cookie_secure: bool = True
    cookie_http_only: bool = True
    cookie_same_site: Literal["strict", "lax", "none"] = "strict"

    @field_validator("secret")
    @classmethod
    def _secret_is_hex(cls, value: str) -> str:
        decode_secret(value)
        return value

    @property
    def secret_bytes(self) -> bytes:
        return decode_secret(self.secret)

    @property
    def secret_is_generated(self) -> bool:
        return "secret" not in self.model_fields_set


def _token_defaults(value, cookie_name: str, cookie_max_age: int):
    # Partial overrides from the environment arrive as dicts.
    if isinstance(value, dict):
        return {"cookie_name": cookie_name, "cookie_max_age": cookie_max_age, **value}
    return value


class SessionTokenSettings(BaseModel):
    token: TokenSettings = Field(
        default_factory=lambda: TokenSettings(cookie_name="session_token", cookie_max_age=3600)
    )

    @field_validator("token", mode="before")
    @classmethod
    def _defaults(cls, value):
        return _token_defaults(value, "session_token", 3600)


class CsrfTokenSettings(BaseModel):
    token: TokenSettings = Field(
        default_factory=lambda: TokenSettings(cookie_name="csrf_token", cookie_max_age=600)
    )
    field_name: str = "csrf_token"
    header_name: str = "X-CSRF-TOKEN"

    @field_validator("token", mode="before")
    @classmethod
    def _defaults(cls, value):
        return _token_defaults(value, "csrf_token", 600)


class SecuritySettings(BaseModel):
    session: SessionTokenSettings = Field(default_factory=SessionTokenSettings)
    csrf: CsrfTokenSettings = Field(default_factory=CsrfTokenSettings)


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    request_timeout: float = Field(default=12.0, gt=0, description="Per-request deadline in seconds")
    max_body_size: int = Field(default=1024, gt=0, description="Maximum request body in bytes")


class BaseUrl(BaseModel):
    service: str
    cas: str


class BaseUrls(BaseModel):
    dev: BaseUrl = BaseUrl(service="http://127.0.0.1:8888", cas="http://127.0.0.1:3000/cas")
    prod: BaseUrl = BaseUrl(service="https://portail-etu.emse.fr/photos", cas="https://cas.emse.fr")


class RouteSettings(BaseModel):
    favicon: str = "/favicon.ico"
    landing: str = "/"
    login: str = "/login"
    cas_callback: str = "/cas"
    dashboard: str = "/dashboard"
    logout: str = "/logout"
    events: str = "/events"


class DsnSettings(BaseModel):
    url: str = ""
    pool_size: int = 10
    max_overflow: int = 5
    pool_recycle: int = Field(default=1800, description="Connection max lifetime in seconds")


class DatabaseSettings(BaseModel):
    dev: DsnSettings = DsnSettings(url="sqlite:///./portal.db")
    prod: DsnSettings = DsnSettings()


class Settings(BaseSettings):
    """Application settings.

    Values come from ``PORTAL_*`` environment variables or a ``.env`` file.
    Nested sections use ``__`` as delimiter, e.g.
    ``PORTAL_SECURITY__SESSION__TOKEN__SECRET`` or ``PORTAL_DB__PROD__URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    dev_mode: bool = True
    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    base_urls: BaseUrls = Field(default_factory=BaseUrls)
    routes: RouteSettings = Field(default_factory=RouteSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)

    cas_timeout: float = Field(default=6.0, gt=0, description="CAS validation timeout in seconds")

    log_file: Optional[str] = "logs"
    log_level: str = "INFO"

    @property
    def base_url(self) -> BaseUrl:
        return self.base_urls.dev if self.dev_mode else self.base_urls.prod

    @property
    def service_base_url(self) -> str:
        return self.base_url.service.rstrip("/")

    @property
    def cas_base_url(self) -> str:
        return self.base_url.cas.rstrip("/")

    @property
    def callback_url(self) -> str:
        """Service URL registered with the CAS server for the callback route."""
        return f"{self.service_base_url}{self.routes.cas_callback}"

    @property
    def cas_login_url(self) -> str:
        return f"{self.cas_base_url}/login?{urlencode({'service': self.callback_url})}"

    @property
    def database(self) -> DsnSettings:
        return self.db.dev if self.dev_mode else self.db.prod

    def warn_insecure_defaults(self) -> None:
        """Log a warning for generated secrets outside of dev mode."""
        if self.dev_mode:
            return
        for name, token in (
            ("session", self.security.session.token),
            ("csrf", self.security.csrf.token),
        ):
            if token.secret_is_generated:
                logger.warning(
                    f"No {name} secret configured; using a generated one. "
                    "Cookies will not survive a restart."
                )


def write_default_env(path: Path) -> Path:
    """
    Write a starter .env file with freshly generated secrets.

    Args:
        path: Destination file

    Returns:
        The path written

    Raises:
        FileExistsError: If the file already exists
    """
    if path.exists():
        raise FileExistsError(f"{path} already exists")

    lines = [
        "# Portal configuration",
        "PORTAL_DEV_MODE=true",
        f"PORTAL_SECURITY__SESSION__TOKEN__SECRET={generate_secure_hex()}",
        f"PORTAL_SECURITY__CSRF__TOKEN__SECRET={generate_secure_hex()}",
        "PORTAL_DB__DEV__URL=sqlite:///./portal.db",
        "# Set the production database DSN before disabling dev mode",
        "PORTAL_DB__PROD__URL=",
        "",
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines))
    path.chmod(0o600)
    return path
