"""Option models for the OAuth2 proxy engine.

The engine is configured in two shapes:

- `LegacyOptions` is the flat, provider-specific format (one provider, GitHub
  fields inline, upstreams as plain URLs). It is what the bootstrap fills in
  from environment variables.
- `ProxyOptions` is the normalized format the engine actually runs on. It is
  produced by `LegacyOptions.to_options()` and may be adjusted further before
  being validated and handed to `OAuthProxy`.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Final, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr

from github_auth_provider.exceptions import OptionsConversionError

GITHUB_LOGIN_URL: Final[str] = "https://github.com/login/oauth/authorize"
GITHUB_REDEEM_URL: Final[str] = "https://github.com/login/oauth/access_token"
GITHUB_API_URL: Final[str] = "https://api.github.com"

SUPPORTED_PROVIDER_TYPES: Final[frozenset[str]] = frozenset({"github"})


class GitHubOptions(BaseModel):
    """GitHub-specific restrictions applied after login."""

    org: str = ""
    team: str = ""
    repo: str = ""
    token: SecretStr | None = None
    users: list[str] = Field(default_factory=list)


class ProviderOptions(BaseModel):
    id: str
    type: Literal["github"] = "github"
    name: str = ""
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    scope: str = ""
    login_url: str = GITHUB_LOGIN_URL
    redeem_url: str = GITHUB_REDEEM_URL
    api_url: str = GITHUB_API_URL
    github: GitHubOptions = Field(default_factory=GitHubOptions)


class CookieOptions(BaseModel):
    name: str = "_oauth2_proxy"
    secret: bytes = b""
    domains: list[str] = Field(default_factory=list)
    path: str = "/"
    expire: timedelta = timedelta(hours=168)
    refresh: timedelta = timedelta(0)
    secure: bool = True
    httponly: bool = True
    samesite: Literal["lax", "strict", "none"] = "lax"


class ServerOptions(BaseModel):
    bind_address: str = "127.0.0.1:4180"


class MetricsServerOptions(BaseModel):
    bind_address: str = ""


class UpstreamOptions(BaseModel):
    id: str
    path: str = "/"
    uri: str


class ProxyOptions(BaseModel):
    """Normalized engine configuration."""

    proxy_prefix: str = "/oauth2"
    providers: list[ProviderOptions] = Field(default_factory=list)
    cookie: CookieOptions = Field(default_factory=CookieOptions)
    server: ServerOptions = Field(default_factory=ServerOptions)
    metrics_server: MetricsServerOptions = Field(default_factory=MetricsServerOptions)
    upstreams: list[UpstreamOptions] = Field(default_factory=list)
    raw_redirect_url: str = ""
    email_domains: list[str] = Field(default_factory=list)
    authenticated_emails_file: str | None = None


class LegacyProvider(BaseModel):
    provider_type: str = ""
    provider_name: str = ""
    client_id: str = ""
    client_secret: str = ""
    scope: str = ""

    github_org: str = ""
    github_team: str = ""
    github_repo: str = ""
    github_token: str = ""
    github_users: list[str] = Field(default_factory=list)


class LegacyUpstreams(BaseModel):
    upstreams: list[str] = Field(default_factory=list)


class LegacyOptions(BaseModel):
    legacy_provider: LegacyProvider = Field(default_factory=LegacyProvider)
    legacy_upstreams: LegacyUpstreams = Field(default_factory=LegacyUpstreams)

    def to_options(self) -> ProxyOptions:
        """Convert to the normalized engine configuration.

        Raises:
            OptionsConversionError: if the provider type is unsupported or an
                upstream is not an absolute http(s) URL
        """
        return ProxyOptions(
            providers=[self._convert_provider()],
            upstreams=self._convert_upstreams(),
        )

    def _convert_provider(self) -> ProviderOptions:
        legacy = self.legacy_provider
        if legacy.provider_type not in SUPPORTED_PROVIDER_TYPES:
            raise OptionsConversionError(
                f"unsupported provider type {legacy.provider_type!r}"
            )

        users = [u.strip() for u in legacy.github_users if u.strip()]
        return ProviderOptions(
            id=f"{legacy.provider_type}={legacy.client_id}",
            type="github",
            name=legacy.provider_name or legacy.provider_type,
            client_id=legacy.client_id,
            client_secret=SecretStr(legacy.client_secret),
            scope=legacy.scope,
            github=GitHubOptions(
                org=legacy.github_org,
                team=legacy.github_team,
                repo=legacy.github_repo,
                token=SecretStr(legacy.github_token) if legacy.github_token else None,
                users=users,
            ),
        )

    def _convert_upstreams(self) -> list[UpstreamOptions]:
        upstreams = []
        for raw in self.legacy_upstreams.upstreams:
            parsed = urlparse(raw)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise OptionsConversionError(
                    f"could not parse upstream {raw!r}: expected an absolute http(s) URL"
                )
            upstreams.append(UpstreamOptions(id=raw, uri=raw.rstrip("/")))
        return upstreams

