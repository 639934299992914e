"""Environment-sourced options and their translation into proxy options."""

from __future__ import annotations

import base64
import binascii
from datetime import timedelta
from typing import Annotated, Final

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from github_auth_provider.exceptions import CookieSecretError, OptionsLoadError
from github_auth_provider.proxy.options import LegacyOptions, ProxyOptions

COOKIE_NAME: Final[str] = "obot_access_token"
COOKIE_REFRESH: Final[timedelta] = timedelta(hours=1)
CALLBACK_PATH: Final[str] = "/oauth2/callback"


class Options(BaseSettings):
    """Options for the GitHub auth provider, read once at startup."""

    model_config = SettingsConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    client_id: Annotated[
        str, Field(validation_alias="OBOT_GITHUB_AUTH_PROVIDER_CLIENT_ID")
    ]
    client_secret: Annotated[
        str, Field(validation_alias="OBOT_GITHUB_AUTH_PROVIDER_CLIENT_SECRET")
    ]
    obot_server_url: Annotated[str, Field(validation_alias="OBOT_SERVER_URL")]
    auth_cookie_secret: Annotated[
        str,
        Field(
            validation_alias="OBOT_AUTH_PROVIDER_COOKIE_SECRET",
            description="Secret used to encrypt cookie",
        ),
    ]
    auth_email_domains: Annotated[
        str,
        Field(
            validation_alias="OBOT_AUTH_PROVIDER_EMAIL_DOMAINS",
            description="Email domains allowed for authentication",
        ),
    ] = "*"
    github_teams: Annotated[
        str | None,
        Field(
            validation_alias="OBOT_GITHUB_AUTH_PROVIDER_TEAMS",
            description="restrict logins to members of any of these GitHub teams (comma-separated list)",
        ),
    ] = None
    github_org: Annotated[
        str | None,
        Field(
            validation_alias="OBOT_GITHUB_AUTH_PROVIDER_ORG",
            description="restrict logins to members of this GitHub organization",
        ),
    ] = None
    github_repo: Annotated[
        str | None,
        Field(
            validation_alias="OBOT_GITHUB_AUTH_PROVIDER_REPO",
            description="restrict logins to collaborators on this GitHub repository (formatted orgname/repo)",
        ),
    ] = None
    github_token: Annotated[
        str | None,
        Field(
            validation_alias="OBOT_GITHUB_AUTH_PROVIDER_TOKEN",
            description="the token to use when verifying repository collaborators (must have push access to the repository)",
        ),
    ] = None
    github_allow_users: Annotated[
        str | None,
        Field(
            validation_alias="OBOT_GITHUB_AUTH_PROVIDER_ALLOW_USERS",
            description="users allowed to log in, even if they do not belong to the specified org and team or collaborators",
        ),
    ] = None


def load_options() -> Options:
    """Load options from the environment.

    Raises:
        OptionsLoadError: if a required variable is missing
    """
    try:
        return Options()  # type: ignore[call-arg]
    except ValidationError as e:
        missing = [
            str(err["loc"][0]) for err in e.errors() if err["type"] == "missing"
        ]
        if missing:
            raise OptionsLoadError(
                f"missing required environment variables: {', '.join(missing)}"
            ) from e
        raise OptionsLoadError(str(e)) from e


def decode_cookie_secret(secret: str) -> bytes:
    """Decode the cookie secret as strict standard base64.

    Raises:
        CookieSecretError: if the secret has characters outside the base64
            alphabet or incorrect padding
    """
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CookieSecretError(str(e)) from e


def build_legacy_options(options: Options) -> LegacyOptions:
    legacy_opts = LegacyOptions()
    provider = legacy_opts.legacy_provider
    provider.provider_type = "github"
    provider.provider_name = "github"
    provider.client_id = options.client_id
    provider.client_secret = options.client_secret

    # GitHub-specific options
    if options.github_teams is not None:
        provider.github_team = options.github_teams
    if options.github_org is not None:
        provider.github_org = options.github_org
    if options.github_repo is not None:
        provider.github_repo = options.github_repo
    if options.github_token is not None:
        provider.github_token = options.github_token
    if options.github_allow_users is not None:
        provider.github_users = options.github_allow_users.split(",")

    return legacy_opts


def build_proxy_options(options: Options, cookie_secret: bytes) -> ProxyOptions:
    """Translate options into proxy options.

    Raises:
        OptionsConversionError: if the legacy options cannot be converted
    """
    proxy_opts = build_legacy_options(options).to_options()

    # The proxy never opens its own listeners; its routes are mounted on ours
    proxy_opts.server.bind_address = ""
    proxy_opts.metrics_server.bind_address = ""
    proxy_opts.cookie.refresh = COOKIE_REFRESH
    proxy_opts.cookie.name = COOKIE_NAME
    proxy_opts.cookie.secret = cookie_secret
    proxy_opts.cookie.secure = options.obot_server_url.startswith("https://")
    proxy_opts.raw_redirect_url = options.obot_server_url + CALLBACK_PATH
    if options.auth_email_domains:
        proxy_opts.email_domains = options.auth_email_domains.split(",")

    return proxy_opts
