"""GitHub auth provider CLI using Cyclopts."""

from __future__ import annotations

import sys

import cyclopts
import uvicorn
from pydantic import ValidationError
from rich.console import Console

import github_auth_provider
from github_auth_provider.exceptions import (
    ConfigValidationError,
    CookieSecretError,
    GitHubAuthProviderError,
    OptionsConversionError,
    OptionsLoadError,
    ProxyCreationError,
)
from github_auth_provider.options import (
    build_proxy_options,
    decode_cookie_secret,
    load_options,
)
from github_auth_provider.proxy.oauthproxy import OAuthProxy, new_oauth_proxy
from github_auth_provider.proxy.validation import validate
from github_auth_provider.proxy.validator import EmailValidator
from github_auth_provider.server import create_app
from github_auth_provider.settings import Settings
from github_auth_provider.utilities.logging import get_logger

logger = get_logger("cli")
console = Console()

app = cyclopts.App(
    name="github-auth-provider",
    help="Obot auth provider backed by an OAuth2 proxy with GitHub as identity provider.",
    version=github_auth_provider.__version__,
)

FAILURE_MESSAGES: list[tuple[type[GitHubAuthProviderError], str]] = [
    (OptionsLoadError, "failed to load options"),
    (CookieSecretError, "failed to decode cookie secret"),
    (OptionsConversionError, "failed to convert legacy options to new options"),
    (ConfigValidationError, "failed to validate options"),
    (ProxyCreationError, "failed to create oauth2 proxy"),
]


def _fail(message: str) -> None:
    console.print(message, markup=False, highlight=False, soft_wrap=True)
    sys.exit(1)


def create_proxy() -> OAuthProxy:
    """Load options from the environment and build the OAuth2 proxy.

    Raises:
        OptionsLoadError, CookieSecretError, OptionsConversionError,
        ConfigValidationError, ProxyCreationError: from the failing step
    """
    options = load_options()
    cookie_secret = decode_cookie_secret(options.auth_cookie_secret)
    proxy_opts = build_proxy_options(options, cookie_secret)
    validate(proxy_opts)
    return new_oauth_proxy(
        proxy_opts,
        EmailValidator(proxy_opts.email_domains, proxy_opts.authenticated_emails_file),
    )


@app.default
def run() -> None:
    """Serve the auth provider on 127.0.0.1:$PORT (default 9999)."""
    try:
        settings = Settings()
    except ValidationError as e:
        _fail(f"failed to load options: {e}")
        return

    try:
        proxy = create_proxy()
    except GitHubAuthProviderError as e:
        for error_type, message in FAILURE_MESSAGES:
            if isinstance(e, error_type):
                _fail(f"{message}: {e}")
        raise

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(proxy, settings.local_url),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    )

    console.print(
        f"listening on {settings.host}:{settings.port}",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
    try:
        server.run()
    except OSError as e:
        logger.error("Server stopped unexpectedly", exc_info=True)
        _fail(f"failed to listen and serve: {e}")
    except SystemExit as e:
        # uvicorn exits by itself when it cannot bind or start up
        if e.code in (0, None):
            raise
        _fail(
            f"failed to listen and serve: could not serve on "
            f"{settings.host}:{settings.port} (exit status {e.code})"
        )


def main() -> None:
    app()
