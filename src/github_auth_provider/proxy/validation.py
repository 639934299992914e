"""Validation of normalized proxy options.

Every check runs and all problems are reported together in a single
`ConfigValidationError`, so a misconfigured deployment can be fixed in one go.
"""

from __future__ import annotations

import os
from urllib.parse import urlparse

from github_auth_provider.exceptions import ConfigValidationError
from github_auth_provider.proxy.options import (
    CookieOptions,
    ProviderOptions,
    ProxyOptions,
)
from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)

VALID_COOKIE_SECRET_SIZES = (16, 24, 32)


def validate(opts: ProxyOptions) -> None:
    """Validate proxy options.

    Raises:
        ConfigValidationError: listing every problem found
    """
    messages: list[str] = []

    if not opts.providers:
        messages.append("at least one provider must be configured")
    for provider in opts.providers:
        messages.extend(_validate_provider(provider))

    messages.extend(_validate_cookie(opts.cookie))
    messages.extend(_validate_redirect_url(opts.raw_redirect_url))

    if opts.authenticated_emails_file and not os.path.isfile(
        opts.authenticated_emails_file
    ):
        messages.append(
            f"authenticated-emails-file {opts.authenticated_emails_file!r} does not exist"
        )

    if messages:
        raise ConfigValidationError(messages)

    logger.debug("Proxy options validated for %d provider(s)", len(opts.providers))


def _validate_provider(provider: ProviderOptions) -> list[str]:
    messages = []
    if not provider.client_id:
        messages.append("missing setting: client-id")
    if not provider.client_secret.get_secret_value():
        messages.append("missing setting: client-secret")

    github = provider.github
    if github.repo:
        owner, _, name = github.repo.partition("/")
        if not owner or not name or "/" in name:
            messages.append(
                f"invalid setting: github-repo {github.repo!r} must be formatted owner/repo"
            )
    if github.team and not github.org:
        for team in github.team.split(","):
            org, _, slug = team.strip().partition(":")
            if not org or not slug:
                messages.append(
                    f"invalid setting: github-team {team.strip()!r} must be formatted "
                    "org:team when github-org is not set"
                )
    return messages


def _validate_cookie(cookie: CookieOptions) -> list[str]:
    messages = []
    if len(cookie.secret) not in VALID_COOKIE_SECRET_SIZES:
        messages.append(
            "cookie_secret must be 16, 24, or 32 bytes to create an AES cipher, "
            f"but is {len(cookie.secret)} bytes"
        )
    if cookie.refresh >= cookie.expire:
        messages.append(
            f"cookie_refresh ({cookie.refresh}) must be less than cookie_expire "
            f"({cookie.expire})"
        )
    if not cookie.name:
        messages.append("missing setting: cookie-name")
    return messages


def _validate_redirect_url(raw_redirect_url: str) -> list[str]:
    if not raw_redirect_url:
        return ["missing setting: redirect-url"]
    parsed = urlparse(raw_redirect_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return [f"invalid setting: redirect-url {raw_redirect_url!r} must be absolute"]
    return []
