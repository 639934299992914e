"""GitHub identity provider for the OAuth2 proxy engine.

Handles the provider side of the login flow: building the authorize URL,
redeeming the authorization code, filling in the user's login and primary
email, and enforcing the optional org/team/repo/user restrictions.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Final
from urllib.parse import urlencode

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client

from github_auth_provider.exceptions import AuthorizationDeniedError, ProviderError
from github_auth_provider.proxy.options import ProviderOptions
from github_auth_provider.proxy.session import SessionState, utcnow
from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)

HTTP_TIMEOUT_SECONDS: Final[int] = 10
PAGE_SIZE: Final[int] = 100
MAX_PAGES: Final[int] = 10


class GitHubProvider:
    def __init__(
        self,
        options: ProviderOptions,
        redirect_url: str,
        timeout_seconds: int = HTTP_TIMEOUT_SECONDS,
    ):
        self.options = options
        self.redirect_url = redirect_url
        self.timeout_seconds = timeout_seconds

        github = options.github
        self.org = github.org
        self.repo = github.repo
        self.token = github.token.get_secret_value() if github.token else None
        self.users = {u.lower() for u in github.users}
        self.teams = _parse_teams(github.team, github.org)

        self.scope = options.scope or self._default_scope()
        self._api_url = options.api_url.rstrip("/")

    def _default_scope(self) -> str:
        scopes = ["user:email"]
        if self.org or self.teams:
            scopes.append("read:org")
        if self.repo and not self.token:
            scopes.append("repo")
        return " ".join(scopes)

    # -------------------------------------------------------------------------
    # Login flow
    # -------------------------------------------------------------------------

    def login_url(self, state: str) -> str:
        query_params = {
            "response_type": "code",
            "client_id": self.options.client_id,
            "redirect_uri": self.redirect_url,
            "scope": self.scope,
            "state": state,
        }
        return f"{self.options.login_url}?{urlencode(query_params)}"

    async def redeem(self, code: str) -> SessionState:
        """Exchange an authorization code for a session holding the access token."""
        oauth_client = AsyncOAuth2Client(
            client_id=self.options.client_id,
            client_secret=self.options.client_secret.get_secret_value(),
            timeout=self.timeout_seconds,
        )
        try:
            token: dict[str, Any] = await oauth_client.fetch_token(  # type: ignore[misc]
                url=self.options.redeem_url,
                code=code,
                redirect_uri=self.redirect_url,
                headers={"Accept": "application/json"},
            )
        except Exception as e:
            logger.error("GitHub code exchange failed: %s", e)
            raise ProviderError(f"code exchange failed: {e}") from e
        finally:
            await oauth_client.aclose()

        if "access_token" not in token:
            raise ProviderError(
                f"code exchange failed: {token.get('error_description') or token.get('error') or 'no access token'}"
            )

        now = utcnow()
        session = SessionState(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            created_at=now,
        )
        if token.get("expires_in"):
            session.expires_on = now + timedelta(seconds=int(token["expires_in"]))
        return session

    async def enrich_session(self, session: SessionState) -> None:
        """Fill in the user's login and primary verified email."""
        user = await self._get_json("/user", session.access_token)
        session.user = user["login"]
        session.preferred_username = user["login"]

        emails = await self._get_json("/user/emails", session.access_token)
        for entry in emails:
            if entry.get("primary") and entry.get("verified"):
                session.email = entry["email"]
                break
        else:
            session.email = user.get("email") or ""

    async def validate_session(self, session: SessionState) -> bool:
        """Check the session's token is still accepted by GitHub."""
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(
                f"{self._api_url}/user", headers=_headers(session.access_token)
            )
        if response.status_code != 200:
            logger.debug(
                "GitHub rejected session token for %s: %d",
                session.user,
                response.status_code,
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Restrictions
    # -------------------------------------------------------------------------

    async def authorize(self, session: SessionState) -> None:
        """Enforce the configured user, org, team and repository restrictions.

        A user on the allow list is always accepted. Otherwise an org/team
        restriction takes precedence: when one is configured the repository is
        not checked. If only an allow list is configured, users not on it are
        rejected.

        Raises:
            AuthorizationDeniedError: if the user does not satisfy the restrictions
        """
        if session.user.lower() in self.users:
            logger.debug("User %s is on the allow list", session.user)
            return

        if self.teams:
            if not await self._has_team(session):
                raise AuthorizationDeniedError(
                    f"user {session.user} is not a member of the required teams"
                )
        elif self.org:
            if not await self._has_org(session):
                raise AuthorizationDeniedError(
                    f"user {session.user} is not a member of organization {self.org}"
                )
        elif self.repo:
            if self.token:
                allowed = await self._is_collaborator(session)
            else:
                allowed = await self._has_repo_access(session)
            if not allowed:
                raise AuthorizationDeniedError(
                    f"user {session.user} does not have access to repository {self.repo}"
                )

        if self.users and not (self.org or self.teams or self.repo):
            raise AuthorizationDeniedError(
                f"user {session.user} is not in the list of allowed users"
            )

    async def _has_org(self, session: SessionState) -> bool:
        orgs = await self._get_paginated("/user/orgs", session.access_token)
        return any(o.get("login", "").lower() == self.org.lower() for o in orgs)

    async def _has_team(self, session: SessionState) -> bool:
        teams = await self._get_paginated("/user/teams", session.access_token)
        for team in teams:
            org = team.get("organization", {}).get("login", "").lower()
            if (org, team.get("slug", "").lower()) in self.teams:
                return True
        return False

    async def _has_repo_access(self, session: SessionState) -> bool:
        repo = await self._get_json(f"/repos/{self.repo}", session.access_token)
        permissions = repo.get("permissions") or {}
        # every user can pull from a public repository
        return bool(
            permissions.get("push")
            or (repo.get("private") and permissions.get("pull"))
        )

    async def _is_collaborator(self, session: SessionState) -> bool:
        assert self.token is not None
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(
                f"{self._api_url}/repos/{self.repo}/collaborators/{session.user}",
                headers=_headers(self.token),
            )
        if response.status_code == 204:
            return True
        if response.status_code == 404:
            return False
        raise ProviderError(
            f"collaborator check failed: {response.status_code} {response.text}"
        )

    # -------------------------------------------------------------------------
    # GitHub API
    # -------------------------------------------------------------------------

    async def _get_json(self, path: str, token: str) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(f"{self._api_url}{path}", headers=_headers(token))
        if response.status_code != 200:
            raise ProviderError(
                f"GET {path} failed: {response.status_code} {response.text}"
            )
        return response.json()

    async def _get_paginated(self, path: str, token: str) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            for page in range(1, MAX_PAGES + 1):
                response = await client.get(
                    f"{self._api_url}{path}",
                    params={"per_page": PAGE_SIZE, "page": page},
                    headers=_headers(token),
                )
                if response.status_code != 200:
                    raise ProviderError(
                        f"GET {path} failed: {response.status_code} {response.text}"
                    )
                items = response.json()
                results.extend(items)
                if len(items) < PAGE_SIZE:
                    break
        return results


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": "obot-github-auth-provider",
    }


def _parse_teams(team: str, org: str) -> set[tuple[str, str]]:
    """Parse a comma-separated team list into (org, slug) pairs.

    Entries may be `org:team`; bare slugs belong to the configured org.
    """
    teams = set()
    for entry in team.split(","):
        entry = entry.strip()
        if not entry:
            continue
        team_org, sep, slug = entry.partition(":")
        if not sep:
            team_org, slug = org, entry
        teams.add((team_org.lower(), slug.lower()))
    return teams
