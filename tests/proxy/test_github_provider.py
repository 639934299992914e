"""Unit tests for the GitHub provider."""

from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from pydantic import SecretStr

from github_auth_provider.exceptions import AuthorizationDeniedError, ProviderError
from github_auth_provider.proxy.github import GitHubProvider
from github_auth_provider.proxy.options import GitHubOptions, ProviderOptions
from github_auth_provider.proxy.session import SessionState

REDIRECT_URL = "https://obot.example.com/oauth2/callback"


def make_provider(**github) -> GitHubProvider:
    if "token" in github:
        github["token"] = SecretStr(github["token"])
    return GitHubProvider(
        ProviderOptions(
            id="github=test-client",
            client_id="test-client",
            client_secret=SecretStr("test-secret"),
            github=GitHubOptions(**github),
        ),
        REDIRECT_URL,
    )


def mock_response(status_code: int, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = text
    return response


@pytest.fixture
def session() -> SessionState:
    return SessionState(access_token="gho_token", user="alice")


class TestGitHubProviderInit:
    def test_default_scope(self):
        assert make_provider().scope == "user:email"

    def test_org_adds_read_org_scope(self):
        assert make_provider(org="acme").scope == "user:email read:org"

    def test_repo_without_token_adds_repo_scope(self):
        assert make_provider(repo="acme/widgets").scope == "user:email repo"

    def test_repo_with_token_does_not_add_repo_scope(self):
        assert make_provider(repo="acme/widgets", token="ghp").scope == "user:email"

    def test_teams_parsed(self):
        provider = make_provider(org="Acme", team="Core, docs,other:ops")
        assert provider.teams == {
            ("acme", "core"),
            ("acme", "docs"),
            ("other", "ops"),
        }

    def test_login_url(self):
        url = make_provider().login_url("nonce-123")

        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://github.com/login/oauth/authorize"
        )
        params = parse_qs(parsed.query)
        assert params["client_id"] == ["test-client"]
        assert params["redirect_uri"] == [REDIRECT_URL]
        assert params["state"] == ["nonce-123"]
        assert params["scope"] == ["user:email"]
        assert params["response_type"] == ["code"]


class TestRedeem:
    async def test_redeem_success(self):
        provider = make_provider()

        with patch(
            "github_auth_provider.proxy.github.AsyncOAuth2Client"
        ) as mock_client_class:
            oauth_client = mock_client_class.return_value
            oauth_client.fetch_token = AsyncMock(
                return_value={"access_token": "gho_new", "token_type": "bearer"}
            )
            oauth_client.aclose = AsyncMock()

            session = await provider.redeem("code-123")

        assert session.access_token == "gho_new"
        assert session.created_at is not None
        assert session.expires_on is None
        oauth_client.fetch_token.assert_awaited_once()
        kwargs = oauth_client.fetch_token.call_args.kwargs
        assert kwargs["code"] == "code-123"
        assert kwargs["redirect_uri"] == REDIRECT_URL
        oauth_client.aclose.assert_awaited_once()

    async def test_redeem_with_expiry(self):
        provider = make_provider()

        with patch(
            "github_auth_provider.proxy.github.AsyncOAuth2Client"
        ) as mock_client_class:
            oauth_client = mock_client_class.return_value
            oauth_client.fetch_token = AsyncMock(
                return_value={
                    "access_token": "ghu_new",
                    "refresh_token": "ghr_refresh",
                    "expires_in": 28800,
                }
            )
            oauth_client.aclose = AsyncMock()

            session = await provider.redeem("code-123")

        assert session.refresh_token == "ghr_refresh"
        assert session.expires_on is not None
        assert session.created_at is not None
        assert (session.expires_on - session.created_at).total_seconds() == 28800

    async def test_redeem_failure(self):
        provider = make_provider()

        with patch(
            "github_auth_provider.proxy.github.AsyncOAuth2Client"
        ) as mock_client_class:
            oauth_client = mock_client_class.return_value
            oauth_client.fetch_token = AsyncMock(side_effect=Exception("bad_code"))
            oauth_client.aclose = AsyncMock()

            with pytest.raises(ProviderError, match="bad_code"):
                await provider.redeem("code-123")


class TestEnrichSession:
    async def test_primary_verified_email(self, session):
        provider = make_provider()
        user = {"login": "alice", "email": "public@example.com"}
        emails = [
            {"email": "old@example.com", "primary": False, "verified": True},
            {"email": "alice@example.com", "primary": True, "verified": True},
        ]

        with patch.object(provider, "_get_json", AsyncMock(side_effect=[user, emails])):
            await provider.enrich_session(session)

        assert session.user == "alice"
        assert session.preferred_username == "alice"
        assert session.email == "alice@example.com"

    async def test_falls_back_to_profile_email(self, session):
        provider = make_provider()
        user = {"login": "alice", "email": "public@example.com"}
        emails = [{"email": "alice@example.com", "primary": True, "verified": False}]

        with patch.object(provider, "_get_json", AsyncMock(side_effect=[user, emails])):
            await provider.enrich_session(session)

        assert session.email == "public@example.com"


class TestValidateSession:
    async def test_valid_token(self, session):
        provider = make_provider()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.get.return_value = mock_response(200, {"login": "alice"})

            assert await provider.validate_session(session) is True

        headers = mock_client.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer gho_token"

    async def test_revoked_token(self, session):
        provider = make_provider()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.get.return_value = mock_response(401, text="Bad credentials")

            assert await provider.validate_session(session) is False


class TestAuthorize:
    async def test_no_restrictions(self, session):
        await make_provider().authorize(session)

    async def test_allow_listed_user_skips_other_checks(self, session):
        provider = make_provider(org="acme", users=["Alice"])

        with patch.object(provider, "_has_org", AsyncMock(return_value=False)) as has_org:
            await provider.authorize(session)

        has_org.assert_not_awaited()

    async def test_only_allow_list_rejects_others(self):
        provider = make_provider(users=["bob"])

        with pytest.raises(AuthorizationDeniedError, match="allowed users"):
            await provider.authorize(SessionState(access_token="t", user="alice"))

    async def test_org_member(self, session):
        provider = make_provider(org="acme")

        with patch.object(
            provider,
            "_get_paginated",
            AsyncMock(return_value=[{"login": "other"}, {"login": "ACME"}]),
        ):
            await provider.authorize(session)

    async def test_not_org_member(self, session):
        provider = make_provider(org="acme")

        with patch.object(
            provider, "_get_paginated", AsyncMock(return_value=[{"login": "other"}])
        ):
            with pytest.raises(AuthorizationDeniedError, match="organization acme"):
                await provider.authorize(session)

    async def test_not_org_member_but_allow_listed(self, session):
        provider = make_provider(org="acme", users=["alice"])

        with patch.object(provider, "_get_paginated", AsyncMock(return_value=[])):
            await provider.authorize(session)

    async def test_team_member(self, session):
        provider = make_provider(org="acme", team="core,docs")
        teams = [
            {"slug": "core", "organization": {"login": "other"}},
            {"slug": "docs", "organization": {"login": "acme"}},
        ]

        with patch.object(provider, "_get_paginated", AsyncMock(return_value=teams)):
            await provider.authorize(session)

    async def test_team_in_wrong_org(self, session):
        provider = make_provider(org="acme", team="core")
        teams = [{"slug": "core", "organization": {"login": "other"}}]

        with patch.object(provider, "_get_paginated", AsyncMock(return_value=teams)):
            with pytest.raises(AuthorizationDeniedError, match="teams"):
                await provider.authorize(session)

    @pytest.mark.parametrize(
        "repo, allowed",
        [
            ({"private": False, "permissions": {"pull": True, "push": True}}, True),
            ({"private": False, "permissions": {"pull": True, "push": False}}, False),
            ({"private": True, "permissions": {"pull": True, "push": False}}, True),
            ({"private": True, "permissions": {"pull": False, "push": False}}, False),
            ({"private": False}, False),
        ],
    )
    async def test_repo_access_without_token(self, session, repo, allowed):
        provider = make_provider(repo="acme/widgets")

        with patch.object(provider, "_get_json", AsyncMock(return_value=repo)) as get:
            if allowed:
                await provider.authorize(session)
            else:
                with pytest.raises(AuthorizationDeniedError, match="acme/widgets"):
                    await provider.authorize(session)

        get.assert_awaited_once_with("/repos/acme/widgets", "gho_token")

    @pytest.mark.parametrize("status_code, allowed", [(204, True), (404, False)])
    async def test_repo_collaborator_with_token(self, session, status_code, allowed):
        provider = make_provider(repo="acme/widgets", token="ghp_admin")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.get.return_value = mock_response(status_code)

            if allowed:
                await provider.authorize(session)
            else:
                with pytest.raises(AuthorizationDeniedError):
                    await provider.authorize(session)

        url = mock_client.get.call_args.args[0]
        assert url == "https://api.github.com/repos/acme/widgets/collaborators/alice"
        headers = mock_client.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer ghp_admin"

    async def test_collaborator_check_error(self, session):
        provider = make_provider(repo="acme/widgets", token="ghp_admin")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.get.return_value = mock_response(500, text="boom")

            with pytest.raises(ProviderError, match="collaborator check failed"):
                await provider.authorize(session)

    async def test_org_takes_precedence_over_repo(self, session):
        provider = make_provider(org="acme", repo="acme/widgets")

        with (
            patch.object(provider, "_has_org", AsyncMock(return_value=True)),
            patch.object(
                provider, "_has_repo_access", AsyncMock(return_value=False)
            ) as has_repo_access,
        ):
            await provider.authorize(session)

        has_repo_access.assert_not_awaited()

    async def test_org_member_skips_collaborator_check(self, session):
        provider = make_provider(org="acme", repo="acme/widgets", token="ghp_admin")

        with (
            patch.object(provider, "_has_org", AsyncMock(return_value=True)),
            patch.object(
                provider, "_is_collaborator", AsyncMock(return_value=False)
            ) as is_collaborator,
        ):
            await provider.authorize(session)

        is_collaborator.assert_not_awaited()

    async def test_team_failure_not_rescued_by_repo(self, session):
        provider = make_provider(org="acme", team="core", repo="acme/widgets")

        with (
            patch.object(provider, "_has_team", AsyncMock(return_value=False)),
            patch.object(provider, "_has_repo_access", AsyncMock(return_value=True)),
        ):
            with pytest.raises(AuthorizationDeniedError, match="teams"):
                await provider.authorize(session)


class TestPagination:
    async def test_follows_pages(self):
        provider = make_provider(org="acme")
        first_page = [{"login": f"org{i}"} for i in range(100)]
        second_page = [{"login": "acme"}]

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.get.side_effect = [
                mock_response(200, first_page),
                mock_response(200, second_page),
            ]

            orgs = await provider._get_paginated("/user/orgs", "gho_token")

        assert len(orgs) == 101
        assert mock_client.get.call_count == 2
        assert mock_client.get.call_args.kwargs["params"] == {"per_page": 100, "page": 2}
