from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from github_auth_provider.exceptions import ProviderError
from github_auth_provider.profile import fetch_github_profile_icon_url


class TestFetchGitHubProfileIconURL:
    async def test_returns_avatar_url(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client

            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.json.return_value = {
                "login": "alice",
                "avatar_url": "https://avatars.githubusercontent.com/u/1?v=4",
            }
            mock_client.get.return_value = mock_response

            icon_url = await fetch_github_profile_icon_url("gho_token")

        assert icon_url == "https://avatars.githubusercontent.com/u/1?v=4"
        mock_client.get.assert_called_once()
        assert mock_client.get.call_args.args[0] == "https://api.github.com/user"
        headers = mock_client.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer gho_token"

    async def test_custom_api_url(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client

            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.json.return_value = {"avatar_url": "https://ghe/avatar"}
            mock_client.get.return_value = mock_response

            await fetch_github_profile_icon_url(
                "gho_token", api_url="https://ghe.example.com/api/v3/"
            )

        assert (
            mock_client.get.call_args.args[0] == "https://ghe.example.com/api/v3/user"
        )

    async def test_error_status(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client

            mock_response = MagicMock()
            mock_response.status_code = 401
            mock_client.get.return_value = mock_response

            with pytest.raises(ProviderError, match="401"):
                await fetch_github_profile_icon_url("bad_token")

    async def test_invalid_json(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client

            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.json.side_effect = ValueError("Expecting value")
            mock_client.get.return_value = mock_response

            with pytest.raises(ProviderError, match="invalid response"):
                await fetch_github_profile_icon_url("gho_token")
