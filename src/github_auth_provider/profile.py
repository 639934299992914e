from __future__ import annotations

from typing import Final

import httpx

from github_auth_provider.exceptions import ProviderError
from github_auth_provider.proxy.options import GITHUB_API_URL

HTTP_TIMEOUT_SECONDS: Final[int] = 10


async def fetch_github_profile_icon_url(
    bearer_token: str, *, api_url: str = GITHUB_API_URL
) -> str:
    """Return the avatar URL of the GitHub user owning `bearer_token`."""
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        response = await client.get(
            f"{api_url.rstrip('/')}/user",
            headers={
                "Authorization": f"Bearer {bearer_token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": "obot-github-auth-provider",
            },
        )

    if response.status_code != 200:
        raise ProviderError(
            f"unexpected status code from GitHub: {response.status_code}"
        )
    try:
        user = response.json()
    except ValueError as e:
        raise ProviderError(f"invalid response from GitHub: {e}") from e
    return user.get("avatar_url", "")
