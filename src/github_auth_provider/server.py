"""HTTP surface of the auth provider.

`/` reports the local base URL, `/obot-get-state` and `/obot-get-icon-url` serve
Obot, and every other path is handled by the OAuth2 proxy.
"""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Mount, Route

from github_auth_provider.icon import IconURLFetcher, obot_get_icon_url
from github_auth_provider.profile import fetch_github_profile_icon_url
from github_auth_provider.proxy.oauthproxy import OAuthProxy
from github_auth_provider.state import obot_get_state


def create_app(
    proxy: OAuthProxy,
    local_url: str,
    fetch_icon_url: IconURLFetcher = fetch_github_profile_icon_url,
) -> Starlette:
    async def root(request: Request) -> PlainTextResponse:
        return PlainTextResponse(local_url)

    return Starlette(
        routes=[
            Route("/", root, methods=["GET"]),
            Route("/obot-get-state", obot_get_state(proxy), methods=["GET", "POST"]),
            Route(
                "/obot-get-icon-url",
                obot_get_icon_url(fetch_icon_url),
                methods=["GET"],
            ),
            Mount("/", app=proxy),
        ]
    )
