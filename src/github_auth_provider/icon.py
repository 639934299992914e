from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from github_auth_provider.exceptions import ProviderError
from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)

IconURLFetcher = Callable[[str], Awaitable[str]]


def obot_get_icon_url(
    fetch_icon_url: IconURLFetcher,
) -> Callable[[Request], Awaitable[Response]]:
    """Build a handler that looks up the profile icon for the request's bearer token."""

    async def handler(request: Request) -> Response:
        authorization = request.headers.get("Authorization", "")
        access_token = authorization.removeprefix("Bearer ").strip()
        if not access_token:
            return PlainTextResponse("missing access token", status_code=400)

        try:
            icon_url = await fetch_icon_url(access_token)
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning("Failed to fetch icon URL: %s", e)
            return PlainTextResponse(
                f"failed to fetch icon URL: {e}", status_code=400
            )

        return JSONResponse({"iconURL": icon_url})

    return handler
