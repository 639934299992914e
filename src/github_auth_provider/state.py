"""State introspection endpoint.

Obot does not hold the proxy's session cookie secret, so it forwards the
relevant parts of an incoming request (method, URL, headers) here and gets
back the decoded session, plus any cookies that need to be re-issued because
the session was refreshed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from github_auth_provider.exceptions import SessionError
from github_auth_provider.proxy.oauthproxy import OAuthProxy
from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)


class SerializableRequest(BaseModel):
    method: str = "GET"
    url: str
    header: dict[str, list[str]] = Field(default_factory=dict)

    def to_request(self) -> Request:
        parsed = urlparse(self.url)
        headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, values in self.header.items()
            for value in values
        ]
        scope = {
            "type": "http",
            "method": self.method.upper(),
            "scheme": parsed.scheme or "http",
            "path": parsed.path or "/",
            "raw_path": (parsed.path or "/").encode(),
            "query_string": parsed.query.encode(),
            "headers": headers,
        }
        return Request(scope)


class SerializableState(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    expires_on: datetime | None = None
    access_token: str = ""
    preferred_username: str = ""
    user: str = ""
    email: str = ""
    set_cookies: list[str] = Field(default_factory=list)


def obot_get_state(proxy: OAuthProxy) -> Callable[[Request], Awaitable[Response]]:
    """Build a handler that reports the proxy session carried by a forwarded request."""

    async def handler(request: Request) -> Response:
        try:
            sr = SerializableRequest.model_validate_json(await request.body())
            forwarded = sr.to_request()
        except (ValidationError, UnicodeEncodeError) as e:
            return PlainTextResponse(
                f"failed to decode request body: {e}", status_code=400
            )

        try:
            session = await proxy.load_cookied_session(forwarded)
            refreshed = await proxy.refresh_session_if_needed(session)
        except SessionError as e:
            logger.debug("No usable session in forwarded request: %s", e)
            return PlainTextResponse(
                f"failed to load cookied session: {e}", status_code=400
            )

        state = SerializableState(
            expires_on=session.expires_on,
            access_token=session.access_token,
            preferred_username=session.preferred_username,
            user=session.user,
            email=session.email,
            set_cookies=proxy.make_session_cookie(session) if refreshed else [],
        )
        return JSONResponse(state.model_dump(mode="json", by_alias=True))

    return handler
