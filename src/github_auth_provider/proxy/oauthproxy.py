"""OAuth2 reverse proxy engine.

`OAuthProxy` is an ASGI application that runs the browser login flow against
GitHub and keeps the resulting session in an encrypted cookie:

- `{prefix}/start` (alias `{prefix}/sign_in`) stores a CSRF nonce and the
  post-login target in a short-lived cookie and redirects to GitHub
- `{prefix}/callback` checks the nonce, redeems the code, fills in the user's
  identity, applies the email and GitHub restrictions and issues the session
  cookie
- `{prefix}/sign_out` clears the session cookie
- `{prefix}/auth` and `{prefix}/userinfo` report on the current session
- every other path is forwarded to the configured upstream for authenticated
  requests; unauthenticated requests are sent to `{prefix}/start`
"""

from __future__ import annotations

import json
import secrets
from html import escape
from typing import Any, Final
from urllib.parse import quote, urlparse

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import (
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from github_auth_provider.exceptions import (
    AuthorizationDeniedError,
    ProviderError,
    ProxyCreationError,
    SessionError,
)
from github_auth_provider.proxy.cookies import SessionCipher
from github_auth_provider.proxy.github import GitHubProvider
from github_auth_provider.proxy.options import ProxyOptions
from github_auth_provider.proxy.session import SessionState, utcnow
from github_auth_provider.proxy.validator import EmailValidator
from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)

CSRF_EXPIRY_SECONDS: Final[int] = 15 * 60
UPSTREAM_TIMEOUT_SECONDS: Final[int] = 30

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Headers that must not be copied between the client and the upstream
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


class OAuthProxy:
    """OAuth2 proxy with GitHub as the identity provider."""

    def __init__(self, opts: ProxyOptions, validator: EmailValidator):
        if not opts.providers:
            raise ProxyCreationError("no provider configured")

        try:
            self._cipher = SessionCipher(opts.cookie.secret)
        except ValueError as e:
            raise ProxyCreationError(f"could not create cookie cipher: {e}") from e

        self.opts = opts
        self.validator = validator
        self.provider = GitHubProvider(opts.providers[0], opts.raw_redirect_url)

        self.cookie_name = opts.cookie.name
        self.csrf_cookie_name = f"{opts.cookie.name}_csrf"
        self._prefix = "/" + opts.proxy_prefix.strip("/")
        self._redirect_netloc = urlparse(opts.raw_redirect_url).netloc

        self._app = Starlette(routes=self._routes())

        logger.debug(
            "Initialized OAuth proxy for provider %s with %d upstream(s)",
            opts.providers[0].id,
            len(opts.upstreams),
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._app(scope, receive, send)

    def _routes(self) -> list[Route]:
        prefix = self._prefix
        return [
            Route("/ping", self._handle_ping, methods=["GET"]),
            Route(f"{prefix}/start", self._handle_start, methods=["GET"]),
            Route(f"{prefix}/sign_in", self._handle_start, methods=["GET"]),
            Route(f"{prefix}/callback", self._handle_callback, methods=["GET"]),
            Route(f"{prefix}/sign_out", self._handle_sign_out, methods=["GET", "POST"]),
            Route(f"{prefix}/auth", self._handle_auth, methods=["GET"]),
            Route(f"{prefix}/userinfo", self._handle_userinfo, methods=["GET"]),
            Route("/{path:path}", self._handle_proxy, methods=ALL_METHODS),
        ]

    # -------------------------------------------------------------------------
    # Session handling
    # -------------------------------------------------------------------------

    async def load_cookied_session(self, request: Request) -> SessionState:
        """Load the session from the request's session cookie.

        Raises:
            SessionError: if there is no session cookie or it is invalid or expired
        """
        value = request.cookies.get(self.cookie_name)
        if not value:
            raise SessionError(f"cookie {self.cookie_name!r} not present")

        session = self._cipher.decode_session(
            self.cookie_name, value, self.opts.cookie.expire
        )
        if session.is_expired():
            raise SessionError("session token has expired")
        return session

    async def refresh_session_if_needed(self, session: SessionState) -> bool:
        """Revalidate a session that is older than the refresh interval.

        GitHub tokens cannot be refreshed, so a stale session is checked against
        GitHub and, if still valid, its creation time is reset.

        Returns:
            True if the session was refreshed and its cookie needs to be re-issued

        Raises:
            SessionError: if GitHub no longer accepts the session's token
        """
        refresh = self.opts.cookie.refresh
        if not refresh or session.age() <= refresh:
            return False

        try:
            valid = await self.provider.validate_session(session)
        except httpx.HTTPError as e:
            raise SessionError(f"could not validate session: {e}") from e
        if not valid:
            raise SessionError("session is no longer valid")

        session.created_at = utcnow()
        logger.debug("Refreshed session for %s", session.user)
        return True

    def make_session_cookie(self, session: SessionState) -> list[str]:
        """Return the Set-Cookie header values that persist `session`."""
        response = Response()
        self._set_session_cookie(response, session)
        return response.headers.getlist("set-cookie")

    def _cookie_kwargs(self) -> dict[str, Any]:
        cookie = self.opts.cookie
        return {
            "path": cookie.path,
            "domain": cookie.domains[0] if cookie.domains else None,
            "secure": cookie.secure,
            "httponly": cookie.httponly,
            "samesite": cookie.samesite,
        }

    def _set_session_cookie(self, response: Response, session: SessionState) -> None:
        response.set_cookie(
            self.cookie_name,
            self._cipher.encode_session(self.cookie_name, session),
            max_age=int(self.opts.cookie.expire.total_seconds()),
            **self._cookie_kwargs(),
        )

    def _clear_session_cookie(self, response: Response) -> None:
        response.delete_cookie(self.cookie_name, **self._cookie_kwargs())

    def _safe_redirect(self, rd: str | None) -> str:
        """Restrict post-login redirects to local paths or the proxy's own host."""
        if not rd:
            return "/"
        if rd.startswith("/") and not rd.startswith("//") and "\\" not in rd:
            return rd
        parsed = urlparse(rd)
        if parsed.scheme in ("http", "https") and parsed.netloc == self._redirect_netloc:
            return rd
        logger.debug("Rejected redirect target %s", rd)
        return "/"

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    async def _handle_ping(self, request: Request) -> Response:
        return PlainTextResponse("OK")

    async def _handle_start(self, request: Request) -> Response:
        rd = self._safe_redirect(request.query_params.get("rd"))
        nonce = secrets.token_urlsafe(32)
        csrf = self._cipher.encrypt(
            self.csrf_cookie_name, json.dumps({"nonce": nonce, "rd": rd}).encode()
        )

        response = RedirectResponse(self.provider.login_url(nonce), status_code=302)
        response.set_cookie(
            self.csrf_cookie_name,
            csrf,
            max_age=CSRF_EXPIRY_SECONDS,
            **self._cookie_kwargs(),
        )
        logger.debug("Starting GitHub login, redirect target %s", rd)
        return response

    async def _handle_callback(self, request: Request) -> Response:
        error = request.query_params.get("error")
        if error:
            logger.error(
                "GitHub callback error: %s - %s",
                error,
                request.query_params.get("error_description"),
            )
            description = request.query_params.get("error_description", "Unknown error")
            return _error_page(403, f"{error}: {description}")

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not code or not state:
            return _error_page(400, "Missing authorization code or state")

        csrf_value = request.cookies.get(self.csrf_cookie_name)
        if not csrf_value:
            return _error_page(403, "Unable to find a valid CSRF token")
        try:
            csrf = json.loads(self._cipher.decrypt(self.csrf_cookie_name, csrf_value))
        except (SessionError, ValueError) as e:
            logger.warning("Invalid CSRF cookie: %s", e)
            return _error_page(403, "Unable to find a valid CSRF token")
        # compare_digest only accepts ASCII str, so compare the encoded bytes
        nonce = str(csrf.get("nonce", ""))
        if not secrets.compare_digest(nonce.encode(), state.encode()):
            logger.warning("CSRF token mismatch on callback")
            return _error_page(403, "CSRF token mismatch")

        try:
            session = await self.provider.redeem(code)
            await self.provider.enrich_session(session)
        except ProviderError as e:
            logger.error("Error completing GitHub login: %s", e)
            return _error_page(500, "Unable to complete login with GitHub")

        if not self.validator(session.email):
            logger.warning(
                "Rejected login for %s: email %s not allowed", session.user, session.email
            )
            return _error_page(403, "Invalid account")

        try:
            await self.provider.authorize(session)
        except AuthorizationDeniedError as e:
            logger.warning("Rejected login: %s", e)
            return _error_page(403, "Invalid account")
        except ProviderError as e:
            logger.error("Error checking GitHub restrictions: %s", e)
            return _error_page(500, "Unable to verify GitHub membership")

        logger.info("Authenticated %s via GitHub", session.user)
        response = RedirectResponse(self._safe_redirect(csrf.get("rd")), status_code=302)
        self._set_session_cookie(response, session)
        response.delete_cookie(self.csrf_cookie_name, **self._cookie_kwargs())
        return response

    async def _handle_sign_out(self, request: Request) -> Response:
        response = RedirectResponse(
            self._safe_redirect(request.query_params.get("rd")), status_code=302
        )
        self._clear_session_cookie(response)
        return response

    async def _handle_auth(self, request: Request) -> Response:
        try:
            session = await self.load_cookied_session(request)
        except SessionError:
            return PlainTextResponse("Unauthorized", status_code=401)
        return Response(
            status_code=202,
            headers={
                "X-Auth-Request-User": session.user,
                "X-Auth-Request-Email": session.email,
            },
        )

    async def _handle_userinfo(self, request: Request) -> Response:
        try:
            session = await self.load_cookied_session(request)
        except SessionError:
            return PlainTextResponse("Unauthorized", status_code=401)
        return JSONResponse(
            {
                "user": session.user,
                "email": session.email,
                "preferredUsername": session.preferred_username,
            }
        )

    async def _handle_proxy(self, request: Request) -> Response:
        try:
            session = await self.load_cookied_session(request)
            refreshed = await self.refresh_session_if_needed(session)
        except SessionError as e:
            logger.debug("No valid session for %s: %s", request.url.path, e)
            target = request.url.path
            if request.url.query:
                target = f"{target}?{request.url.query}"
            response = RedirectResponse(
                f"{self._prefix}/start?rd={quote(target, safe='')}", status_code=302
            )
            if self.cookie_name in request.cookies:
                self._clear_session_cookie(response)
            return response

        response = await self._forward(request, session)
        if refreshed:
            self._set_session_cookie(response, session)
        return response

    async def _forward(self, request: Request, session: SessionState) -> Response:
        if not self.opts.upstreams:
            return PlainTextResponse("Not Found", status_code=404)

        upstream = self.opts.upstreams[0]
        url = f"{upstream.uri}{request.url.path}"
        headers = {
            k: v for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
        }
        headers["X-Forwarded-User"] = session.user
        headers["X-Forwarded-Email"] = session.email
        headers["X-Forwarded-Preferred-Username"] = session.preferred_username

        try:
            async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS) as client:
                upstream_response = await client.request(
                    request.method,
                    url,
                    params=request.query_params,
                    headers=headers,
                    content=await request.body(),
                )
        except httpx.HTTPError as e:
            logger.error("Error proxying to upstream %s: %s", upstream.id, e)
            return PlainTextResponse("Bad Gateway", status_code=502)

        response = Response(
            content=upstream_response.content,
            status_code=upstream_response.status_code,
        )
        for k, v in upstream_response.headers.multi_items():
            if k.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(k, v)
        return response


def _error_page(status_code: int, message: str) -> HTMLResponse:
    return HTMLResponse(
        f"<html><body><h1>{status_code}</h1><p>{escape(message)}</p></body></html>",
        status_code=status_code,
    )


def new_oauth_proxy(opts: ProxyOptions, validator: EmailValidator) -> OAuthProxy:
    """Construct the proxy, wrapping unexpected failures in `ProxyCreationError`."""
    try:
        return OAuthProxy(opts, validator)
    except ProxyCreationError:
        raise
    except Exception as e:
        raise ProxyCreationError(str(e)) from e
