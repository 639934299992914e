import base64

import pytest

from github_auth_provider.options import Options, build_proxy_options
from github_auth_provider.proxy.oauthproxy import OAuthProxy
from github_auth_provider.proxy.options import ProxyOptions
from github_auth_provider.proxy.validator import EmailValidator

COOKIE_SECRET_BYTES = b"0123456789abcdef0123456789abcdef"
COOKIE_SECRET = base64.b64encode(COOKIE_SECRET_BYTES).decode()


@pytest.fixture
def cookie_secret() -> str:
    return COOKIE_SECRET


@pytest.fixture
def cookie_secret_bytes() -> bytes:
    return COOKIE_SECRET_BYTES


@pytest.fixture
def provider_env() -> dict[str, str]:
    return {
        "OBOT_GITHUB_AUTH_PROVIDER_CLIENT_ID": "test-client-id",
        "OBOT_GITHUB_AUTH_PROVIDER_CLIENT_SECRET": "test-client-secret",
        "OBOT_SERVER_URL": "http://localhost:8080",
        "OBOT_AUTH_PROVIDER_COOKIE_SECRET": COOKIE_SECRET,
    }


@pytest.fixture
def options() -> Options:
    return Options(
        client_id="test-client-id",
        client_secret="test-client-secret",
        obot_server_url="http://localhost:8080",
        auth_cookie_secret=COOKIE_SECRET,
    )


@pytest.fixture
def proxy_options(options: Options) -> ProxyOptions:
    return build_proxy_options(options, COOKIE_SECRET_BYTES)


@pytest.fixture
def oauth_proxy(proxy_options: ProxyOptions) -> OAuthProxy:
    return OAuthProxy(proxy_options, EmailValidator(proxy_options.email_domains))
