from .oauthproxy import OAuthProxy, new_oauth_proxy
from .options import LegacyOptions, ProxyOptions
from .validation import validate
from .validator import EmailValidator


__all__ = [
    "EmailValidator",
    "LegacyOptions",
    "OAuthProxy",
    "ProxyOptions",
    "new_oauth_proxy",
    "validate",
]
