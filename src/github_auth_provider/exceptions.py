"""Custom exceptions for the GitHub auth provider."""


class GitHubAuthProviderError(Exception):
    """Base error for the GitHub auth provider."""


class OptionsLoadError(GitHubAuthProviderError):
    """Error when options cannot be loaded from the environment."""


class CookieSecretError(GitHubAuthProviderError):
    """Error when the cookie secret is not valid base64."""


class OptionsConversionError(GitHubAuthProviderError):
    """Error when legacy options cannot be converted to proxy options."""


class ConfigValidationError(GitHubAuthProviderError):
    """Error when proxy options fail validation.

    All problems found are kept in `messages` so they can be reported together.
    """

    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__(
            "invalid configuration:\n" + "\n".join(f"  {m}" for m in messages)
        )


class ProxyCreationError(GitHubAuthProviderError):
    """Error when the OAuth2 proxy cannot be constructed."""


class SessionError(GitHubAuthProviderError):
    """Error when a session cookie is missing, invalid, or expired."""


class ProviderError(GitHubAuthProviderError):
    """Error when talking to GitHub fails."""


class AuthorizationDeniedError(GitHubAuthProviderError):
    """Error when an authenticated user fails the configured restrictions."""
