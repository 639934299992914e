"""Obot auth provider using an OAuth2 proxy with GitHub as identity provider."""

from importlib.metadata import version

__version__ = version("obot-github-auth-provider")
