from __future__ import annotations as _annotations

import inspect
from typing import Annotated, Final, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

LOG_LEVEL = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# The listener is only ever reachable on loopback
HOST: Final[str] = "127.0.0.1"


class Settings(BaseSettings):
    """Process settings for the GitHub auth provider."""

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_AUTH_PROVIDER_",
        env_file=".env",
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    log_level: LOG_LEVEL = "INFO"
    enable_rich_tracebacks: Annotated[
        bool,
        Field(
            description=inspect.cleandoc(
                """
                If True, will use rich tracebacks for logging.
                """
            )
        ),
    ] = True

    # HTTP settings
    port: Annotated[
        int,
        Field(
            validation_alias="PORT",
            description=inspect.cleandoc(
                """
                Port of the loopback listener. Read from the unprefixed `PORT`
                environment variable; an unset or empty value falls back to 9999.
                """
            ),
        ),
    ] = 9999

    @model_validator(mode="after")
    def setup_logging(self) -> Self:
        """Finalize the settings."""
        from github_auth_provider.utilities.logging import configure_logging

        configure_logging(
            self.log_level, enable_rich_tracebacks=self.enable_rich_tracebacks
        )

        return self

    @property
    def host(self) -> str:
        return HOST

    @property
    def local_url(self) -> str:
        return f"http://{self.host}:{self.port}"
