"""Encrypted cookie values for sessions and CSRF state.

Values are AES-GCM encrypted with the configured cookie secret. The cookie
name is bound as associated data, so a value issued for one cookie cannot be
replayed under another name.
"""

from __future__ import annotations

import base64
import binascii
import os
from datetime import datetime, timedelta

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from github_auth_provider.exceptions import SessionError
from github_auth_provider.proxy.session import SessionState, utcnow

NONCE_SIZE = 12


class SessionCipher:
    def __init__(self, secret: bytes):
        # AESGCM rejects keys that are not 128, 192 or 256 bits
        self._aead = AESGCM(secret)

    def encrypt(self, name: str, data: bytes) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, data, name.encode())
        return base64.urlsafe_b64encode(nonce + ciphertext).decode().rstrip("=")

    def decrypt(self, name: str, value: str) -> bytes:
        try:
            raw = base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
        except (binascii.Error, ValueError) as e:
            raise SessionError(f"cookie {name!r} is not valid base64") from e
        if len(raw) <= NONCE_SIZE:
            raise SessionError(f"cookie {name!r} is too short")
        try:
            return self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], name.encode())
        except InvalidTag as e:
            raise SessionError(f"cookie {name!r} could not be decrypted") from e

    def encode_session(self, name: str, session: SessionState) -> str:
        return self.encrypt(name, session.model_dump_json().encode())

    def decode_session(
        self, name: str, value: str, expire: timedelta, now: datetime | None = None
    ) -> SessionState:
        """Decrypt a session cookie value.

        Raises:
            SessionError: if the value is tampered, malformed, or older than `expire`
        """
        data = self.decrypt(name, value)
        try:
            session = SessionState.model_validate_json(data)
        except ValidationError as e:
            raise SessionError(f"cookie {name!r} does not hold a session") from e

        if session.created_at is not None and session.created_at + expire < (
            now or utcnow()
        ):
            raise SessionError("session cookie has expired")
        return session
