"""
Credential pair for the model endpoint.

State machine:
    primary ──(auth failure, backup configured)──► backup
    backup  ──(auth failure)──► fatal (CredentialError)

Calls in flight when a rotation happens may still fail on the old key; they
report the key they used to recover(), which sends them to the backup
instead of failing.

There is no transition back to primary for the lifetime of the object.
One instance is shared by the embedding and completion clients of a process;
tests build their own so they never interfere.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from openai import AsyncOpenAI

    from govguide.core.config import Settings

logger = logging.getLogger(__name__)


class CredentialState:

    def __init__(
        self,
        primary:  str,
        backup:   str | None = None,
        base_url: str | None = None,
        timeout:  float | None = None,
    ) -> None:
        if not primary:
            from govguide.core.errors import ConfigurationError
            raise ConfigurationError("Primary model credential (GITHUB_TOKEN) is not set")
        self._primary  = primary
        self._backup   = backup or None
        self._active   = primary
        self._base_url = base_url
        self._timeout  = timeout
        self._client: AsyncOpenAI | None = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CredentialState":
        return cls(
            primary=settings.github_token,
            backup=settings.github_token_backup,
            base_url=settings.models_base_url,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def active(self) -> str:
        return self._active

    @property
    def using_backup(self) -> bool:
        return self._backup is not None and self._active == self._backup

    def rotate(self) -> bool:
        """Switch to the backup credential. Returns False if that is impossible."""
        if self._backup is None or self.using_backup:
            return False
        logger.warning("Credentials | switching to backup model credential")
        self._active = self._backup
        self._client = None
        return True

    def recover(self, failed_key: str) -> bool:
        """
        Handle an auth failure seen by a call that used `failed_key`.

        Returns True when the caller should retry with the active credential:
        either another call already rotated away from `failed_key`, or this
        call rotates now. False means `failed_key` was the last usable key.
        """
        if failed_key != self._active:
            logger.info("Credentials | auth failure on a retired key, retrying with active key")
            return True
        return self.rotate()

    def client(self) -> "AsyncOpenAI":
        """OpenAI-compatible async client bound to the active credential."""
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs: dict = {"api_key": self._active, "max_retries": 0}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            if self._timeout:
                kwargs["timeout"] = self._timeout
            self._client = AsyncOpenAI(**kwargs)
        return self._client
