"""
Login check for the page UI.

There are no sessions or tokens: a successful login only unlocks the page.
Credentials come from settings; the password is kept as a hash and checked
with fastapi-users' PasswordHelper. Swap in another CredentialVerifier
(database-backed, SSO, ...) by overriding ``get_credential_verifier``.
"""

import hmac
import logging
from functools import lru_cache
from typing import Optional, Protocol

from fastapi_users.password import PasswordHelper

from core.config import settings

logger = logging.getLogger(__name__)


class CredentialVerifier(Protocol):
    def verify(self, username: str, password: str) -> bool: ...


class PasswordCredentialVerifier:
    def __init__(
        self,
        username: str,
        password_hash: Optional[str],
        password_helper: Optional[PasswordHelper] = None,
    ):
        self.username = username
        self.password_hash = password_hash or None
        self.password_helper = password_helper or PasswordHelper()

    @classmethod
    def from_plain_password(cls, username: str, password: str, password_helper: Optional[PasswordHelper] = None):
        helper = password_helper or PasswordHelper()
        return cls(username, helper.hash(password), helper)

    def verify(self, username: str, password: str) -> bool:
        if not self.password_hash:
            return False
        # hash check runs even when the username is wrong
        ok, _ = self.password_helper.verify_and_update(password or "", self.password_hash)
        same_user = hmac.compare_digest((username or "").encode("utf-8"), self.username.encode("utf-8"))
        return bool(ok and same_user)


@lru_cache
def get_credential_verifier() -> CredentialVerifier:
    if settings.login_password_hash:
        return PasswordCredentialVerifier(settings.login_username, settings.login_password_hash)
    if settings.login_password:
        return PasswordCredentialVerifier.from_plain_password(settings.login_username, settings.login_password)
    logger.warning("No LOGIN_PASSWORD or LOGIN_PASSWORD_HASH configured; every login will be rejected")
    return PasswordCredentialVerifier(settings.login_username, None)
