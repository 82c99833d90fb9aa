from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Optional, Protocol, Tuple

from careerboard.config import Settings
from careerboard.logging import get_logger
from careerboard.service.errors import ConflictError, NotFoundError, ValidationError
from careerboard.service.passwords import KDFParams, hash_password, verify_password
from careerboard.service.tokens import Role, SessionPayload, SessionTokenSigner
from careerboard.storage.errors import ConstraintViolation
from careerboard.storage.models import Application, User, normalize_email

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


class UserStore(Protocol):
    def create(
        self,
        email: str,
        password_hash: str,
        password_salt: str,
        *,
        role: Role = Role.USER,
    ) -> User: ...

    def find_by_identifier(self, user_id: str) -> Optional[User]: ...

    def find_by_normalized_email(self, email: str) -> Optional[User]: ...

    def update_password_hash(
        self, user_id: str, password_hash: str, password_salt: str
    ) -> bool: ...

    def get_application_for_user(self, user_id: str) -> Optional[Application]: ...


def is_utf8_encodable(value: str) -> bool:
    # lone surrogates survive JSON decoding but not UTF-8 encoding
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def check_password_policy(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters",
            detail={"field": "password"},
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"password must be at most {MAX_PASSWORD_LENGTH} characters",
            detail={"field": "password"},
        )
    if not is_utf8_encodable(password):
        raise ValidationError(
            "password contains characters that cannot be encoded",
            detail={"field": "password"},
        )
    return password


class AuthService:
    """Registration, login and password changes on top of signed sessions.

    Sessions are stateless: nothing about them is stored, so logout is only a
    matter of clearing the cookie. KDF work runs in a worker thread.
    """

    def __init__(
        self,
        store: UserStore,
        signer: SessionTokenSigner,
        settings: Settings,
    ) -> None:
        self.store = store
        self.signer = signer
        self.settings = settings
        self.logger = get_logger(__name__)
        self.kdf_params = KDFParams.from_settings(settings)
        # Unknown emails are checked against this so a miss costs one KDF run too
        self._dummy = hash_password("careerboard-unknown-user", params=self.kdf_params)

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self.settings.session_ttl_days)

    def issue_session(self, user: User) -> SessionPayload:
        return self.signer.issue(user.id, user.role, self.ttl)

    async def register(self, email: str, password: str) -> Tuple[User, SessionPayload]:
        normalized = normalize_email(email)
        check_password_policy(password)
        if self.store.find_by_normalized_email(normalized):
            raise ConflictError("email already registered", detail={"field": "email"})
        hashed = await asyncio.to_thread(
            hash_password, password, params=self.kdf_params
        )
        try:
            user = self.store.create(normalized, hashed.hash, hashed.salt)
        except ConstraintViolation as exc:
            # lost a race with a concurrent registration for the same email
            raise ConflictError("email already registered", detail=exc.detail) from exc
        self.logger.info("user_registered", user_id=user.id)
        return user, self.issue_session(user)

    async def login(
        self, email: str, password: str
    ) -> Optional[Tuple[User, SessionPayload]]:
        user = self.store.find_by_normalized_email(normalize_email(email))
        if user is None:
            await asyncio.to_thread(
                verify_password,
                password,
                self._dummy.salt,
                self._dummy.hash,
                params=self.kdf_params,
            )
            self.logger.info("login_failed", reason="unknown_email")
            return None
        matches = await asyncio.to_thread(
            verify_password,
            password,
            user.password_salt,
            user.password_hash,
            params=self.kdf_params,
        )
        if not matches:
            self.logger.info("login_failed", reason="password_mismatch", user_id=user.id)
            return None
        self.logger.info("login_succeeded", user_id=user.id, role=user.role.value)
        return user, self.issue_session(user)

    async def change_password(
        self, identifier: str, current_password: str, new_password: str
    ) -> Optional[Tuple[User, SessionPayload]]:
        """Swap the stored hash for one derived with a fresh salt.

        Returns ``None`` when the current password is wrong. Sessions issued
        before the change stay valid until they expire.
        """
        user = self.store.find_by_identifier(identifier)
        if user is None:
            raise NotFoundError("user not found")
        check_password_policy(new_password)
        matches = await asyncio.to_thread(
            verify_password,
            current_password,
            user.password_salt,
            user.password_hash,
            params=self.kdf_params,
        )
        if not matches:
            self.logger.info("password_change_rejected", user_id=user.id)
            return None
        hashed = await asyncio.to_thread(
            hash_password, new_password, params=self.kdf_params
        )
        if not self.store.update_password_hash(user.id, hashed.hash, hashed.salt):
            raise NotFoundError("user not found")
        self.logger.info("password_changed", user_id=user.id)
        return user, self.issue_session(user)

    def describe(self, identifier: str) -> Optional[dict[str, Any]]:
        user = self.store.find_by_identifier(identifier)
        if user is None:
            return None
        application = self.store.get_application_for_user(user.id)
        return {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "applied_job_id": application.job_id if application else None,
        }
