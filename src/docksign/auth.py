"""Accounts and caller identity.

Passwords are stored as bcrypt hashes. A successful login yields a signed,
timestamped bearer token (itsdangerous); every API request resolves that
token back into a :class:`~docksign.models.Requester` that is passed
explicitly into the store operations.
"""

import logging
import re
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import AuthenticationError, DuplicateError, NotFoundError, ValidationError
from .models import Requester, User, utcnow
from .store import Store

logger = logging.getLogger("docksign.auth")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TOKEN_SALT = "docksign-session"


def hash_password(password: str, rounds: int = 12) -> str:
    # bcrypt only looks at the first 72 bytes.
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


class AccountService:
    """Registration, login, tokens and profile changes.

    Args:
        store: Backing repositories.
        secret_key: Signs bearer tokens.
        token_max_age: Token lifetime in seconds.
        bcrypt_rounds: Cost factor for new hashes.
    """

    def __init__(
        self,
        store: Store,
        secret_key: str,
        token_max_age: int = 30 * 24 * 60 * 60,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.store = store
        self.token_max_age = token_max_age
        self.bcrypt_rounds = bcrypt_rounds
        self._serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> User:
        """Create an account.

        Raises:
            ValidationError: Short name, bad email or short password.
            DuplicateError: The email is already registered.
        """
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if len(name) < MIN_NAME_LENGTH:
            raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
        if not _EMAIL_RE.match(email):
            raise ValidationError("Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.store.users.get_by_email(email) is not None:
            raise DuplicateError("User already exists")

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password, self.bcrypt_rounds),
        )
        self.store.users.save(user)
        logger.info("Registered user %s", user.id[:8])
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Check credentials.

        Raises:
            AuthenticationError: Unknown email or wrong password.
        """
        user = self.store.users.get_by_email(email or "")
        if user is None or not verify_password(password or "", user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return user

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, user: User) -> str:
        return self._serializer.dumps({"uid": user.id})

    def resolve_token(self, token: Optional[str]) -> Requester:
        """Turn a bearer token into the calling user.

        Raises:
            AuthenticationError: Missing, tampered, expired or orphaned token.
        """
        if not token:
            raise AuthenticationError()
        try:
            payload = self._serializer.loads(token, max_age=self.token_max_age)
        except SignatureExpired:
            raise AuthenticationError("Session expired") from None
        except BadSignature:
            raise AuthenticationError() from None
        try:
            user = self.store.users.load(str(payload.get("uid", "")))
        except FileNotFoundError:
            raise AuthenticationError() from None
        return Requester.from_user(user)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_user(self, requester: Requester) -> User:
        try:
            return self.store.users.load(requester.id)
        except FileNotFoundError:
            raise NotFoundError("User not found") from None

    def update_profile(
        self,
        requester: Requester,
        name: str,
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
        confirm_password: Optional[str] = None,
    ) -> User:
        """Rename the user and optionally change the password.

        Changing the password needs both the current and the new one.

        Raises:
            ValidationError: Bad name, incomplete or mismatched passwords,
                or a wrong current password.
        """
        user = self.get_user(requester)
        name = (name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")

        if current_password or new_password or confirm_password:
            if not (current_password and new_password):
                raise ValidationError(
                    "Both current and new password are required to change password"
                )
            if len(new_password) < MIN_PASSWORD_LENGTH:
                raise ValidationError(
                    f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
                )
            if confirm_password and confirm_password != new_password:
                raise ValidationError("Passwords don't match")
            if not verify_password(current_password, user.password_hash):
                raise ValidationError("Current password is incorrect")
            user.password_hash = hash_password(new_password, self.bcrypt_rounds)

        user.name = name
        user.updated_at = utcnow()
        self.store.users.save(user)
        logger.info("Updated profile for user %s", user.id[:8])
        return user
