"""Local demo accounts: the user table.

This is a convenience login, not a credential system. Password digests are
unsalted. Who is signed in is carried per client by the signed session
cookie or bearer token, never stored server-side.
"""

import hashlib
import logging
from typing import Optional

from pydantic import BaseModel

from .errors import AuthError, InvalidRequestError, UserExistsError
from .storage import USERS_DB_KEY, KeyValueStore, read_json, write_json

logger = logging.getLogger(__name__)


class User(BaseModel):
    email: str
    name: str = ""
    is_admin: bool = False

    @property
    def id(self) -> str:
        return self.email

    @property
    def display_name(self) -> str:
        return self.name or self.email


def _digest(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class UserStore:
    def __init__(self, kv: KeyValueStore, admin_emails: Optional[list[str]] = None) -> None:
        self.kv = kv
        self.admin_emails = {e.lower() for e in (admin_emails or [])}

    def _load_db(self) -> dict[str, dict]:
        return read_json(self.kv, USERS_DB_KEY, default={}, expect=dict)

    def _make_user(self, email: str, record: dict) -> User:
        return User(
            email=email,
            name=record.get("name") or "",
            is_admin=email.lower() in self.admin_emails,
        )

    def get_user(self, email: str) -> Optional[User]:
        record = self._load_db().get(email)
        if not isinstance(record, dict):
            return None
        return self._make_user(email, record)

    def register(self, name: str, email: str, password: str) -> User:
        email = email.strip()
        if not email or not password:
            raise InvalidRequestError("Email and password are required")
        db = self._load_db()
        if email in db:
            raise UserExistsError("User already exists")
        db[email] = {"name": name.strip(), "password": _digest(password)}
        write_json(self.kv, USERS_DB_KEY, db)
        user = self._make_user(email, db[email])
        logger.info("Registered user %s", email)
        return user

    def login(self, email: str, password: str) -> User:
        email = email.strip()
        record = self._load_db().get(email)
        if not isinstance(record, dict):
            raise AuthError("User not found")
        if record.get("password") != _digest(password):
            raise AuthError("Invalid password")
        return self._make_user(email, record)
