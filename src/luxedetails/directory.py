"""User registration, login and account management.

The whole user database lives under one key of the persistent store and is
rewritten on every mutation. The session store holds a snapshot of the
logged-in user's record; :meth:`UserDirectory.current_user` treats that
snapshot as a read-through cache keyed by username, so it is re-synced from
the database whenever the two disagree.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from pydantic import ValidationError

from .config import SESSION_KEY, STORAGE_KEY
from .models import UserRecord, dump_database, load_database
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """A rejected directory operation, carrying a user-facing message."""

    default_message = "Operation rejected."
    severity = "danger"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class UsernameTakenError(DirectoryError):
    default_message = "Username already exists!"


class InvalidCredentialsError(DirectoryError):
    default_message = "Invalid username or password."


class IncorrectPasswordError(DirectoryError):
    default_message = "Current password incorrect"


class NotLoggedInError(DirectoryError):
    default_message = "Not logged in."


def password_from_dob(dob: date) -> str:
    """Registration password derived from a date of birth, as ``DD-MM-YYYY``."""
    return dob.strftime("%d-%m-%Y")


class UserDirectory:
    """CRUD over user records plus the login session."""

    def __init__(self, local: KeyValueStore, session: KeyValueStore) -> None:
        self.local = local
        self.session = session

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserRecord]:
        raw = self.local.get_item(STORAGE_KEY)
        if not raw:
            return []
        try:
            return load_database(raw)
        except ValidationError:
            logger.warning("User database under %r is malformed; treating it as empty", STORAGE_KEY)
            return []

    def save_users(self, users: list[UserRecord]) -> None:
        self.local.set_item(STORAGE_KEY, dump_database(users))

    def find_user(self, username: str) -> Optional[UserRecord]:
        for user in self.list_users():
            if user.username == username:
                return user
        return None

    def register(self, username: str, password: str) -> UserRecord:
        users = self.list_users()
        if any(u.username == username for u in users):
            raise UsernameTakenError()

        user = UserRecord(username=username, password=password)
        users.append(user)
        self.save_users(users)
        logger.info("Registered user %r", username)
        return user

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> UserRecord:
        for user in self.list_users():
            if user.username == username and user.password == password:
                self._store_session(user)
                logger.info("User %r logged in", username)
                return user
        raise InvalidCredentialsError()

    def logout(self) -> None:
        self.session.remove_item(SESSION_KEY)

    def current_user(self) -> Optional[UserRecord]:
        snapshot = self._load_session()
        if snapshot is None:
            return None

        live = self.find_user(snapshot.username)
        if live is None:
            logger.info("Session user %r no longer exists; dropping session", snapshot.username)
            self.logout()
            return None
        if live != snapshot:
            self._store_session(live)
        return live

    def require_user(self) -> UserRecord:
        user = self.current_user()
        if user is None:
            raise NotLoggedInError()
        return user

    def change_password(self, current: str, new: str) -> UserRecord:
        user = self.require_user()
        if user.password != current:
            raise IncorrectPasswordError()

        users = self.list_users()
        for record in users:
            if record.username == user.username:
                record.password = new
        self.save_users(users)

        user.password = new
        self._store_session(user)
        logger.info("Password changed for %r", user.username)
        return user

    def remove_account(self, username: str, password: str, confirm: Callable[[], bool]) -> bool:
        """Delete the logged-in account once *confirm* returns true.

        Returns ``False`` when the confirmation is declined, in which case
        nothing is touched.
        """
        user = self.require_user()
        if username != user.username or password != user.password:
            raise InvalidCredentialsError("Username or Password incorrect.")

        if not confirm():
            return False

        self.save_users([u for u in self.list_users() if u.username != username])
        self.logout()
        logger.info("Removed account %r", username)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_session(self) -> Optional[UserRecord]:
        raw = self.session.get_item(SESSION_KEY)
        if not raw:
            return None
        try:
            return UserRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed session snapshot")
            self.logout()
            return None

    def _store_session(self, user: UserRecord) -> None:
        self.session.set_item(SESSION_KEY, user.model_dump_json(by_alias=True))
