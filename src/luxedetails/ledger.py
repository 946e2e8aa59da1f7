"""Per-user credential ledger (append-only)."""

from __future__ import annotations

from .directory import UserDirectory
from .models import CredentialEntry


class CredentialLedger:
    """Credential entries of the logged-in user.

    Entries are never edited or removed; they go away only with the account.
    """

    def __init__(self, directory: UserDirectory) -> None:
        self.directory = directory

    def append_entry(self, username: str, secret: str, purpose: str) -> CredentialEntry:
        owner = self.directory.require_user()
        users = self.directory.list_users()
        record = next(u for u in users if u.username == owner.username)

        entry = CredentialEntry(username=username, secret=secret, purpose=purpose)
        record.details.append(entry)
        self.directory.save_users(users)
        return entry

    def list_entries(self) -> list[CredentialEntry]:
        """Entries newest first."""
        return list(reversed(self.directory.require_user().details))
