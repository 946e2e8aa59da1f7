"""Domain models for luxedetails."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class CredentialEntry(BaseModel):
    """One tracked external login stored under a user.

    The secret is stored under the JSON key ``pass``; ``pass`` is a Python
    keyword, so the attribute is called ``secret``.
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str
    secret: str = Field(alias="pass")
    purpose: str


class UserRecord(BaseModel):
    """A registered account and its credential ledger."""

    username: str
    password: str
    details: list[CredentialEntry] = Field(default_factory=list)


Database = TypeAdapter(list[UserRecord])


def dump_database(users: list[UserRecord]) -> str:
    return Database.dump_json(users, by_alias=True).decode("utf-8")


def load_database(raw: str) -> list[UserRecord]:
    return Database.validate_json(raw)
