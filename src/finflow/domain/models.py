"""Domain models for the finance API."""

import time
from datetime import date, datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def generate_record_id() -> str:
    """Time-based id in milliseconds. Not collision checked."""
    return str(int(time.time() * 1000))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_date() -> date:
    return datetime.now(timezone.utc).date()


def today() -> str:
    return utc_date().isoformat()


class Record(BaseModel):
    """Base for everything stored as a per-user sequence."""

    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class ChatMessage(Record):
    """One entry of a user's chat log."""

    id: str = Field(default_factory=generate_record_id)
    role: Literal["user", "bot"] = "user"
    content: str
    timestamp: str = Field(default_factory=utc_timestamp)


class Transaction(Record):
    """Transaction model."""

    id: str = Field(default_factory=generate_record_id)
    name: str
    amount: float
    category: str
    date: str = Field(default_factory=today)


class Loan(Record):
    """Loan model."""

    id: str = Field(default_factory=generate_record_id)
    type: str
    amount: float
    balance: float
    interest_rate: float = Field(alias="interestRate")
    due_date: str = Field(alias="dueDate")
    created_at: str = Field(default_factory=utc_timestamp, alias="createdAt")


class Document(Record):
    """Uploaded document metadata. File bytes live elsewhere."""

    id: str = Field(default_factory=generate_record_id)
    name: str
    size: int
    upload_date: str = Field(default_factory=utc_timestamp, alias="uploadDate")


class User(BaseModel):
    """User as reported by the identity provider."""

    id: str
    email: str
    name: Optional[str] = None


class Session(BaseModel):
    """Result of a successful sign-in."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    user: User


class CompletionMessage(BaseModel):
    """Role-tagged message in the gateway's protocol."""

    role: Literal["system", "user", "assistant"]
    content: str
