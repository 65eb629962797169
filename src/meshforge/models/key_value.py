"""KeyValueEntry entity - Flat key-value store for serialized history lists."""

from datetime import datetime, timezone

from pydantic import field_validator
from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class KeyValueEntry(SQLModel, table=True):
    """KeyValueEntry holds one serialized value under a fixed key."""

    __tablename__ = "key_value_entries"  # type: ignore[assignment]

    key: str = Field(primary_key=True, max_length=255)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate key is alphanumeric with dashes or underscores only."""
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Key must be alphanumeric with dashes or underscores only")
        return v
