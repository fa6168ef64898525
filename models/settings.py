"""Persisted key/value settings (provider credentials live here)."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Setting(SQLModel, table=True):
    """
    One namespaced setting, e.g. ``curseforge.apiKey``.

    ``updated_by`` records the acting user of the last write.
    """

    key: str = Field(primary_key=True, max_length=255)
    value: str
    updated_by: Optional[str] = Field(default=None, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
