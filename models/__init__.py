"""SQLModel table models."""

from models.settings import Setting

__all__ = ["Setting"]
