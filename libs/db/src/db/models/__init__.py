"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the tracker models used by ``expense_tracker``.
"""

from .tracker import Base, EtProfile, EtTransaction

__all__ = [
    "Base",
    "EtProfile",
    "EtTransaction",
]
