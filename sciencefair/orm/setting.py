"""
sciencefair/orm/setting.py
Durable key-value settings store.

Keys are plain strings; callers should go through
services.settings_repository rather than building keys by hand.
"""
from sqlalchemy import Column, String, Text

from sciencefair.orm.base import BaseModel


class Setting(BaseModel):
    __tablename__ = "settings"

    key = Column(String(255), nullable=False, unique=True, index=True)
    value = Column(Text, nullable=True)
