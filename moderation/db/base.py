"""Declarative base for moderation database models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
