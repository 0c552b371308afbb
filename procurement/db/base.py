"""Declarative base shared by all procurement models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
