"""Persistence interface and implementations."""

from clinic_ops.store.base import ClinicStore
from clinic_ops.store.memory import InMemoryClinicStore
from clinic_ops.store.sql import SqlClinicStore

__all__ = ["ClinicStore", "InMemoryClinicStore", "SqlClinicStore"]
