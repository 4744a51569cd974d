"""Backends package: pluggable primary store implementations and their registry."""

from .base import PrimaryBackend  # noqa: F401
from .registry import BackendRegistry, build_backend  # noqa: F401
from .sql_backend import SQLBackend
from .supabase_backend import SupabaseBackend

BackendRegistry.register(SQLBackend.name, SQLBackend)
BackendRegistry.register(SupabaseBackend.name, SupabaseBackend)
