"""Vendor API clients (Supabase auth and tables)."""

from .supabase_auth import SupabaseAuthClient
from .supabase_rest import SupabaseRestClient, eq, in_

__all__ = ['SupabaseAuthClient', 'SupabaseRestClient', 'eq', 'in_']
