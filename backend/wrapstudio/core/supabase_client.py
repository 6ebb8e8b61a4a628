"""
Shared Supabase client for the artifact store.

The client is created from settings on first use and reused by every
SupabaseStore that is not handed its own client.
"""

from typing import Optional
from supabase import create_client, Client
from wrapstudio.core.config import settings
from wrapstudio.core.logger import logger


class SupabaseClient:
    """Process-wide holder for the artifact store's client."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Raises:
            ValueError: SUPABASE_URL or SUPABASE_ANON_KEY is not configured
        """
        if cls._instance is None:
            url, key = settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY
            if not url or not key:
                raise ValueError(
                    "Artifact store is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY."
                )
            cls._instance = create_client(url, key)
            logger.info(f"Artifact store connected to {url}")

        return cls._instance

    @classmethod
    def reset(cls):
        """Drop the cached client so the next call reconnects with current settings."""
        cls._instance = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()
