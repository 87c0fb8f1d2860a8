"""
Supabase client initialization and configuration.

This module provides a singleton Supabase client instance
for database and storage operations throughout the application.
"""

from typing import Optional
from supabase import create_client, Client
from engageperfect.core.config import settings
from engageperfect.core.logger import logger


class SupabaseClient:
    """Singleton wrapper for Supabase client."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the Supabase client instance.

        Returns:
            Supabase client instance

        Raises:
            ValueError: If required environment variables are missing
        """
        if cls._instance is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
                raise ValueError(
                    "Missing Supabase credentials. Please set SUPABASE_URL and "
                    "SUPABASE_ANON_KEY environment variables."
                )

            cls._instance = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
            logger.info("Supabase client initialized successfully")

        return cls._instance

    @classmethod
    def set_client(cls, client: Client):
        """Install a preconfigured client (e.g. one authenticated per request)."""
        cls._instance = client

    @classmethod
    def reset(cls):
        """Reset the client instance (useful for testing)."""
        cls._instance = None


# Convenience function for getting the client
def get_supabase() -> Client:
    """Get the Supabase client instance."""
    return SupabaseClient.get_client()
