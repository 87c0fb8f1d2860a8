"""
Database helper functions for writing to Supabase tables.

Provides clean interfaces for inserting and updating post records
throughout the post-creation flow.
"""

from typing import Dict, List, Optional
from engageperfect.core.config import settings
from engageperfect.core.supabase_client import get_supabase
from engageperfect.core.logger import logger


class DatabaseManager:
    """Handles all database operations for posts."""

    TABLE_POSTS = settings.POSTS_TABLE

    # ==================== POST LIFECYCLE ====================

    @staticmethod
    def create_post(image_url: str, user_id: str, platform: str) -> Dict:
        """
        Create a new post entry pointing at stored media.

        Args:
            image_url: Public URL of the stored media
            user_id: Owner of the post
            platform: Target platform (a placeholder until the wizard completes)

        Returns:
            The inserted row, including its generated id
        """
        supabase = get_supabase()

        data = {
            "image_url": image_url,
            "platform": platform,
            "user_id": user_id,
        }

        response = supabase.table(DatabaseManager.TABLE_POSTS).insert(data).execute()
        if not response.data:
            raise RuntimeError("Insert returned no row")

        post = response.data[0]
        logger.info(f"Created post {post['id']} for user {user_id}")
        return post

    @staticmethod
    def update_post_settings(post_id: str, platform: str, niche: str, goal: str, tone: str):
        """Write the wizard selections onto an existing post."""
        supabase = get_supabase()

        data = {
            "platform": platform,
            "niche": niche,
            "goal": goal,
            "tone": tone,
        }

        supabase.table(DatabaseManager.TABLE_POSTS).update(data).eq("id", post_id).execute()
        logger.info(f"Post {post_id} settings saved ({platform}, {niche}, {goal}, {tone})")

    @staticmethod
    def update_selected_caption(post_id: str, caption: str, hashtags: Optional[List[str]] = None):
        """Store the caption the user picked (possibly edited)."""
        supabase = get_supabase()

        data = {"selected_caption": caption, "hashtags": hashtags or []}

        supabase.table(DatabaseManager.TABLE_POSTS).update(data).eq("id", post_id).execute()
        logger.info(f"Post {post_id} caption saved")

    # ==================== QUERIES ====================

    @staticmethod
    def get_post(post_id: str) -> Optional[Dict]:
        """Retrieve post details."""
        supabase = get_supabase()
        response = supabase.table(DatabaseManager.TABLE_POSTS).select("*").eq("id", post_id).execute()
        return response.data[0] if response.data else None

    @staticmethod
    def list_posts(user_id: str, limit: int = 50) -> List[Dict]:
        """Most recent posts for a user."""
        supabase = get_supabase()
        response = supabase.table(DatabaseManager.TABLE_POSTS)\
            .select("*")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .limit(limit)\
            .execute()
        return response.data
