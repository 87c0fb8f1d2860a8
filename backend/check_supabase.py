"""
Checks that the Supabase project is ready for the post-creation flow.

Verifies credentials, the posts table, the media bucket, and a full
upload -> insert -> settings update -> cleanup round against the live
project.

Usage:
    python check_supabase.py
"""

import os
import sys
import uuid
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv


def check_environment():
    """Required environment variables are set."""
    print("=" * 60)
    print("CHECK 1: Environment Variables")
    print("=" * 60)

    missing = []
    for var in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "OPENAI_API_KEY", "GOOGLE_VISION_API_KEY"):
        value = os.getenv(var)
        if value:
            # Mask the key
            print(f"✅ {var}: {value[:12]}...")
        else:
            print(f"❌ {var}: NOT SET")
            missing.append(var)

    if {"SUPABASE_URL", "SUPABASE_ANON_KEY"} & set(missing):
        print("\n❌ Supabase credentials missing. Add them to backend/.env")
        return False

    if missing:
        print("\n⚠️  Captions or analysis will fail until the missing keys are set.\n")
    else:
        print("\n✅ All environment variables set!\n")
    return True


def check_posts_table():
    print("=" * 60)
    print("CHECK 2: Posts Table")
    print("=" * 60)

    from engageperfect.core.config import settings
    from engageperfect.core.supabase_client import get_supabase

    try:
        response = get_supabase().table(settings.POSTS_TABLE).select("id").limit(1).execute()
    except Exception as e:
        print(f"❌ Table '{settings.POSTS_TABLE}' not reachable: {str(e)}")
        print("Create it with columns id, image_url, platform, niche, goal, tone,")
        print("user_id, selected_caption, hashtags and created_at.")
        return False

    print(f"✅ Table '{settings.POSTS_TABLE}' exists ({len(response.data)} row sampled)\n")
    return True


def check_media_bucket():
    print("=" * 60)
    print("CHECK 3: Media Bucket")
    print("=" * 60)

    from engageperfect.core.config import settings
    from engageperfect.core.supabase_client import get_supabase

    try:
        get_supabase().storage.from_(settings.MEDIA_BUCKET).list()
    except Exception as e:
        print(f"❌ Bucket '{settings.MEDIA_BUCKET}' not reachable: {str(e)}")
        print("Create it in Supabase Storage and make it public.")
        return False

    print(f"✅ Bucket '{settings.MEDIA_BUCKET}' exists\n")
    return True


def check_round_trip():
    """Upload a tiny image, register it, save settings, then clean up."""
    print("=" * 60)
    print("CHECK 4: Upload Round Trip")
    print("=" * 60)

    import io

    from PIL import Image

    from engageperfect.core.config import settings
    from engageperfect.core.database import DatabaseManager
    from engageperfect.core.storage import StorageManager
    from engageperfect.core.supabase_client import get_supabase
    from engageperfect.services.upload_coordinator import build_storage_key

    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), "white").save(buffer, format="PNG")
    key = build_storage_key("check.png", "image/png")
    client = get_supabase()
    post_id = None

    try:
        StorageManager.upload_file(key, buffer.getvalue(), "image/png")
        print(f"✅ Uploaded {key}")

        url = StorageManager.get_public_url(key)
        post = DatabaseManager.create_post(url, str(uuid.uuid4()), settings.PLACEHOLDER_PLATFORM)
        post_id = post["id"]
        print(f"✅ Created post {post_id}")

        DatabaseManager.update_post_settings(post_id, "Instagram", "Testing", "Sales", "Casual")
        if DatabaseManager.get_post(post_id)["platform"] != "Instagram":
            print("❌ Settings update was not stored")
            return False
        print("✅ Saved post settings")
    except Exception as e:
        print(f"❌ Round trip failed: {str(e)}")
        return False
    finally:
        if post_id:
            client.table(settings.POSTS_TABLE).delete().eq("id", post_id).execute()
        client.storage.from_(settings.MEDIA_BUCKET).remove([key])
        print("Cleaned up check data")

    print("\n✅ Upload round trip working!\n")
    return True


def run_all_checks():
    print("\n" + "=" * 60)
    print("ENGAGEPERFECT SUPABASE CHECK")
    print("=" * 60 + "\n")

    results = [("Environment Variables", check_environment())]

    if results[-1][1]:
        results.append(("Posts Table", check_posts_table()))
        results.append(("Media Bucket", check_media_bucket()))
        if all(passed for _, passed in results):
            results.append(("Upload Round Trip", check_round_trip()))

    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    for name, passed in results:
        print(f"{'✅ PASS' if passed else '❌ FAIL'}: {name}")

    all_passed = all(passed for _, passed in results)
    print("\n" + "=" * 60)
    if all_passed:
        print("🎉 ALL CHECKS PASSED!")
        print("Start the backend: uvicorn engageperfect.main:app --reload")
    else:
        print("❌ SOME CHECKS FAILED")
    print("=" * 60 + "\n")
    return all_passed


if __name__ == "__main__":
    load_dotenv()
    sys.exit(0 if run_all_checks() else 1)
