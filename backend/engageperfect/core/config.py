"""
Application configuration settings.

Responsibilities:
- Load environment variables (and a local .env file when present)
- Name the Supabase bucket and table the pipeline writes to
- Hold API keys for the vision and chat-completion collaborators
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    PROJECT_NAME: str = "EngagePerfect"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: list = _csv(os.getenv("CORS_ORIGINS", "*"))

    # Supabase
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    MEDIA_BUCKET: str = os.getenv("MEDIA_BUCKET", "media")
    POSTS_TABLE: str = os.getenv("POSTS_TABLE", "posts")
    STORAGE_CACHE_CONTROL: str = os.getenv("STORAGE_CACHE_CONTROL", "3600")

    # Provisional platform written when the record is created at upload time
    PLACEHOLDER_PLATFORM: str = os.getenv("PLACEHOLDER_PLATFORM", "default")

    # Wizard sessions untouched for this long are dropped (0 disables)
    SESSION_IDLE_SECONDS: float = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))

    # Media handling
    CAMERA_DEVICE_INDEX: int = int(os.getenv("CAMERA_DEVICE_INDEX", "0"))
    JPEG_QUALITY: int = int(os.getenv("JPEG_QUALITY", "92"))

    # Caption generation (server side only)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    CAPTION_TEMPERATURE: float = float(os.getenv("CAPTION_TEMPERATURE", "0.7"))
    CAPTION_MAX_TOKENS: int = int(os.getenv("CAPTION_MAX_TOKENS", "1000"))

    # Vision analysis
    GOOGLE_VISION_API_KEY: str = os.getenv("GOOGLE_VISION_API_KEY", "")
    GOOGLE_VISION_ENDPOINT: str = os.getenv(
        "GOOGLE_VISION_ENDPOINT", "https://vision.googleapis.com/v1/images:annotate"
    )
    VISION_TIMEOUT_SECONDS: float = float(os.getenv("VISION_TIMEOUT_SECONDS", "30"))

    # Branding appended to shared and downloaded captions
    CAPTION_SIGNATURE: str = os.getenv("CAPTION_SIGNATURE", "Created with @EngagePerfect ✨")


settings = Settings()
