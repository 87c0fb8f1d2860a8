"""
Caption generation via OpenAI chat completions.

Builds the caption prompt from the post settings and image metadata,
asks the model for three captions and splits the answer into separate
captions. The API key only ever lives on the server.
"""

import json
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI

from engageperfect.core.config import settings
from engageperfect.core.exceptions import UpstreamFailed
from engageperfect.core.logger import logger

CAPTION_COUNT = 3

SYSTEM_PROMPT = "You are a professional social media content creator."

PLATFORM_CHARACTER_LIMITS = {
    "Instagram": 2200,
    "Twitter": 280,
    "LinkedIn": 3000,
    "Facebook": 63206,
    "TikTok": 2200,
}

# Captions are separated by blank lines, or by a newline before "N."
_CAPTION_BOUNDARY = re.compile(r"\n\n|\n(?=\d\.)")
_LEADING_NUMBER = re.compile(r"^\d\.\s*")


def build_prompt(platform: str, niche: str, goal: str, tone: str, image_metadata: Optional[Dict[str, Any]] = None) -> str:
    limit = PLATFORM_CHARACTER_LIMITS.get(platform)
    limit_hint = f"{platform}: {limit} characters" if limit else "Instagram: 2200 characters, Twitter: 280 characters"

    return f"""You are the world's leading content creator and digital marketing expert with 20 years of hands-on experience. Your goal is to create {CAPTION_COUNT} detailed and creative social media post captions for the {niche} industry, designed to achieve the goal of {goal} in a {tone} tone, taking into consideration the following image context: {json.dumps(image_metadata or {})}.

The captions must:
1. Be concise and meet {platform}'s character limits ({limit_hint}).
2. Incorporate hashtags that are highly relevant to the {niche} industry to maximize visibility and engagement.
3. Include an optional, effective call-to-action to inspire engagement (e.g., "Comment below," "Tag a friend," "Share your thoughts").
4. Reflect current trends, use platform-specific language, and include emojis where appropriate.

[A creative, catchy title highlighting the post's theme in bold.]
[A 1-2 sentence caption in a {tone} tone, including hashtags and a clear, actionable CTA.]

[Another engaging and unique title in bold.]
[An attention-grabbing caption that resonates with {platform}'s audience, with relevant hashtags and a compelling CTA.]

[A third compelling title in bold.]
[A brief but impactful caption using hashtags in a {tone} tone, with a CTA encouraging sharing.]

Important notes:
- Keep each caption separate, as a paragraph ready to be shared.
- Captions must be practical, innovative, and tailored to the {niche} industry.
- Follow the latest content best practices for {platform}.
"""


def split_captions(text: str, count: int = CAPTION_COUNT) -> List[str]:
    """Split a model answer into at most `count` captions."""
    parts = (_LEADING_NUMBER.sub("", part.strip()) for part in _CAPTION_BOUNDARY.split(text or ""))
    return [part.strip() for part in parts if part.strip()][:count]


class CaptionGenerator:
    """Generates captions for a post's platform, niche, goal and tone."""

    def __init__(self, client: Optional[OpenAI] = None, model: str = None):
        self._client = client
        self.model = model or settings.OPENAI_MODEL

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise UpstreamFailed("OpenAI API key is not configured")
            self._client = OpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    def generate(
        self,
        platform: str,
        niche: str,
        goal: str,
        tone: str,
        image_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """
        Ask the model for captions.

        Returns:
            Exactly three distinct, non-empty captions

        Raises:
            UpstreamFailed: API error, empty answer, or fewer than three
                distinct captions
        """
        prompt = build_prompt(platform, niche, goal, tone, image_metadata)
        logger.info(f"Generating captions for {platform} / {niche} / {goal} / {tone}")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=settings.CAPTION_TEMPERATURE,
                max_tokens=settings.CAPTION_MAX_TOKENS,
            )
        except UpstreamFailed:
            raise
        except Exception as e:
            logger.error(f"OpenAI request failed: {str(e)}")
            raise UpstreamFailed("Failed to generate captions", cause=e) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise UpstreamFailed("Malformed caption response", cause=e) from e

        captions = split_captions(content or "")
        if len(set(captions)) < CAPTION_COUNT:
            logger.error(f"Model returned {len(set(captions))} distinct caption(s): {content!r}")
            raise UpstreamFailed(f"Expected {CAPTION_COUNT} captions, got {len(set(captions))}")

        logger.info(f"Generated {len(captions)} captions")
        return captions
