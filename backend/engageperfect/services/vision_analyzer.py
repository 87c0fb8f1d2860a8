"""
Image analysis with the Google Cloud Vision REST API.

Sends the image as base64 content with label, colour, face, object,
landmark and safe-search features, and maps the annotations onto the
ImageAnalysis schema.
"""

import base64
from typing import Any, Dict, Optional

import requests

from engageperfect.core.config import settings
from engageperfect.core.exceptions import UpstreamFailed
from engageperfect.core.logger import logger
from engageperfect.models.analysis_models import (
    ContextSection,
    DetectedObject,
    DominantColor,
    EnvironmentSection,
    FaceMood,
    ImageAnalysis,
    Label,
    Landmark,
    MoodSection,
)

FEATURES = [
    {"type": "LABEL_DETECTION", "maxResults": 10},
    {"type": "IMAGE_PROPERTIES"},
    {"type": "FACE_DETECTION"},
    {"type": "OBJECT_LOCALIZATION"},
    {"type": "LANDMARK_DETECTION"},
    {"type": "SAFE_SEARCH_DETECTION"},
]


def _percent(score: Optional[float]) -> float:
    return round((score or 0.0) * 100, 1)


def parse_annotations(result: Dict[str, Any]) -> ImageAnalysis:
    """Convert one `responses[]` entry into an ImageAnalysis."""
    colors = result.get("imagePropertiesAnnotation", {}).get("dominantColors", {}).get("colors", [])

    environment = EnvironmentSection(
        labels=[
            Label(description=label["description"], confidence=_percent(label.get("score")))
            for label in result.get("labelAnnotations", [])
        ],
        colors=[
            DominantColor(
                rgb="rgb({}, {}, {})".format(
                    int(c["color"].get("red", 0)),
                    int(c["color"].get("green", 0)),
                    int(c["color"].get("blue", 0)),
                ),
                score=_percent(c.get("score")),
            )
            for c in colors
        ],
    )

    context = ContextSection(
        objects=[
            DetectedObject(name=obj["name"], confidence=_percent(obj.get("score")))
            for obj in result.get("localizedObjectAnnotations", [])
        ],
        landmarks=[
            Landmark(name=lm["description"], confidence=_percent(lm.get("score")))
            for lm in result.get("landmarkAnnotations", [])
        ],
    )

    mood = MoodSection(
        faces=[
            FaceMood(
                joy=face.get("joyLikelihood", "UNKNOWN"),
                sorrow=face.get("sorrowLikelihood", "UNKNOWN"),
                anger=face.get("angerLikelihood", "UNKNOWN"),
                surprise=face.get("surpriseLikelihood", "UNKNOWN"),
            )
            for face in result.get("faceAnnotations", [])
        ],
        safety={k: str(v) for k, v in result.get("safeSearchAnnotation", {}).items()},
    )

    return ImageAnalysis(sections=[environment, context, mood])


class VisionAnalyzer:
    """Thin client for the Vision `images:annotate` endpoint."""

    def __init__(self, api_key: str = None, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_VISION_API_KEY
        self.session = session or requests.Session()

    def analyze(self, image_data: bytes) -> ImageAnalysis:
        """
        Analyze raw image bytes.

        Raises:
            UpstreamFailed: Missing key, HTTP error, API error or
                malformed response
        """
        if not self.api_key:
            raise UpstreamFailed("Google Vision API key is not configured")

        payload = {
            "requests": [{
                "image": {"content": base64.b64encode(image_data).decode("ascii")},
                "features": FEATURES,
            }]
        }

        try:
            response = self.session.post(
                settings.GOOGLE_VISION_ENDPOINT,
                params={"key": self.api_key},
                json=payload,
                timeout=settings.VISION_TIMEOUT_SECONDS,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Vision request failed: {str(e)}")
            raise UpstreamFailed("Vision analysis request failed", cause=e) from e

        if not isinstance(data, dict):
            logger.error(f"Vision API returned a non-object body ({response.status_code}): {data!r}")
            raise UpstreamFailed("Malformed vision response")

        if "error" in data:
            message = data["error"].get("message", "unknown error")
            logger.error(f"Vision API error ({response.status_code}): {message}")
            raise UpstreamFailed(f"Vision analysis failed: {message}")

        if not response.ok:
            raise UpstreamFailed(f"Vision analysis failed with HTTP {response.status_code}")

        try:
            result = data["responses"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamFailed("Malformed vision response", cause=e) from e

        if "error" in result:
            raise UpstreamFailed(f"Vision analysis failed: {result['error'].get('message', 'unknown error')}")

        try:
            analysis = parse_annotations(result)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamFailed("Malformed vision annotations", cause=e) from e

        logger.info(f"Vision analysis: {len(analysis.section('environment').labels)} labels")
        return analysis
