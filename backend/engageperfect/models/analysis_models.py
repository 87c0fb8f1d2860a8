"""
Response models for image analysis.

Responsibilities:
- Give every analysis section an explicit schema
- Discriminate sections by their `kind`
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class Label(BaseModel):
    description: str
    confidence: float = Field(..., description="Score as a percentage (0-100)")


class DominantColor(BaseModel):
    rgb: str = Field(..., description="CSS rgb() string")
    score: float = Field(..., description="Pixel fraction as a percentage (0-100)")


class DetectedObject(BaseModel):
    name: str
    confidence: float


class Landmark(BaseModel):
    name: str
    confidence: float


class FaceMood(BaseModel):
    joy: str = "UNKNOWN"
    sorrow: str = "UNKNOWN"
    anger: str = "UNKNOWN"
    surprise: str = "UNKNOWN"


class EnvironmentSection(BaseModel):
    kind: Literal["environment"] = "environment"
    labels: List[Label] = []
    colors: List[DominantColor] = []


class ContextSection(BaseModel):
    kind: Literal["context"] = "context"
    objects: List[DetectedObject] = []
    landmarks: List[Landmark] = []


class MoodSection(BaseModel):
    kind: Literal["mood"] = "mood"
    faces: List[FaceMood] = []
    safety: Dict[str, str] = Field(default_factory=dict, description="Safe-search likelihood per category")


AnalysisSection = Annotated[
    Union[EnvironmentSection, ContextSection, MoodSection],
    Field(discriminator="kind"),
]


class ImageAnalysis(BaseModel):
    """Full analysis of one image."""
    sections: List[AnalysisSection]

    def section(self, kind: str) -> Optional[BaseModel]:
        return next((s for s in self.sections if s.kind == kind), None)

    def summary(self) -> Dict[str, List[str]]:
        """Compact view used as caption-prompt image metadata."""
        environment = self.section("environment")
        context = self.section("context")
        return {
            "labels": [label.description for label in environment.labels] if environment else [],
            "objects": [obj.name for obj in context.objects] if context else [],
            "landmarks": [lm.name for lm in context.landmarks] if context else [],
        }
