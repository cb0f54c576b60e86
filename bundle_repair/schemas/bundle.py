"""
Pydantic schemas for extracted file bundles
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bundle_repair.core.config import settings


class FileKind(str, Enum):
    """Kinds of file a bundle can hold"""
    MARKUP = "markup"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"


class ExtractionStrategy(str, Enum):
    """Which strategy produced the bundle"""
    STRUCTURAL = "structural"
    MANUAL = "manual"
    FALLBACK = "fallback"


def canonical_file_names() -> Dict[FileKind, str]:
    """Canonical file name per kind, in bundle order"""
    return {
        FileKind.MARKUP: settings.MARKUP_FILE_NAME,
        FileKind.STYLESHEET: settings.STYLESHEET_FILE_NAME,
        FileKind.SCRIPT: settings.SCRIPT_FILE_NAME,
    }


def file_name_aliases() -> Dict[str, FileKind]:
    """Every accepted name (canonical names first) mapped to its kind"""
    aliases: Dict[str, FileKind] = {name: kind for kind, name in canonical_file_names().items()}
    for name in settings.STYLESHEET_ALIASES:
        aliases.setdefault(name, FileKind.STYLESHEET)
    # Flat {"html", "css", "js"} responses
    aliases.setdefault("html", FileKind.MARKUP)
    aliases.setdefault("css", FileKind.STYLESHEET)
    aliases.setdefault("js", FileKind.SCRIPT)
    return aliases


class ExtractionResult(BaseModel):
    """Always-valid bundle returned by the extraction engine"""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    files: Dict[str, str] = Field(..., description="Canonical file name -> content")
    description: str = Field(default="AI generated application", description="What the app does")
    instructions: str = Field(default="Open index.html in a browser to use the application", description="Usage notes")
    framework: str = Field(default="Vanilla JavaScript", description="Framework used")
    language: str = Field(default="JavaScript", description="Script language")
    styling: str = Field(default="CSS", description="Styling approach")
    used_model: str = Field(default="unknown", alias="usedModel", description="Model that generated the raw text")
    warnings: List[str] = Field(default_factory=list, description="Soft defects found while extracting")
    strategy: ExtractionStrategy = Field(default=ExtractionStrategy.STRUCTURAL, description="Strategy that produced the bundle")

    @field_validator('files')
    @classmethod
    def markup_must_be_present(cls, v: Dict[str, str]) -> Dict[str, str]:
        markup_name = settings.MARKUP_FILE_NAME
        if not v.get(markup_name, "").strip():
            raise ValueError(f"{markup_name} must be present and non-empty")
        return v

    @property
    def markup(self) -> str:
        return self.files[settings.MARKUP_FILE_NAME]

    @property
    def stylesheet(self) -> str:
        return self.files.get(settings.STYLESHEET_FILE_NAME, "")

    @property
    def script(self) -> str:
        return self.files.get(settings.SCRIPT_FILE_NAME, "")

    def to_transport(self) -> Dict:
        """Transport shape consumed by the web layer (camelCase model field)"""
        return self.model_dump(by_alias=True, mode="json")
