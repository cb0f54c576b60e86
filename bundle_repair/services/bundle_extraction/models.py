"""
Working types shared by the extraction stages.

None of these outlive a single `extract` call.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from bundle_repair.schemas.bundle import FileKind, canonical_file_names


METADATA_FIELDS = ("description", "instructions", "framework", "language", "styling", "usedModel")


@dataclass(frozen=True)
class CandidateRegion:
    """Located document-like region; `end` is the offset of the closing bracket"""
    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start:self.end + 1]


@dataclass(frozen=True)
class FieldSpan:
    """Raw (still escaped) value read from the text"""
    content: str
    end: int
    terminated: bool


@dataclass
class RepairOutcome:
    """Result of repairing one file"""
    content: str
    actions: List[str] = field(default_factory=list)
    replaced: bool = False


@dataclass
class RawBundle:
    """Bundle as recovered by a strategy, before validation and assembly"""
    files: Dict[str, str] = field(default_factory=dict)
    truncated: Set[str] = field(default_factory=set)
    replaced: Set[str] = field(default_factory=set)
    metadata: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def get(self, kind: FileKind) -> Optional[str]:
        return self.files.get(canonical_file_names()[kind])

    def set(self, kind: FileKind, content: str, truncated: bool = False) -> None:
        name = canonical_file_names()[kind]
        self.files[name] = content
        if truncated:
            self.truncated.add(name)
        else:
            self.truncated.discard(name)

    def has_recovered_files(self) -> bool:
        """At least one file came from the text itself and was not swapped for a default"""
        return any(
            content.strip() and name not in self.replaced
            for name, content in self.files.items()
        )

    def ordered_files(self) -> Dict[str, str]:
        """Files in canonical order"""
        ordered = {}
        for name in canonical_file_names().values():
            if name in self.files:
                ordered[name] = self.files[name]
        return ordered
