# Pydantic schemas
from bundle_repair.schemas.bundle import (
    ExtractionResult,
    ExtractionStrategy,
    FileKind,
    canonical_file_names,
    file_name_aliases,
)
