"""
Bundle Extraction - recover {index.html, styles.css, script.js} from raw text

Pipeline:
- Scanner: string/comment-aware lexing and markup segmentation
- Normalizer + strict parser: repair and decode the embedded document
- Field extractor: read named values when no decoder accepts the text
- Completeness repairer: close truncated files
- Assembler: validate, strip external references, inline assets
- Orchestrator: strategy order and the fallback template
"""

from bundle_repair.services.bundle_extraction.assembler import assemble, reassemble
from bundle_repair.services.bundle_extraction.orchestrator import (
    BundleExtractor,
    bundle_extractor,
    extract_bundle,
)
from bundle_repair.services.bundle_extraction.templates import (
    AppTemplate,
    TemplateRegistry,
    default_registry,
)

__all__ = [
    "BundleExtractor",
    "bundle_extractor",
    "extract_bundle",
    "assemble",
    "reassemble",
    "AppTemplate",
    "TemplateRegistry",
    "default_registry",
]
