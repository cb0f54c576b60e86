from bundle_repair.services.bundle_extraction import (
    BundleExtractor,
    bundle_extractor,
    extract_bundle,
)

__all__ = [
    "BundleExtractor",
    "bundle_extractor",
    "extract_bundle",
]
