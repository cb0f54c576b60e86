"""
Custom Exceptions for Bundle Repair
===================================

These are raised by individual extraction strategies and caught by the
orchestrator, which turns every one of them into "try the next strategy".
Nothing here is ever raised to the caller of `extract_bundle`.

Usage:
    from bundle_repair.core.exceptions import DocumentDecodeError

    try:
        decoded = decode_document(repaired)
    except DocumentDecodeError as e:
        logger.debug(f"Strict parse failed: {e}")
"""

from typing import Optional, Any, Dict


class BundleRepairError(Exception):
    """Base exception for all bundle repair errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Structural strategy errors
# ============================================

class NoDocumentRegionError(BundleRepairError):
    """No opening bracket that could start a document was found"""

    def __init__(self, message: str = "No document region found in response"):
        super().__init__(message, code="NO_DOCUMENT_REGION")


class UnbalancedDocumentError(BundleRepairError):
    """A document start was found but its closing bracket was not"""

    def __init__(self, start: int):
        super().__init__(
            f"No matching closing bracket for document starting at offset {start}",
            code="UNBALANCED_DOCUMENT",
            details={"start": start}
        )


class DocumentDecodeError(BundleRepairError):
    """Repaired document still failed strict decoding"""

    def __init__(self, reason: str, position: Optional[int] = None):
        super().__init__(
            f"Strict decode failed: {reason}",
            code="DOCUMENT_DECODE_FAILED",
            details={"reason": reason, "position": position}
        )


class InvalidBundleShapeError(BundleRepairError):
    """Document decoded but does not have the expected bundle shape"""

    def __init__(self, reason: str):
        super().__init__(
            f"Decoded document is not a file bundle: {reason}",
            code="INVALID_BUNDLE_SHAPE",
            details={"reason": reason}
        )


# ============================================
# Acceptance errors
# ============================================

class NothingRecoveredError(BundleRepairError):
    """Strategy finished without recovering any file from the text"""

    def __init__(self, strategy: str, reason: str = "no file recovered"):
        super().__init__(
            f"{strategy} strategy recovered nothing usable: {reason}",
            code="NOTHING_RECOVERED",
            details={"strategy": strategy, "reason": reason}
        )
