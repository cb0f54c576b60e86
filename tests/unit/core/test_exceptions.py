"""
Unit Tests for Custom Exceptions
"""
import pytest

from bundle_repair.core.exceptions import (
    BundleRepairError,
    DocumentDecodeError,
    InvalidBundleShapeError,
    NoDocumentRegionError,
    NothingRecoveredError,
    UnbalancedDocumentError,
)


class TestBundleRepairError:
    """Tests for the base exception"""

    def test_defaults(self):
        """Test default code and details"""
        error = BundleRepairError("Something broke")

        assert str(error) == "Something broke"
        assert error.code == "INTERNAL_ERROR"
        assert error.details == {}

    def test_to_dict(self):
        """Test serialisation"""
        error = BundleRepairError("msg", code="X", details={"a": 1})

        assert error.to_dict() == {"code": "X", "message": "msg", "details": {"a": 1}}


class TestStrategyErrors:
    """Tests for strategy-level exceptions"""

    @pytest.mark.parametrize("error,code", [
        (NoDocumentRegionError(), "NO_DOCUMENT_REGION"),
        (UnbalancedDocumentError(12), "UNBALANCED_DOCUMENT"),
        (DocumentDecodeError("Expecting value", position=3), "DOCUMENT_DECODE_FAILED"),
        (InvalidBundleShapeError("top level is a list"), "INVALID_BUNDLE_SHAPE"),
        (NothingRecoveredError("manual"), "NOTHING_RECOVERED"),
    ])
    def test_codes(self, error, code):
        """Test every error is a BundleRepairError with its own code"""
        assert isinstance(error, BundleRepairError)
        assert error.code == code

    def test_unbalanced_details(self):
        """Test the start offset is kept"""
        assert UnbalancedDocumentError(12).details == {"start": 12}

    def test_decode_details(self):
        """Test reason and position are kept"""
        error = DocumentDecodeError("Expecting value", position=3)

        assert error.details == {"reason": "Expecting value", "position": 3}
        assert "Expecting value" in error.message

    def test_nothing_recovered_message(self):
        """Test the strategy name appears in the message"""
        error = NothingRecoveredError("structural", "decoded document has no files")

        assert error.message.startswith("structural strategy")
        assert error.details["reason"] == "decoded document has no files"
