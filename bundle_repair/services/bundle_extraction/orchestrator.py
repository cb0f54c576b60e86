"""
Strategy Orchestrator - single entry point for bundle extraction

Strategies, tried in order:
- Structural: locate the document, normalize it, decode it strictly
- Manual: read each named field straight out of the text
- Fallback: a complete example application picked from the request text

The first strategy that recovers at least one file surviving repair and
validation wins; missing files, markup included, become safe defaults.
`extract` never raises; the worst outcome is the fallback bundle with
warnings explaining why.
"""

import time
from typing import Callable, List, Optional, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.exceptions import (
    BundleRepairError,
    DocumentDecodeError,
    InvalidBundleShapeError,
    NoDocumentRegionError,
    NothingRecoveredError,
    UnbalancedDocumentError,
)
from bundle_repair.core.logging_config import generate_request_id, logger, set_request_id
from bundle_repair.schemas.bundle import ExtractionResult, ExtractionStrategy
from bundle_repair.services.bundle_extraction.assembler import build_result, validate_bundle
from bundle_repair.services.bundle_extraction.completeness import repair_bundle
from bundle_repair.services.bundle_extraction.field_extractor import extract_files
from bundle_repair.services.bundle_extraction.models import RawBundle
from bundle_repair.services.bundle_extraction.normalizer import normalize_document
from bundle_repair.services.bundle_extraction.scanner import find_document_region, locate_document_starts
from bundle_repair.services.bundle_extraction.strict_parser import coerce_bundle, decode_document
from bundle_repair.services.bundle_extraction.templates import (
    TemplateRegistry,
    default_markup,
    default_registry,
)


class BundleExtractor:
    """
    Recover a file bundle from raw generator output.

    Usage:
        extractor = BundleExtractor()
        result = extractor.extract(raw_text, request_text="todo app", model="gpt-x")

        if result.warnings:
            print(f"Recovered with warnings: {result.warnings}")
    """

    def __init__(self, registry: Optional[TemplateRegistry] = None):
        """
        Args:
            registry: Fallback templates; the built-in set when omitted
        """
        self.registry = registry or default_registry()

    def extract(self, raw_text: str, request_text: str = "", model: Optional[str] = None) -> ExtractionResult:
        """
        Extract a bundle, falling back to a template when nothing is usable.

        Args:
            raw_text: Verbatim generator output
            request_text: Original request, used to pick a fallback template
            model: Model that produced the text; overrides any model named in it

        Returns:
            ExtractionResult that always holds a non-empty markup file
        """
        set_request_id(generate_request_id())
        raw_text = raw_text or ""
        start = time.time()

        strategies: List[Tuple[ExtractionStrategy, Callable[[str], RawBundle]]] = [
            (ExtractionStrategy.STRUCTURAL, self.try_structural),
            (ExtractionStrategy.MANUAL, self.try_manual),
        ]
        failures: List[str] = []

        try:
            for strategy, runner in strategies:
                try:
                    result = self._run_strategy(strategy, runner, raw_text, model)
                except BundleRepairError as e:
                    failures.append(f"{strategy.value}: {e.message}")
                    logger.log_strategy_event(strategy.value, "failed", error_code=e.code)
                    continue
                except Exception as e:
                    failures.append(f"{strategy.value}: unexpected {type(e).__name__}")
                    logger.log_error_with_context(e, context=f"{strategy.value} strategy")
                    continue

                logger.log_strategy_event(strategy.value, "accepted", warning_count=len(result.warnings))
                return result

            return self.fallback(request_text, model, failures)

        except Exception as e:
            # Fallback assembly itself failed; return the bare default document
            logger.log_error_with_context(e, context="fallback")
            return ExtractionResult(
                files={settings.MARKUP_FILE_NAME: default_markup()},
                used_model=model or settings.DEFAULT_MODEL_NAME,
                warnings=failures + ["Fallback template could not be assembled"],
                strategy=ExtractionStrategy.FALLBACK,
            )

        finally:
            logger.log_performance("bundle_extraction", (time.time() - start) * 1000, input_chars=len(raw_text))

    def _run_strategy(
        self,
        strategy: ExtractionStrategy,
        runner: Callable[[str], RawBundle],
        raw_text: str,
        model: Optional[str],
    ) -> ExtractionResult:
        bundle = runner(raw_text)
        bundle = validate_bundle(repair_bundle(bundle))
        if not bundle.has_recovered_files():
            raise NothingRecoveredError(strategy.value)
        return build_result(bundle, strategy, model)

    def try_structural(self, raw_text: str) -> RawBundle:
        """
        Locate, normalize and strictly decode the document.

        Raises:
            NoDocumentRegionError: nothing looks like a document start
            UnbalancedDocumentError / DocumentDecodeError / InvalidBundleShapeError:
                the last candidate's failure when none decodes
        """
        starts = locate_document_starts(raw_text)
        if not starts:
            raise NoDocumentRegionError()

        last_error: BundleRepairError = NoDocumentRegionError()
        for offset in starts:
            region = find_document_region(raw_text, offset)
            if region is None:
                last_error = UnbalancedDocumentError(offset)
                logger.debug(f"[Orchestrator] No closing bracket for candidate at {offset}")
                continue

            try:
                decoded = decode_document(normalize_document(region.slice(raw_text)))
                bundle = coerce_bundle(decoded)
            except (DocumentDecodeError, InvalidBundleShapeError) as e:
                last_error = e
                logger.debug(f"[Orchestrator] Candidate {region.start}-{region.end}: {e.message}")
                continue

            if not bundle.files:
                last_error = NothingRecoveredError(ExtractionStrategy.STRUCTURAL.value, "decoded document has no files")
                continue
            return bundle

        raise last_error

    def try_manual(self, raw_text: str) -> RawBundle:
        """Read fields directly from the text"""
        bundle = extract_files(raw_text)
        if not bundle.files:
            raise NothingRecoveredError(ExtractionStrategy.MANUAL.value, "no file fields found")
        return bundle

    def fallback(self, request_text: str = "", model: Optional[str] = None,
                 failures: Optional[List[str]] = None) -> ExtractionResult:
        """Assemble the template matching the request"""
        template = self.registry.match(request_text)
        logger.warning(f"[Orchestrator] Extraction failed, using fallback template '{template.name}'")

        bundle = RawBundle(
            metadata={"description": template.description, "instructions": template.instructions},
            warnings=[
                "Could not extract a file bundle from the generated response",
                *(failures or []),
                f"Using the built-in '{template.name}' template",
            ],
        )
        for kind, content in template.files().items():
            bundle.set(kind, content)

        return build_result(validate_bundle(bundle), ExtractionStrategy.FALLBACK, model)


# Singleton instance
bundle_extractor = BundleExtractor()


def extract_bundle(raw_text: str, request_text: str = "", model: Optional[str] = None) -> ExtractionResult:
    """Convenience function using the shared extractor"""
    return bundle_extractor.extract(raw_text, request_text=request_text, model=model)
