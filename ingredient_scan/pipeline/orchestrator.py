import logging
import time
from typing import List, Optional

from ingredient_scan.errors import ScanServiceError
from ingredient_scan.openai_client import InlineImage
from ingredient_scan.records import RecordStore
from ingredient_scan.schemas import AnalysisResult, ScanRecord, ScanStatus
from .analysis import AnalysisEngine
from .extraction import IngredientExtractor

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred during analysis"


def error_message_for(error: BaseException) -> str:
    if isinstance(error, ScanServiceError):
        return error.message
    return str(error) or DEFAULT_ERROR_MESSAGE


class PipelineOrchestrator:
    """
    Moves one scan record through the pipeline:

    processing --extraction--> analyzing --analysis--> complete
         \\                         \\
          +--> error                 +--> error

    Each transition is a single compare-and-swap write on the record's
    expected prior status. A failed analysis leaves ``extracted_ingredients``
    in place so the retry handler can re-enter at the analysis stage.
    """

    def __init__(
        self,
        records: RecordStore,
        extractor: IngredientExtractor,
        engine: AnalysisEngine,
    ):
        self.records = records
        self.extractor = extractor
        self.engine = engine

    def process(self, scan_id: str, image: InlineImage) -> AnalysisResult:
        total_start = time.time()
        logger.info("[PIPELINE] Starting scan %s", scan_id)

        # STEP 1: EXTRACTION
        extract_start = time.time()
        logger.info("[PIPELINE] Step 1: Starting ingredient extraction")
        ingredients = self.run_extraction(scan_id, image)
        extract_time = time.time() - extract_start
        logger.info(
            "[PIPELINE] Step 1: Extraction completed in %sms, found %s ingredients",
            round(extract_time * 1000, 2),
            len(ingredients),
        )

        # STEP 2: ANALYSIS
        analysis_start = time.time()
        logger.info("[PIPELINE] Step 2: Starting health analysis")
        result = self.run_analysis(scan_id, ingredients)
        analysis_time = time.time() - analysis_start
        logger.info(
            "[PIPELINE] Step 2: Analysis completed in %sms, score=%s",
            round(analysis_time * 1000, 2),
            result.score,
        )

        logger.info(
            "[PIPELINE] Scan %s complete, timings_ms=%s",
            scan_id,
            {
                "extraction_ms": round(extract_time * 1000, 2),
                "analysis_ms": round(analysis_time * 1000, 2),
                "total_ms": round((time.time() - total_start) * 1000, 2),
            },
        )
        return result

    def run_extraction(self, scan_id: str, image: InlineImage) -> List[str]:
        try:
            ingredients = self.extractor.extract(image)
        except Exception as e:
            logger.exception("[PIPELINE] Extraction failed for scan %s", scan_id)
            self.mark_failed(scan_id, e, expected_status=ScanStatus.PROCESSING)
            raise

        # ingredients and the analyzing status land in one write
        self.records.transition(
            scan_id,
            ScanStatus.PROCESSING,
            ScanStatus.ANALYZING,
            extracted_ingredients=ingredients,
        )
        return ingredients

    def run_analysis(self, scan_id: str, ingredients: List[str]) -> AnalysisResult:
        """Analysis stage; expects the record to already be ``analyzing``."""
        try:
            result = self.engine.analyze(ingredients)
        except Exception as e:
            logger.exception("[PIPELINE] Analysis failed for scan %s", scan_id)
            self.mark_failed(scan_id, e, expected_status=ScanStatus.ANALYZING)
            raise

        self.records.transition(
            scan_id,
            ScanStatus.ANALYZING,
            ScanStatus.COMPLETE,
            analysis_result=result,
        )
        return result

    def mark_failed(
        self,
        scan_id: str,
        error: BaseException,
        expected_status: Optional[ScanStatus] = None,
    ) -> Optional[ScanRecord]:
        """
        Record ``error`` on a scan that is still in flight.

        Without ``expected_status`` the current status is read first; scans
        already in ``error`` or ``complete`` are left alone.
        """
        if expected_status is None:
            try:
                current = self.records.get(scan_id)
            except ScanServiceError:
                logger.exception("Failed to read scan %s before recording error", scan_id)
                return None
            if current is None:
                logger.error("Cannot mark missing scan %s as failed", scan_id)
                return None
            if current.status not in (ScanStatus.PROCESSING, ScanStatus.ANALYZING):
                return current
            expected_status = current.status

        try:
            return self.records.transition(
                scan_id,
                expected_status,
                ScanStatus.ERROR,
                error_message=error_message_for(error),
            )
        except ScanServiceError:
            logger.exception("Failed to record error state for scan %s", scan_id)
            return None
