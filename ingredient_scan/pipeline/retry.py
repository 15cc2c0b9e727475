import logging
from typing import Optional

from ingredient_scan.errors import (
    FailedPrecondition,
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ScanServiceError,
)
from ingredient_scan.records import RecordStore
from ingredient_scan.schemas import AnalysisResult, ScanStatus
from .orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


class RetryHandler:
    """Re-run the analysis stage of a failed scan with its stored ingredients."""

    def __init__(self, records: RecordStore, orchestrator: PipelineOrchestrator):
        self.records = records
        self.orchestrator = orchestrator

    def retry(self, scan_id: Optional[str], requesting_user_id: str) -> AnalysisResult:
        if not scan_id:
            raise InvalidArgument("Scan ID is required")

        record = self.records.get(scan_id)
        if record is None:
            raise NotFound("Scan not found")
        if record.owner_id != requesting_user_id:
            raise PermissionDenied("You do not have permission to retry this scan")
        if record.status is not ScanStatus.ERROR:
            raise FailedPrecondition("Only failed scans can be retried")
        if not record.extracted_ingredients:
            raise FailedPrecondition("No ingredients found to analyze")

        logger.info("Retrying analysis for scan %s (%s ingredients)", scan_id, len(record.extracted_ingredients))

        # CAS on ``error``: a concurrent retry that got here first wins
        self.records.transition(scan_id, ScanStatus.ERROR, ScanStatus.ANALYZING)

        try:
            return self.orchestrator.run_analysis(scan_id, record.extracted_ingredients)
        except Exception as e:
            # no-op when the analysis stage already recorded the error
            self.orchestrator.mark_failed(scan_id, e)
            if isinstance(e, ScanServiceError):
                raise
            logger.exception("Error retrying scan %s", scan_id)
            raise Internal("Failed to retry scan", details=str(e)) from e
