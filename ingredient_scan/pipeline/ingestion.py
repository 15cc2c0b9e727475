"""Ingestion Trigger: finalized scan-image upload -> scan record + pipeline run."""

import logging
from dataclasses import dataclass
from typing import Optional

from ingredient_scan.openai_client import InlineImage
from ingredient_scan.records import RecordStore
from ingredient_scan.storage import DEFAULT_CONTENT_TYPE, ObjectStorage, StoredObject
from .orchestrator import PipelineOrchestrator, error_message_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanUpload:
    owner_id: str
    scan_id: str
    file_name: str


@dataclass
class TriggerOutcome:
    scan_id: str
    success: bool
    error: Optional[str] = None


def parse_scan_path(path: Optional[str], namespace: str) -> Optional[ScanUpload]:
    """
    ``<namespace>/<owner_id>/<scan_id>_<suffix>`` -> ScanUpload, else None.

    Without an ``_`` in the file name the stem (extension dropped) is the
    scan id.
    """
    if not path or not path.startswith(f"{namespace}/"):
        return None

    parts = path.split("/")
    if len(parts) < 3:
        return None

    owner_id, file_name = parts[1], parts[2]
    if not owner_id or not file_name:
        return None

    if "_" in file_name:
        scan_id = file_name.split("_")[0]
    else:
        scan_id = file_name.rsplit(".", 1)[0]
    if not scan_id:
        return None

    return ScanUpload(owner_id=owner_id, scan_id=scan_id, file_name=file_name)


class IngestionTrigger:
    def __init__(
        self,
        records: RecordStore,
        storage: ObjectStorage,
        orchestrator: PipelineOrchestrator,
        namespace: str = "scan_images",
    ):
        self.records = records
        self.storage = storage
        self.orchestrator = orchestrator
        self.namespace = namespace

    def handle_upload(self, obj: StoredObject) -> Optional[TriggerOutcome]:
        """
        Run the automatic pipeline for one finalized upload.

        Never raises: faults after the record exists are written to the
        record as ``status=error``.
        """
        upload = parse_scan_path(obj.name, self.namespace)
        if upload is None:
            logger.info("Not a scan image, skipping: %s", obj.name)
            return None

        logger.info("Processing scan for user: %s, scanId: %s", upload.owner_id, upload.scan_id)

        image_url = self.storage.public_url(obj.name, bucket=obj.bucket)
        try:
            self.records.create(upload.scan_id, upload.owner_id, image_url)
        except Exception:
            logger.exception("Could not create scan record %s, aborting", upload.scan_id)
            return None

        try:
            image_bytes = self.storage.download(obj.name)
            content_type = obj.content_type or self.storage.content_type(obj.name) or DEFAULT_CONTENT_TYPE
            self.orchestrator.process(upload.scan_id, InlineImage(data=image_bytes, mime_type=content_type))
        except Exception as e:
            logger.exception("Error processing scan %s", upload.scan_id)
            self.orchestrator.mark_failed(upload.scan_id, e)
            return TriggerOutcome(scan_id=upload.scan_id, success=False, error=error_message_for(e))

        logger.info("Scan processing complete: %s", upload.scan_id)
        return TriggerOutcome(scan_id=upload.scan_id, success=True)
