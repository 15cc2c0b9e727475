"""Explicit construction of the service graph; owned by the app entry point."""

import logging
from dataclasses import dataclass
from typing import Optional

from ingredient_scan.config import Settings
from ingredient_scan.openai_client import GenerativeModel, OpenAIGenerativeModel, build_openai_client
from ingredient_scan.pipeline import (
    AnalysisEngine,
    IngestionTrigger,
    IngredientExtractor,
    PipelineOrchestrator,
    RetryHandler,
)
from ingredient_scan.records import RecordStore
from ingredient_scan.storage import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    records: RecordStore
    storage: ObjectStorage
    engine: AnalysisEngine
    orchestrator: PipelineOrchestrator
    trigger: IngestionTrigger
    retry_handler: RetryHandler


def wire_services(
    settings: Settings,
    records: RecordStore,
    storage: ObjectStorage,
    extraction_model: GenerativeModel,
    analysis_model: GenerativeModel,
) -> Services:
    engine = AnalysisEngine(analysis_model)
    orchestrator = PipelineOrchestrator(records, IngredientExtractor(extraction_model), engine)
    return Services(
        settings=settings,
        records=records,
        storage=storage,
        engine=engine,
        orchestrator=orchestrator,
        trigger=IngestionTrigger(records, storage, orchestrator, namespace=settings.scan_namespace),
        retry_handler=RetryHandler(records, orchestrator),
    )


def build_services(settings: Optional[Settings] = None) -> Services:
    settings = settings or Settings()
    logger.info(
        "Building services: db=%s storage=%s/%s extraction_model=%s analysis_model=%s",
        settings.database_url,
        settings.storage_root,
        settings.storage_bucket,
        settings.extraction_model,
        settings.analysis_model,
    )

    client = build_openai_client(
        settings.openai_api_key,
        timeout_s=settings.model_timeout_s,
        max_retries=settings.model_max_retries,
    )
    return wire_services(
        settings,
        records=RecordStore.from_url(settings.database_url),
        storage=ObjectStorage(
            settings.storage_root,
            settings.storage_bucket,
            public_base_url=settings.storage_public_base_url,
        ),
        extraction_model=OpenAIGenerativeModel(client, settings.extraction_model, settings.model_max_tokens),
        analysis_model=OpenAIGenerativeModel(client, settings.analysis_model, settings.model_max_tokens),
    )
