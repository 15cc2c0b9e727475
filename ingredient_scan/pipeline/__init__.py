"""
Scan processing pipeline:
- ingestion: upload-finalize trigger that creates the scan record
- orchestrator: processing -> analyzing -> complete / error state machine
- extraction: vision call that reads the ingredient list
- analysis: health verdict from the ingredient list
- retry: re-entry at the analysis stage for failed scans
"""

from .analysis import AnalysisEngine, analyze_ingredients
from .extraction import IngredientExtractor
from .ingestion import IngestionTrigger, TriggerOutcome, parse_scan_path
from .orchestrator import PipelineOrchestrator
from .retry import RetryHandler

__all__ = [
    "AnalysisEngine",
    "IngestionTrigger",
    "IngredientExtractor",
    "PipelineOrchestrator",
    "RetryHandler",
    "TriggerOutcome",
    "analyze_ingredients",
    "parse_scan_path",
]
