"""Pydantic models for scan records and analysis results."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class ScanStatus(str, Enum):
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class AnalysisResult(BaseModel):
    # score is returned as the model produced it (no clamping); 1..10 expected
    score: Union[int, float]
    explanation: str
    pros: List[str]
    cons: List[str]


class ScanRecord(BaseModel):
    """
    One user scan.

    ``extracted_ingredients`` is written once by the extraction stage and is
    kept when the scan later moves to ``error``, so a retry can go straight
    to analysis without running the vision call again.
    """

    model_config = ConfigDict(populate_by_name=True)

    scan_id: str = Field(alias="scanId")
    owner_id: str = Field(alias="ownerId")
    created_at: datetime = Field(alias="createdAt")
    status: ScanStatus
    image_url: str = Field(alias="imageUrl")
    extracted_ingredients: List[str] = Field(default_factory=list, alias="extractedIngredients")
    analysis_result: Optional[AnalysisResult] = Field(default=None, alias="analysisResult")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")

    # bumped on every committed write; not part of the wire layout
    _version: int = PrivateAttr(default=0)

    @property
    def version(self) -> int:
        return self._version

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AnalyzeRequest(BaseModel):
    # left untyped so a missing / non-list value reaches InvalidArgument
    ingredients: Any = None


class StartScanResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scan_id: str = Field(alias="scanId")


class RetryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    analysis_result: AnalysisResult = Field(alias="analysisResult")


class FinalizeNotification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bucket: Optional[str] = None
    name: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
