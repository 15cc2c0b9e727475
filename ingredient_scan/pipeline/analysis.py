"""Analysis Engine: ingredient list -> health verdict via a text model."""

import logging
import math
import numbers
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ingredient_scan.errors import (
    Internal,
    InvalidArgument,
    InvalidResponse,
    ScanServiceError,
    Unauthenticated,
    ValidationError,
)
from ingredient_scan.openai_client import GenerativeModel
from ingredient_scan.prompts import ANALYSIS_PROMPT
from ingredient_scan.schemas import AnalysisResult
from ingredient_scan.utils import extract_json

logger = logging.getLogger(__name__)

SCORE_RANGE = (1, 10)
MAX_LIST_ITEMS = 3


def build_analysis_prompt(ingredients: Sequence[str]) -> str:
    return ANALYSIS_PROMPT.replace("{ingredients_list}", ", ".join(ingredients))


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """Check the parsed model output has the AnalysisResult shape."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid analysis result structure")
    if not (
        _is_number(data.get("score"))
        and isinstance(data.get("explanation"), str)
        and isinstance(data.get("pros"), list)
        and isinstance(data.get("cons"), list)
    ):
        raise ValidationError("Invalid analysis result structure")

    try:
        result = AnalysisResult(
            score=data["score"],
            explanation=data["explanation"],
            pros=data["pros"],
            cons=data["cons"],
        )
    except PydanticValidationError as e:
        raise ValidationError("Invalid analysis result structure", details=str(e)) from e

    # Bounds are implied by the prompt but not enforced; the result is kept as-is.
    low, high = SCORE_RANGE
    if not low <= result.score <= high:
        logger.warning("Analysis score %s outside %s..%s", result.score, low, high)
    if len(result.pros) > MAX_LIST_ITEMS or len(result.cons) > MAX_LIST_ITEMS:
        logger.warning(
            "Analysis returned %s pros / %s cons (expected at most %s)",
            len(result.pros),
            len(result.cons),
            MAX_LIST_ITEMS,
        )
    return result


class AnalysisEngine:
    """Stateless; safe to share between the orchestrator and retry handler."""

    def __init__(self, model: GenerativeModel):
        self.model = model

    def analyze(self, ingredients: Sequence[str]) -> AnalysisResult:
        if not ingredients:
            raise InvalidArgument("Ingredients array is required and must not be empty")

        prompt = build_analysis_prompt(ingredients)
        logger.info("Analyzing %s ingredients", len(ingredients))
        analysis_text = self.model.generate(prompt)
        logger.info("Analysis raw response: %s", analysis_text)

        try:
            parsed = extract_json(analysis_text)
        except ValueError as e:
            raise InvalidResponse("Invalid response format from AI", details=str(e)) from e
        logger.info("Analysis parsed JSON: %s", parsed)

        return validate_analysis(parsed)


def analyze_ingredients(
    engine: AnalysisEngine,
    caller_id: Optional[str],
    ingredients: Any,
) -> AnalysisResult:
    """Direct, caller-authenticated analysis outside the image pipeline."""
    if not caller_id:
        raise Unauthenticated("User must be authenticated to analyze ingredients")

    if not ingredients or not isinstance(ingredients, list):
        raise InvalidArgument("Ingredients array is required and must not be empty")
    if not all(isinstance(item, str) for item in ingredients):
        raise InvalidArgument("Ingredients must be strings")

    try:
        return engine.analyze(ingredients)
    except ScanServiceError:
        raise
    except Exception as e:
        logger.exception("Error in analyze_ingredients")
        raise Internal("Failed to analyze ingredients", details=str(e)) from e
