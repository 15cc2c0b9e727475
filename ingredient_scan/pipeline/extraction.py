"""Extraction stage: ingredient label photo -> ingredient names."""

import logging
from typing import List

from ingredient_scan.errors import InvalidResponse
from ingredient_scan.openai_client import GenerativeModel, InlineImage
from ingredient_scan.prompts import EXTRACTION_PROMPT
from ingredient_scan.utils import split_ingredients

logger = logging.getLogger(__name__)


class IngredientExtractor:
    def __init__(self, model: GenerativeModel):
        self.model = model

    def extract(self, image: InlineImage) -> List[str]:
        extracted_text = self.model.generate(EXTRACTION_PROMPT, image=image)
        logger.info("Extraction raw response: %s", extracted_text)

        ingredients = split_ingredients(extracted_text)
        if not ingredients:
            raise InvalidResponse("No ingredients could be extracted from the image")

        logger.info("Ingredients extracted: %s", ingredients)
        return ingredients
