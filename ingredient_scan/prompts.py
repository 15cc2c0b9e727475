"""Prompts for OpenAI models."""

EXTRACTION_PROMPT = (
    "Extract all text from this image of a food ingredient list. "
    "Return a clean, comma-separated list of the ingredients. "
    "Ignore any non-ingredient text. "
    "Only return the ingredient names, nothing else."
)

ANALYSIS_PROMPT = """
You are a helpful nutrition assistant. Based on the following ingredients: {ingredients_list}.

Provide a health score from 1 to 10 (where 10 is the healthiest). Explain the score in a simple paragraph. List the top 3 pros and cons.

Respond ONLY with a valid JSON object with the keys: 'score' (number), 'explanation' (string), 'pros' (array of strings), 'cons' (array of strings).

Example format:
{
  "score": 7,
  "explanation": "Your explanation here",
  "pros": ["Pro 1", "Pro 2", "Pro 3"],
  "cons": ["Con 1", "Con 2", "Con 3"]
}

⚠️ No text outside JSON.
"""
