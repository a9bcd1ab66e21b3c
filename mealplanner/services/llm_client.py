"""LLM service for AI recipe extraction and ingredient matching.

Gemini 2.0 Flash via OpenRouter when an OpenRouter key is configured,
otherwise GPT-4o-mini via OpenAI. Calls are single-shot: no retries.
"""

import re
import json
import time
from typing import Any, Optional
import httpx

from mealplanner.config import get_settings
from mealplanner.errors import CompletionServiceError, ExtractionError
from mealplanner.models.extracted import (
    DEFAULT_CUISINE,
    DEFAULT_RECIPE_NAME,
    ExtractedIngredient,
    ExtractedRecipe,
    normalize_category,
)
from mealplanner.services.ingredient_parser import parse_fraction
from mealplanner.services.prompts import get_recipe_from_page_prompt

settings = get_settings()


def strip_code_fences(raw_content: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    text = (raw_content or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _coerce_text(value: Any, default: Optional[str] = None) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def coerce_extracted_recipe(data: Any) -> ExtractedRecipe:
    """
    Coerce untyped model output into an ExtractedRecipe.

    Every field is checked and defaulted individually; ingredients without a
    name are dropped, quantities that are not numbers or numeric strings
    become None.
    """
    if not isinstance(data, dict):
        raise ExtractionError("AI response was not a JSON object")

    raw_ingredients = data.get("ingredients")
    if not isinstance(raw_ingredients, list):
        raw_ingredients = []

    ingredients = []
    for index, item in enumerate(raw_ingredients):
        if not isinstance(item, dict):
            continue
        name = _coerce_text(item.get("name"))
        if not name:
            continue
        ingredients.append(ExtractedIngredient(
            name=name,
            quantity=parse_fraction(item.get("quantity")),
            unit=_coerce_text(item.get("unit")) if isinstance(item.get("unit"), str) else None,
            notes=_coerce_text(item.get("notes")) if isinstance(item.get("notes"), str) else None,
            sort_order=index,
        ))

    return ExtractedRecipe(
        name=_coerce_text(data.get("name"), DEFAULT_RECIPE_NAME),
        description=_coerce_text(data.get("description"), ""),
        category=normalize_category(data.get("category")),
        cuisine=_coerce_text(data.get("cuisine"), DEFAULT_CUISINE),
        ingredients=tuple(ingredients),
    )


class LLMService:
    """
    Text-completion client.

    complete() is prompt-in/text-out with no schema guarantee; callers must tolerate
    malformed or fenced JSON.
    """

    SYSTEM_PROMPT = "You are a culinary extraction engine. Return valid JSON only."

    # Model configurations
    GEMINI_CONFIG = {
        "name": "Gemini 2.0 Flash",
        "model": "google/gemini-2.0-flash-001",
        "base_url": "https://openrouter.ai/api/v1",
    }

    GPT_CONFIG = {
        "name": "GPT-4o-mini",
        "model": "gpt-4o-mini",
        "base_url": "https://api.openai.com/v1",
    }

    def __init__(
        self,
        openrouter_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.openrouter_api_key = openrouter_api_key if openrouter_api_key is not None else settings.openrouter_api_key
        self.openai_api_key = openai_api_key if openai_api_key is not None else settings.openai_api_key
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds

    def _select_provider(self) -> tuple[dict, str, bool]:
        """Return (config, api_key, is_openrouter) for the configured provider."""
        if self.openrouter_api_key:
            return self.GEMINI_CONFIG, self.openrouter_api_key, True
        if self.openai_api_key:
            return self.GPT_CONFIG, self.openai_api_key, False
        raise CompletionServiceError("No text-completion provider configured (set OPENROUTER_API_KEY or OPENAI_API_KEY)")

    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the raw response text."""
        config, api_key, is_openrouter = self._select_provider()
        start_time = time.time()

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        if is_openrouter:
            headers["HTTP-Referer"] = "https://mealplanner.app"
            headers["X-Title"] = "Meal Planner"

        payload = {
            "model": config["model"],
            "messages": [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt}
            ],
            "temperature": 0.1,
            "max_tokens": 4000,
        }

        url = f"{config['base_url']}/chat/completions"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException:
            print(f"❌ {config['name']} timed out after {self.timeout:g}s")
            raise CompletionServiceError(f"{config['name']} timed out", timed_out=True)
        except httpx.HTTPError as e:
            print(f"❌ {config['name']} request failed: {e}")
            raise CompletionServiceError(f"{config['name']} request failed: {e}")

        latency = time.time() - start_time

        if response.status_code != 200:
            print(f"❌ LLM error: HTTP {response.status_code}")
            raise CompletionServiceError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
            raw_content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise CompletionServiceError(f"Unexpected response shape from {config['name']}")

        if not raw_content:
            raise CompletionServiceError(f"Empty response from {config['name']}")

        print(f"   {config['name']} latency: {latency:.1f}s")
        return raw_content

    async def extract_recipe(self, content: str, source_url: str) -> ExtractedRecipe:
        """
        Extract recipe metadata and ingredients from cleaned page text.

        Raises ExtractionError when the model cannot be reached or its response
        is not a JSON object.
        """
        print(f"🤖 Extracting recipe with AI...")
        print(f"📝 Content length: {len(content)} chars")

        prompt = get_recipe_from_page_prompt(source_url, self._sanitize_text(content))

        try:
            raw_content = await self.complete(prompt)
        except CompletionServiceError as e:
            raise ExtractionError(f"AI extraction failed: {e.message}")

        try:
            parsed = json.loads(strip_code_fences(raw_content))
        except json.JSONDecodeError:
            raise ExtractionError("Failed to parse recipe data from AI response")

        recipe = coerce_extracted_recipe(parsed)
        print(f"✅ AI extracted recipe: {recipe.name} ({len(recipe.ingredients)} ingredients)")
        return recipe

    def _sanitize_text(self, text: str) -> str:
        """Clean text to prevent Unicode issues with the API."""
        # Remove emojis and high Unicode characters
        text = re.sub(
            r'[\U0001F600-\U0001F64F]|[\U0001F300-\U0001F5FF]|'
            r'[\U0001F680-\U0001F6FF]|[\U0001F1E0-\U0001F1FF]|'
            r'[\U00002600-\U000026FF]|[\U00002700-\U000027BF]',
            ' ', text
        )
        # Replace smart quotes
        text = text.replace('“', '"').replace('”', '"')
        text = text.replace('‘', "'").replace('’', "'")
        # Replace ellipsis
        text = text.replace('…', '...')
        # Replace em/en dashes
        text = text.replace('—', '-').replace('–', '-')
        # Normalize whitespace
        text = re.sub(r'\s+', ' ', text)
        return text.strip()


# Singleton instance
llm_service = LLMService()
