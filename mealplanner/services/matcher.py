"""
AI fuzzy matching of extracted ingredient names to the household catalog.

The model only proposes matches. Every proposal is re-checked against the
real catalog, and any failure degrades to "no fuzzy matches" so the import
continues with exact-name matching.
"""

import json
from typing import Sequence
from uuid import UUID

import sentry_sdk

from mealplanner.errors import CompletionServiceError, MatchServiceError
from mealplanner.models.extracted import CatalogIngredient
from mealplanner.services.llm_client import strip_code_fences
from mealplanner.services.prompts import get_ingredient_match_prompt


class IngredientMatcher:
    """Aligns extracted ingredient names to existing catalog entries."""

    def __init__(self, llm):
        self.llm = llm

    async def match(
        self,
        catalog: Sequence[CatalogIngredient],
        extracted_names: Sequence[str],
    ) -> dict[str, UUID]:
        """
        Return {lowercased trimmed extracted name: catalog id} for verified matches.

        Names without a trustworthy match are simply absent from the result.
        """
        if not catalog or not extracted_names:
            return {}

        try:
            proposals = await self._request_matches(catalog, extracted_names)
        except MatchServiceError as e:
            print(f"⚠️ Fuzzy matching failed, falling back to exact match: {e.message}")
            sentry_sdk.capture_message(
                "Ingredient fuzzy matching failed",
                level="warning",
                extras={"error_detail": e.message, "catalog_size": len(catalog)},
                tags={"feature": "ingredient_matching"},
            )
            return {}

        return self._verify(catalog, extracted_names, proposals)

    async def _request_matches(
        self,
        catalog: Sequence[CatalogIngredient],
        extracted_names: Sequence[str],
    ) -> list:
        """Ask the model for one catalog name (or null) per extracted name."""
        prompt = get_ingredient_match_prompt(
            [entry.name for entry in catalog],
            list(extracted_names),
        )

        try:
            raw_content = await self.llm.complete(prompt)
        except CompletionServiceError as e:
            raise MatchServiceError(e.message)

        try:
            proposals = json.loads(strip_code_fences(raw_content))
        except json.JSONDecodeError:
            raise MatchServiceError("Match response was not valid JSON")

        if not isinstance(proposals, list):
            raise MatchServiceError("Match response was not a JSON array")

        return proposals

    @staticmethod
    def _verify(
        catalog: Sequence[CatalogIngredient],
        extracted_names: Sequence[str],
        proposals: list,
    ) -> dict[str, UUID]:
        """Keep only proposals that name a real catalog entry."""
        catalog_by_name = {}
        for entry in catalog:
            catalog_by_name.setdefault(entry.name.strip().lower(), entry.id)

        matches = {}
        rejected = 0
        for extracted_name, proposal in zip(extracted_names, proposals):
            if not isinstance(proposal, str) or not proposal.strip():
                continue
            catalog_id = catalog_by_name.get(proposal.strip().lower())
            if catalog_id is None:
                rejected += 1
                print(f"⚠️ Ignoring match \"{extracted_name}\" -> \"{proposal}\": not in catalog")
                continue
            matches[extracted_name.strip().lower()] = catalog_id
            print(f"🔗 Fuzzy matched: \"{extracted_name}\" -> \"{proposal}\"")

        print(f"🔗 {len(matches)} fuzzy match(es), {rejected} rejected")
        return matches
