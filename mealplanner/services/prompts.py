"""Prompts for AI recipe extraction and ingredient matching."""


def get_recipe_from_page_prompt(source_url: str, page_content: str) -> str:
    """Generate the prompt that extracts recipe metadata and ingredients from page text."""
    return f"""Extract recipe information from this webpage. Return a JSON object with the following structure:
{{
  "name": "the recipe title",
  "description": "A refined 1-2 sentence description of the recipe, written in an appealing way",
  "category": "one of: entree, side, dessert, appetizer, breakfast, soup, salad, beverage",
  "cuisine": "the cuisine type (e.g., Italian, Mexican, American, Asian, Mediterranean, Indian, etc.)",
  "ingredients": [
    {{
      "name": "ingredient name (just the ingredient, no quantity or preparation notes)",
      "quantity": number or null,
      "unit": "unit of measurement" or null,
      "notes": "preparation notes like 'diced', 'room temperature'" or null
    }}
  ]
}}

Guidelines:
- "name" should be the recipe's actual title as shown on the page
- "description" should be a polished, appetizing 1-2 sentence summary (not just copied from the page)
- "category" must be one of the listed options, choose the best fit
- "cuisine" should identify the culinary tradition
- List ingredients in the order they appear on the page

For ingredients, "2 cups all-purpose flour, sifted" should become:
{{"name": "all-purpose flour", "quantity": 2, "unit": "cups", "notes": "sifted"}}

And "1 large egg, room temperature" should become:
{{"name": "egg", "quantity": 1, "unit": "large", "notes": "room temperature"}}

Return ONLY the JSON object, no other text.

URL: {source_url}

Page content:
{page_content}"""


def get_ingredient_match_prompt(existing_names: list[str], extracted_names: list[str]) -> str:
    """Generate the prompt that aligns extracted ingredient names to the household catalog."""
    existing_list = "\n".join(f"{i + 1}. {name}" for i, name in enumerate(existing_names))
    extracted_list = "\n".join(f"{i + 1}. {name}" for i, name in enumerate(extracted_names))

    return f"""You are matching recipe ingredients to an existing ingredient database.

EXISTING INGREDIENTS IN DATABASE:
{existing_list}

INGREDIENTS TO MATCH:
{extracted_list}

For each ingredient to match, find the best matching existing ingredient if one exists.
Consider these as matches:
- Plural/singular variations (e.g., "tomato" = "tomatoes")
- With/without non-distinguishing modifiers (e.g., "butter" = "unsalted butter", "garlic" = "garlic cloves")

Do NOT match different cuts, varieties or states of an ingredient:
- "chicken breast" does NOT match "chicken thighs"
- "olive oil" does NOT match "vegetable oil"
- "brown sugar" does NOT match "powdered sugar"

If you are not confident, use null. A wrong match is worse than no match.

Return a JSON array with exactly {len(extracted_names)} elements, one per ingredient to match, in the same order.
Each element must be either:
- The EXACT name from the existing ingredients list (if a good match exists)
- null (if no good match exists and a new ingredient should be created)

Return ONLY the JSON array, no other text. Example: ["existing ingredient 1", null, "existing ingredient 3"]"""
