"""
Recipes panel.

Spoonacular ``complexSearch`` results (or API-Ninjas fallback results) are
normalized into ``Recipe`` records, ranked by ``spoonacularScore`` and
filtered against the titles the user hid.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlparse

from decision_maker.core.constants import (
    KEY_RECIPES_HIDDEN,
    KEY_RECIPES_QUERY,
    KEY_RECIPES_SAVED,
    RECIPES_DISPLAY_LIMIT,
)
from decision_maker.core.exceptions import DecisionMakerError, ValidationError
from decision_maker.core.validation import parse_float, validate_query
from decision_maker.integrations.spoonacular import SpoonacularProxy
from decision_maker.storage.kv import get_json, set_json

logger = logging.getLogger(__name__)

MSG_NO_RESULTS = "No recipes found."
MSG_FAILED = "We couldn't reach the recipes service."

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+|\.(?=\S)")
_LIST_ITEM = re.compile(r"</?(li|p|br|ol|ul)[^>]*>", re.IGNORECASE)

_BADGES = (
    ("vegetarian", "Vegetarian"),
    ("vegan", "Vegan"),
    ("glutenFree", "Gluten free"),
    ("dairyFree", "Dairy free"),
    ("veryHealthy", "Very healthy"),
    ("cheap", "Cheap"),
    ("veryPopular", "Very popular"),
    ("sustainable", "Sustainable"),
    ("lowFodmap", "Low FODMAP"),
)

_TAG_GROUPS = (
    ("cuisines", "Cuisines"),
    ("diets", "Diets"),
    ("dishTypes", "Dish types"),
    ("occasions", "Occasions"),
)


def strip_html(text: Any) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", html.unescape(_TAG.sub(" ", str(text)))).strip()


def dedupe(values: list[str]) -> list[str]:
    """Order-preserving, case-insensitive dedupe of non-empty trimmed strings."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = value.strip() if isinstance(value, str) else ""
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        result.append(cleaned)
    return result


def normalize_ingredients(raw: dict[str, Any]) -> list[str]:
    extended = raw.get("extendedIngredients")
    if isinstance(extended, list) and extended:
        names = []
        for item in extended:
            if isinstance(item, dict):
                names.append(item.get("original") or item.get("originalString") or item.get("name") or "")
            elif isinstance(item, str):
                names.append(item)
        return dedupe(names)

    ingredients = raw.get("ingredients")
    if isinstance(ingredients, list):
        return dedupe([i if isinstance(i, str) else (i or {}).get("name", "") for i in ingredients])
    if isinstance(ingredients, str):
        separator = "|" if "|" in ingredients else ","
        return dedupe(ingredients.split(separator))
    return []


def normalize_instructions(raw: dict[str, Any]) -> list[str]:
    analyzed = raw.get("analyzedInstructions")
    if isinstance(analyzed, list):
        steps: list[str] = []
        for block in analyzed:
            for step in (block or {}).get("steps") or []:
                if isinstance(step, dict):
                    steps.append(strip_html(step.get("step")))
        if any(steps):
            return dedupe(steps)

    text = raw.get("instructions")
    if not isinstance(text, str) or not text.strip():
        return []
    if _LIST_ITEM.search(text):
        chunks = _LIST_ITEM.split(text)
    else:
        chunks = _SENTENCE_END.split(html.unescape(text))
    return dedupe([strip_html(c).rstrip(".").strip() for c in chunks if c and c.lower() not in ("li", "p", "br", "ol", "ul")])


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def recipe_facts(raw: dict[str, Any]) -> list[tuple[str, str]]:
    facts: list[tuple[str, str]] = []
    servings = raw.get("servings")
    if servings not in (None, "", 0):
        facts.append(("Servings", str(servings)))
    ready = parse_float(raw.get("readyInMinutes"))
    if ready:
        facts.append(("Ready in", f"{_format_number(ready)} min"))
    likes = parse_float(raw.get("aggregateLikes"))
    if likes:
        facts.append(("Likes", _format_number(likes)))
    health = parse_float(raw.get("healthScore"))
    if health is not None:
        facts.append(("Health score", _format_number(round(health))))
    price = parse_float(raw.get("pricePerServing"))
    if price:
        facts.append(("Price per serving", f"${price / 100:.2f}"))
    score = parse_float(raw.get("spoonacularScore"))
    if score is not None:
        facts.append(("Score", _format_number(round(score))))
    return facts


def recipe_tags(raw: dict[str, Any]) -> dict[str, list[str]]:
    tags: dict[str, list[str]] = {}
    for key, label in _TAG_GROUPS:
        values = raw.get(key)
        if isinstance(values, list):
            cleaned = dedupe([v for v in values if isinstance(v, str)])
            if cleaned:
                tags[label] = cleaned
    return tags


def recipe_badges(raw: dict[str, Any]) -> list[str]:
    return [label for key, label in _BADGES if raw.get(key) is True]


def wine_pairing(raw: dict[str, Any]) -> dict[str, Any] | None:
    pairing = raw.get("winePairing")
    if not isinstance(pairing, dict):
        return None
    wines = dedupe([w for w in pairing.get("pairedWines") or [] if isinstance(w, str)])
    text = strip_html(pairing.get("pairingText"))
    if not wines and not text:
        return None
    return {"wines": wines, "text": text}


@dataclass(frozen=True)
class Recipe:
    title: str
    id: str = ""
    image: str = ""
    source_url: str = ""
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    facts: list[tuple[str, str]] = field(default_factory=list)
    summary: str = ""
    tags: dict[str, list[str]] = field(default_factory=dict)
    badges: list[str] = field(default_factory=list)
    wine_pairing: dict[str, Any] | None = None
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "image": self.image,
            "sourceUrl": self.source_url,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "facts": [{"label": k, "value": v} for k, v in self.facts],
            "summary": self.summary,
            "tags": {k: list(v) for k, v in self.tags.items()},
            "badges": list(self.badges),
            "winePairing": self.wine_pairing,
            "score": self.score,
        }


def normalize_recipe(raw: dict[str, Any]) -> Recipe:
    title = str(raw.get("title") or "").strip() or "Untitled"
    return Recipe(
        title=title,
        id=str(raw.get("id") or title),
        image=raw.get("image") or "",
        source_url=raw.get("sourceUrl") or raw.get("spoonacularSourceUrl") or "",
        ingredients=normalize_ingredients(raw),
        instructions=normalize_instructions(raw),
        facts=recipe_facts(raw),
        summary=strip_html(raw.get("summary")),
        tags=recipe_tags(raw),
        badges=recipe_badges(raw),
        wine_pairing=wine_pairing(raw),
        score=parse_float(raw.get("spoonacularScore")) or 0.0,
    )


def sort_recipes(recipes: list[Recipe]) -> list[Recipe]:
    # sorted() is stable, so equal scores keep their upstream order
    return sorted(recipes, key=lambda r: -r.score)


def proxy_path(api_base_url: str | None) -> str:
    """Cloud-function hosts expose the proxy as ``/spoonacularProxy``."""
    base = (api_base_url or "").rstrip("/")
    host = urlparse(base).hostname or ""
    if host.endswith("cloudfunctions.net") or (not host and "cloudfunctions.net" in base):
        return "/spoonacularProxy"
    return "/api/spoonacular"


def proxy_url(api_base_url: str | None, query: str) -> str:
    base = (api_base_url or "").rstrip("/")
    return f"{base}{proxy_path(base)}?query={quote(query, safe='')}"


# -------------------------
# Stored lists
# -------------------------

class RecipeLists:
    def __init__(self, store):
        self._store = store

    def hidden(self) -> list[str]:
        stored = get_json(self._store, KEY_RECIPES_HIDDEN, [])
        return [t for t in stored if isinstance(t, str)] if isinstance(stored, list) else []

    def hide(self, title: str) -> list[str]:
        hidden = self.hidden()
        if title and title not in hidden:
            hidden.append(title)
            set_json(self._store, KEY_RECIPES_HIDDEN, hidden)
        return hidden

    def saved(self) -> list[dict[str, Any]]:
        stored = get_json(self._store, KEY_RECIPES_SAVED, [])
        return [r for r in stored if isinstance(r, dict)] if isinstance(stored, list) else []

    def save(self, recipe: dict[str, Any]) -> bool:
        """Returns False when a recipe with the same title is already saved."""
        saved = self.saved()
        title = recipe.get("title")
        if not title or any(s.get("title") == title for s in saved):
            return False
        saved.append(recipe)
        set_json(self._store, KEY_RECIPES_SAVED, saved)
        return True


@dataclass
class RecipesResult:
    recipes: list[Recipe] = field(default_factory=list)
    message: str = ""
    source: str = "spoonacular"

    def to_dict(self) -> dict[str, Any]:
        return {"recipes": [r.to_dict() for r in self.recipes], "message": self.message, "source": self.source}


async def load_recipes(store, proxy: SpoonacularProxy, query: str | None) -> RecipesResult:
    try:
        query = validate_query(query, label="Recipe search")
    except ValidationError as e:
        logger.info("Rejected recipe search: %s", e)
        return RecipesResult(message=e.user_message)

    try:
        resp = await proxy.search(query)
        if not resp.ok:
            raise DecisionMakerError(f"Spoonacular proxy HTTP {resp.status}")
        data = json.loads(resp.text)
    except (DecisionMakerError, ValueError) as e:
        logger.error(f"Failed to load recipes: {e}", exc_info=True)
        return RecipesResult(message=MSG_FAILED)

    results = data.get("results") if isinstance(data, dict) else None
    raw_recipes = [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []
    if not raw_recipes:
        return RecipesResult(message=MSG_NO_RESULTS)

    hidden = set(RecipeLists(store).hidden())
    recipes = [r for r in sort_recipes([normalize_recipe(r) for r in raw_recipes]) if r.title not in hidden]
    store.set(KEY_RECIPES_QUERY, query)
    return RecipesResult(
        recipes=recipes[:RECIPES_DISPLAY_LIMIT],
        message="" if recipes else MSG_NO_RESULTS,
        source=data.get("source") or "spoonacular",
    )
