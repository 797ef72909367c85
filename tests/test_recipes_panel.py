"""
Recipes: Spoonacular proxy with the API-Ninjas fallback, and the panel on top.
"""
from __future__ import annotations

import json

import pytest

from decision_maker.core.constants import KEY_RECIPES_QUERY
from decision_maker.core.exceptions import ConfigurationError, UpstreamError, ValidationError
from decision_maker.integrations.spoonacular import SpoonacularProxy
from decision_maker.panels.recipes import MSG_FAILED, MSG_NO_RESULTS, RecipeLists, load_recipes

from tests.fakes.food_stubs import NINJAS_RESULTS, SOUP, complex_search, recipe
from tests.fakes.upstream import query

COMPLEX_SEARCH = "api.spoonacular.com/recipes/complexSearch"
NINJAS = "api.api-ninjas.com/v1/recipe"


class TestSpoonacularProxy:
    @pytest.mark.asyncio
    async def test_complex_search_params_and_cache(self, upstream):
        upstream.add(COMPLEX_SEARCH, complex_search(SOUP))
        proxy = SpoonacularProxy(api_key="sp", ninjas_key="")

        first = await proxy.search("Chicken Soup")
        second = await proxy.search("  chicken   soup ")

        assert json.loads(first.text)["results"][0]["title"] == "Soup"
        assert second.text == first.text
        calls = upstream.calls(COMPLEX_SEARCH)
        assert len(calls) == 1
        params = query(calls[0])
        assert params["query"] == "Chicken Soup"
        assert params["number"] == "50"
        assert params["addRecipeInformation"] == "true"
        assert params["apiKey"] == "sp"

    @pytest.mark.asyncio
    async def test_falls_back_to_api_ninjas(self, upstream):
        upstream.add(COMPLEX_SEARCH, (402, {"message": "Your daily points limit has been reached."}))
        upstream.add(NINJAS, NINJAS_RESULTS)

        resp = await SpoonacularProxy(api_key="sp", ninjas_key="nj").search("pancakes")

        body = json.loads(resp.text)
        assert body == {"results": NINJAS_RESULTS, "source": "api-ninjas"}
        assert upstream.calls(NINJAS)[0].headers["X-Api-Key"] == "nj"

    @pytest.mark.asyncio
    async def test_rate_limit_also_falls_back(self, upstream):
        upstream.add(COMPLEX_SEARCH, (429, {"message": "slow down"}))
        upstream.add(NINJAS, NINJAS_RESULTS)

        resp = await SpoonacularProxy(api_key="sp", ninjas_key="nj").search("pancakes")

        assert json.loads(resp.text)["source"] == "api-ninjas"

    @pytest.mark.asyncio
    async def test_only_ninjas_configured(self, upstream):
        upstream.add(NINJAS, NINJAS_RESULTS)

        await SpoonacularProxy(api_key="", ninjas_key="nj").search("pancakes")

        assert upstream.calls(COMPLEX_SEARCH) == []

    @pytest.mark.asyncio
    async def test_failure_without_fallback(self, upstream):
        upstream.add(COMPLEX_SEARCH, (500, "oops"))
        with pytest.raises(UpstreamError):
            await SpoonacularProxy(api_key="sp", ninjas_key="").search("soup")

    @pytest.mark.asyncio
    async def test_validation(self):
        with pytest.raises(ValidationError):
            await SpoonacularProxy(api_key="sp").search("  ")
        with pytest.raises(ConfigurationError):
            await SpoonacularProxy(api_key="", ninjas_key="").search("soup")


class TestLoadRecipes:
    @pytest.mark.asyncio
    async def test_top_ten_by_score(self, upstream, store):
        upstream.add(COMPLEX_SEARCH, complex_search(*(recipe(i, f"Recipe {i}", score=i) for i in range(12))))

        result = await load_recipes(store, SpoonacularProxy(api_key="sp"), "stew")

        assert [r.title for r in result.recipes] == [f"Recipe {i}" for i in range(11, 1, -1)]
        assert result.source == "spoonacular"
        assert store.get(KEY_RECIPES_QUERY) == "stew"

    @pytest.mark.asyncio
    async def test_hidden_titles_are_skipped(self, upstream, store):
        upstream.add(COMPLEX_SEARCH, complex_search(recipe(1, "Soup", 90), recipe(2, "Stew", 10)))
        RecipeLists(store).hide("Soup")

        result = await load_recipes(store, SpoonacularProxy(api_key="sp"), "stew")

        assert [r.title for r in result.recipes] == ["Stew"]

    @pytest.mark.asyncio
    async def test_everything_hidden(self, upstream, store):
        upstream.add(COMPLEX_SEARCH, complex_search(recipe(1, "Soup")))
        RecipeLists(store).hide("Soup")

        result = await load_recipes(store, SpoonacularProxy(api_key="sp"), "soup")

        assert result.recipes == []
        assert result.message == MSG_NO_RESULTS

    @pytest.mark.asyncio
    async def test_no_results(self, upstream, store):
        upstream.add(COMPLEX_SEARCH, complex_search())
        result = await load_recipes(store, SpoonacularProxy(api_key="sp"), "nothing")
        assert result.message == MSG_NO_RESULTS

    @pytest.mark.asyncio
    async def test_upstream_failure(self, upstream, store):
        upstream.add(COMPLEX_SEARCH, (500, "oops"))
        result = await load_recipes(store, SpoonacularProxy(api_key="sp", ninjas_key=""), "soup")
        assert result.message == MSG_FAILED
        assert result.recipes == []

    @pytest.mark.asyncio
    async def test_fallback_source_is_reported(self, upstream, store):
        upstream.add(NINJAS, NINJAS_RESULTS)
        result = await load_recipes(store, SpoonacularProxy(api_key="", ninjas_key="nj"), "pancakes")
        assert result.source == "api-ninjas"
        assert result.recipes[0].ingredients == ["1 cup flour", "1 egg", "1 cup milk"]

    @pytest.mark.asyncio
    async def test_empty_query_asks_for_a_search(self, upstream, store):
        result = await load_recipes(store, SpoonacularProxy(api_key="sp"), "   ")

        assert result.message == "Please enter search."
        assert result.recipes == []
        assert upstream.calls(COMPLEX_SEARCH) == []
        assert store.get(KEY_RECIPES_QUERY) is None
