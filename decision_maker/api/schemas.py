from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class LocationReport(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class StatusUpdate(BaseModel):
    status: str | None = None


class MovieStatusUpdate(BaseModel):
    status: str
    movie: dict[str, Any]
    interest: int | None = Field(default=None, ge=1, le=5)


class RatingUpdate(BaseModel):
    rating: float | None = None


class HideRecipe(BaseModel):
    title: str = Field(min_length=1)


class ShowsConfigUpdate(BaseModel):
    radiusMiles: float | None = None
    artistLimit: int | None = None
    includeSuggestions: bool | None = None


class TvStatusUpdate(BaseModel):
    status: str
    show: dict[str, Any]
    interest: int | None = Field(default=None, ge=1, le=5)


class TvFeedFiltersUpdate(BaseModel):
    # loose types; values are sanitized, and an explicit null clears a filter
    minRating: float | str | None = None
    minVotes: int | str | None = None
    startYear: int | str | None = None
    endYear: int | str | None = None
    genreId: int | str | None = None
    excludedGenreIds: list[int | str] | str | None = None
