from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from decision_maker.core.constants import STATUS_INTERESTED, STATUS_NOT_INTERESTED
from decision_maker.core.dates import format_event_date
from decision_maker.storage.preferences import PreferenceMap


@dataclass(frozen=True)
class Venue:
    name: str = ""
    city: str = ""
    state: str = ""


@dataclass(frozen=True)
class ShowItem:
    """One event card: live music, stand-up comedy or a preview sample."""

    id: str
    name: str
    local_date: str = ""
    local_time: str = ""
    venue: Venue = field(default_factory=Venue)
    distance_miles: float | None = None
    image_url: str = ""
    url: str = ""
    status: str | None = None
    matched_artists: tuple[str, ...] = ()
    order: int = 0
    is_sample: bool = False
    sample_note: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["matched_artists"] = list(self.matched_artists)
        data["date_text"] = format_event_date(self.local_date, self.local_time)
        return data


@dataclass(frozen=True)
class StatusLists:
    active: list[ShowItem]
    dismissed: list[ShowItem]
    interested: list[ShowItem]


def split_by_status(items: list[ShowItem], prefs: PreferenceMap) -> StatusLists:
    """
    Attach stored statuses and split into active / dismissed / interested.

    Interested items stay in the active list as well.
    """
    active: list[ShowItem] = []
    dismissed: list[ShowItem] = []
    interested: list[ShowItem] = []
    for item in items:
        enriched = replace(item, status=prefs.get_status(item.id))
        if enriched.status == STATUS_INTERESTED:
            interested.append(enriched)
        if enriched.status == STATUS_NOT_INTERESTED:
            dismissed.append(enriched)
        else:
            active.append(enriched)
    return StatusLists(active=active, dismissed=dismissed, interested=interested)


@dataclass
class PanelResult:
    """
    What a panel load produced.

    ``message`` is the user-facing text for empty and error states;
    ``empty_reason`` is one of ``preview`` / ``locationDenied`` / ``noNearby``.
    """

    items: list[ShowItem] = field(default_factory=list)
    message: str = ""
    empty_reason: str | None = None
    dismissed: list[ShowItem] = field(default_factory=list)
    interested: list[ShowItem] = field(default_factory=list)
    suggestions: list[dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_items(cls, items: list[ShowItem], prefs: PreferenceMap, **kwargs: Any) -> "PanelResult":
        lists = split_by_status(items, prefs)
        return cls(items=lists.active, dismissed=lists.dismissed, interested=lists.interested, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "dismissed": [i.to_dict() for i in self.dismissed],
            "interested": [i.to_dict() for i in self.interested],
            "message": self.message,
            "emptyReason": self.empty_reason,
            "suggestions": list(self.suggestions),
        }
