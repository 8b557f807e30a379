"""Data models for saved reels."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Reel:
    """A saved reel record.

    Field names follow Python conventions; ``to_dict``/``from_dict`` translate to the
    camelCase keys used in persisted storage.
    """

    id: str
    url: str
    caption: str
    category: str
    timestamp: str  # ISO-8601 creation instant, never mutated
    date_added: str  # Locale-formatted at creation, not recomputed
    time_added: str
    notes: str = ""
    app_version: Optional[str] = None  # Version that created/last migrated this record

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "caption": self.caption,
            "category": self.category,
            "notes": self.notes,
            "timestamp": self.timestamp,
            "dateAdded": self.date_added,
            "timeAdded": self.time_added,
        }
        if self.app_version is not None:
            data["appVersion"] = self.app_version
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reel":
        """Build a reel from a persisted record.

        Args:
            data: Persisted record (already migrated to the current shape)

        Returns:
            Reel

        Raises:
            ValueError: If the record has no id or an empty category
        """
        reel_id = data.get("id")
        category = str(data.get("category") or "").strip()
        if reel_id in (None, ""):
            raise ValueError("Reel record has no id")
        if not category:
            raise ValueError(f"Reel record {reel_id} has no category")
        return cls(
            id=str(reel_id),
            url=str(data.get("url", "")),
            caption=str(data.get("caption", "")),
            category=category,
            timestamp=str(data.get("timestamp", "")),
            date_added=str(data.get("dateAdded", "")),
            time_added=str(data.get("timeAdded", "")),
            notes=str(data.get("notes") or ""),
            app_version=data.get("appVersion"),
        )


@dataclass(frozen=True)
class PendingReel:
    """Shared content waiting for the user to choose a category."""

    url: str
    caption: str
    timestamp: str


@dataclass(frozen=True)
class ManualDraft:
    """Content handed back to manual entry after leaving the suggestion flow."""

    url: str
    caption: str


@dataclass
class Settings:
    """User preferences."""

    auto_classify: bool = True  # Classify shared content as soon as it arrives

    def to_dict(self) -> dict[str, Any]:
        return {"autoClassify": self.auto_classify}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        # Older app versions stored the flag as "autoSave"
        value = data.get("autoClassify", data.get("autoSave", True))
        return cls(auto_classify=bool(value))
