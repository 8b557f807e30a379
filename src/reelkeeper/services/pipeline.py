"""Classification-and-save pipeline for shared reels."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from reelkeeper.errors import (
    InvalidCategoryError,
    MissingCredentialError,
    PersistenceError,
    PipelineBusyError,
    PipelineStateError,
)
from reelkeeper.metrics import REELS_SAVED
from reelkeeper.migrations import APP_VERSION
from reelkeeper.models.reel import ManualDraft, PendingReel, Reel
from reelkeeper.services.answers import FALLBACK_CATEGORY
from reelkeeper.services.session import Session
from reelkeeper.services.share import pending_from_shared_text
from reelkeeper.utils.dates import display_date, display_time, parse_timestamp, to_iso, utc_now
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    RECEIVED = "received"
    CLASSIFYING = "classifying"
    AWAITING_SELECTION = "awaiting_selection"
    SAVING = "saving"


@dataclass(frozen=True)
class SelectionPrompt:
    """What the user chooses a category from."""

    pending: PendingReel
    primary: Optional[str]
    suggestions: list[str]
    categories: list[str]  # Every registry category, sorted
    manual: bool = False  # Classification did not run; the user picks unaided
    degraded: bool = False  # Classifier answer was replaced by defaults


class ReelPipeline:
    """Moves one shared item at a time from raw text to a saved reel.

    IDLE -> RECEIVED -> CLASSIFYING -> AWAITING_SELECTION -> SAVING -> IDLE, with
    cancel and switch-to-manual returning from AWAITING_SELECTION to IDLE.
    """

    def __init__(self, session: Session, clock: Callable[[], datetime] = utc_now):
        """Initialize pipeline.

        Args:
            session: Session holding the stores and the classifier
            clock: Source of the current time
        """
        self.session = session
        self.clock = clock
        self._state = PipelineState.IDLE
        self._pending: Optional[PendingReel] = None
        self._offered: tuple[str, ...] = ()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def pending(self) -> Optional[PendingReel]:
        return self._pending

    def receive(self, text: str) -> PendingReel:
        """Accept shared text and open the pending slot.

        Args:
            text: Shared payload

        Returns:
            The pending context

        Raises:
            PipelineBusyError: If another item is still pending
        """
        if self._pending is not None:
            raise PipelineBusyError("Finish or cancel the current reel first")

        self._pending = pending_from_shared_text(text, to_iso(self.clock()))
        self._offered = ()
        self._state = PipelineState.RECEIVED
        logger.info(f"Received shared content: {self._pending.url}")
        return self._pending

    def request_suggestions(self, classify: bool = True) -> SelectionPrompt:
        """Classify the pending item (when possible) and await the user's choice.

        Classification runs only with a stored API key and auto-classify enabled;
        otherwise the prompt is flagged manual with no suggestions.

        Args:
            classify: False when the caller already knows the category

        Returns:
            SelectionPrompt

        Raises:
            PipelineStateError: If nothing was received
        """
        if self._pending is None or self._state != PipelineState.RECEIVED:
            raise PipelineStateError(f"Cannot request suggestions in state {self._state.value}")
        pending = self._pending

        can_classify = (
            classify and self.session.credentials.has() and self.session.settings.auto_classify
        )
        if not can_classify:
            logger.info("Classification skipped, routing to manual category entry")
            return self._await_selection(pending, None, [], manual=True)

        self._state = PipelineState.CLASSIFYING
        try:
            result = self.session.classifier.suggest(
                pending.caption, self.session.categories.custom()
            )
        except MissingCredentialError:
            logger.warning("API key disappeared before classification, routing to manual")
            return self._await_selection(pending, None, [], manual=True)

        return self._await_selection(
            pending, result.primary, list(result.suggestions), degraded=result.degraded
        )

    def handle_shared(self, text: str, classify: bool = True) -> SelectionPrompt:
        """Receive shared text and request suggestions in one call."""
        self.receive(text)
        return self.request_suggestions(classify)

    def _await_selection(
        self,
        pending: PendingReel,
        primary: Optional[str],
        suggestions: list[str],
        manual: bool = False,
        degraded: bool = False,
    ) -> SelectionPrompt:
        self._offered = tuple(name for name in (primary, *suggestions) if name)
        self._state = PipelineState.AWAITING_SELECTION
        return SelectionPrompt(
            pending=pending,
            primary=primary,
            suggestions=suggestions,
            categories=self.session.categories.list_all(),
            manual=manual,
            degraded=degraded,
        )

    def ensure_category(self, name: str) -> str:
        """Make sure a category exists in the registry.

        Returns:
            The registry's spelling of the category

        Raises:
            InvalidCategoryError: If the name is empty
            PersistenceError: If the registry write fails
        """
        return self.session.categories.ensure(name)

    def _resolve_category(self, name: str, offered: Iterable[str] = ()) -> str:
        """Pick the name to store, registering typed-in names first."""
        name = (name or "").strip()
        if not name:
            raise InvalidCategoryError("Category name must not be empty")
        if self.session.categories.contains(name):
            return self.session.categories.ensure(name)
        if name in offered or name == FALLBACK_CATEGORY:
            return name
        return self.ensure_category(name)

    def save_selection(self, category: str, notes: str = "") -> Reel:
        """Save the pending item with the chosen category.

        A category that is neither registered nor one of the offered suggestions is
        added to the registry before the reel is saved.

        Args:
            category: Chosen or typed category name
            notes: Optional notes

        Returns:
            The saved reel

        Raises:
            PipelineStateError: If no item is awaiting selection
            InvalidCategoryError: If the category is empty
            PersistenceError: If a write fails (the item stays pending)
        """
        if self._pending is None or self._state != PipelineState.AWAITING_SELECTION:
            raise PipelineStateError(f"Cannot save in state {self._state.value}")
        pending = self._pending

        chosen = self._resolve_category(category, self._offered)
        self._state = PipelineState.SAVING
        try:
            reel = self._commit(pending.url, pending.caption, chosen, notes, pending.timestamp)
        except PersistenceError:
            self._state = PipelineState.AWAITING_SELECTION
            raise

        self._clear()
        return reel

    def cancel(self) -> None:
        """Discard the pending item without saving anything."""
        if self._pending is not None:
            logger.info(f"Cancelled pending reel {self._pending.url}")
        self._clear()

    def switch_to_manual(self) -> ManualDraft:
        """Leave the suggestion flow, handing the content to manual entry.

        Raises:
            PipelineStateError: If no item is pending
        """
        if self._pending is None:
            raise PipelineStateError("No pending reel to classify manually")
        draft = ManualDraft(url=self._pending.url, caption=self._pending.caption)
        self._clear()
        logger.info("Switched pending reel to manual entry")
        return draft

    def classify_manual(self, caption: str) -> str:
        """Classify a typed caption into a single category.

        Raises:
            InvalidCategoryError: If the caption is empty
            MissingCredentialError: If no API key is stored
            ClassificationUnavailableError: If both models fail
        """
        if not (caption or "").strip():
            raise InvalidCategoryError("Enter some text to classify")
        return self.session.classifier.classify(caption)

    def save_manual(
        self, caption: str, category: str, url: Optional[str] = None, notes: str = ""
    ) -> Reel:
        """Save a manually entered reel after the user confirmed its category.

        Args:
            caption: Caption text
            category: Confirmed category (typed-in names are registered first)
            url: Shared link, defaults to the caption
            notes: Optional notes

        Returns:
            The saved reel

        Raises:
            InvalidCategoryError: If the category is empty
            PersistenceError: If a write fails
        """
        chosen = self._resolve_category(category)
        return self._commit(url or caption, caption, chosen, notes, to_iso(self.clock()))

    def _commit(self, url: str, caption: str, category: str, notes: str, timestamp: str) -> Reel:
        created = parse_timestamp(timestamp) or self.clock()
        reel = Reel(
            id=self.session.ids.next_id(),
            url=url,
            caption=caption,
            category=category,
            timestamp=timestamp,
            date_added=display_date(created),
            time_added=display_time(created),
            notes=(notes or "").strip(),
            app_version=APP_VERSION,
        )
        self.session.reels.insert(reel)
        REELS_SAVED.labels(category=category).inc()
        return reel

    def _clear(self) -> None:
        self._pending = None
        self._offered = ()
        self._state = PipelineState.IDLE
