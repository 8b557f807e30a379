"""Tests for the classification-and-save pipeline."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from reelkeeper.errors import (
    ClassificationUnavailableError,
    InvalidCategoryError,
    MissingCredentialError,
    PersistenceError,
    PipelineBusyError,
    PipelineStateError,
)
from reelkeeper.migrations import APP_VERSION
from reelkeeper.services.classifier import DEFAULT_PRIMARY_MODEL, DEFAULT_SECONDARY_MODEL
from reelkeeper.services.pipeline import PipelineState, ReelPipeline
from reelkeeper.services.session import Session
from reelkeeper.storage.kv import REELS_KEY, MemoryKeyValueStore
from reelkeeper.storage.reels import ReelStore

REEL_LINK = "https://instagram.com/reel/ABC123/"
NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def pipeline(session):
    return ReelPipeline(session, clock=lambda: NOW)


def suggest_answer(primary, suggestions):
    return json.dumps({"primary": primary, "suggestions": suggestions})


def test_receive_extracts_link(pipeline):
    pending = pipeline.receive(REEL_LINK)

    assert pending.url == REEL_LINK
    assert pending.caption == REEL_LINK
    assert pending.timestamp == "2024-05-01T10:00:00.000+00:00"
    assert pipeline.state == PipelineState.RECEIVED


def test_second_receive_is_rejected(pipeline):
    pipeline.receive(REEL_LINK)

    with pytest.raises(PipelineBusyError):
        pipeline.receive("another")
    assert pipeline.pending.url == REEL_LINK


def test_suggestions_then_save(pipeline, session, gemini, api_key):
    gemini.answer(DEFAULT_PRIMARY_MODEL, suggest_answer("Gym", ["Gym", "Sports", "Motivational"]))

    prompt = pipeline.handle_shared(REEL_LINK)

    assert pipeline.state == PipelineState.AWAITING_SELECTION
    assert prompt.primary == "Gym"
    assert prompt.suggestions == ["Gym", "Sports", "Motivational"]
    assert not prompt.manual
    assert prompt.categories == session.categories.list_all()

    reel = pipeline.save_selection("Sports", notes=" great form ")

    assert pipeline.state == PipelineState.IDLE
    assert pipeline.pending is None
    assert reel.category == "Sports"
    assert reel.url == REEL_LINK
    assert reel.notes == "great form"
    assert reel.timestamp == "2024-05-01T10:00:00.000+00:00"
    assert reel.date_added and reel.time_added
    assert reel.app_version == APP_VERSION
    assert session.reels.all()[0] == reel


def test_saved_reel_survives_reload(pipeline, kv, gemini, api_key):
    gemini.answer(DEFAULT_PRIMARY_MODEL, suggest_answer("Gym", ["Gym"]))
    pipeline.handle_shared(REEL_LINK)

    reel = pipeline.save_selection("Gym")

    assert ReelStore(kv).all()[0] == reel


def test_classifier_sees_caption_and_custom_categories(pipeline, session, gemini, api_key):
    session.categories.add("Woodworking")
    gemini.answer(DEFAULT_PRIMARY_MODEL, suggest_answer("Woodworking", ["Woodworking"]))

    prompt = pipeline.handle_shared("dovetail joint tutorial")

    assert prompt.primary == "Woodworking"
    sent = json.loads(gemini.requests[0].content)["contents"][0]["parts"][0]["text"]
    assert "Woodworking" in sent
    assert sent.endswith("Text to classify: dovetail joint tutorial")


def test_classifier_failure_still_reaches_selection(pipeline, gemini, api_key):
    gemini.raise_error(DEFAULT_PRIMARY_MODEL, httpx.ReadTimeout("timed out"))
    gemini.fail(DEFAULT_SECONDARY_MODEL, status=500)

    prompt = pipeline.handle_shared(REEL_LINK)

    assert pipeline.state == PipelineState.AWAITING_SELECTION
    assert prompt.degraded
    assert prompt.primary == "Other"
    assert len(prompt.suggestions) == 3


def test_without_credential_routes_to_manual(pipeline, gemini):
    prompt = pipeline.handle_shared(REEL_LINK)

    assert prompt.manual
    assert prompt.suggestions == []
    assert prompt.primary is None
    assert gemini.calls == []
    assert pipeline.state == PipelineState.AWAITING_SELECTION


def test_auto_classify_off_routes_to_manual(pipeline, session, gemini, api_key):
    session.settings.set_auto_classify(False)

    prompt = pipeline.handle_shared(REEL_LINK)

    assert prompt.manual
    assert gemini.calls == []


def test_new_category_is_registered_before_save(pipeline, session):
    pipeline.handle_shared(REEL_LINK)

    reel = pipeline.save_selection("Woodworking")

    assert "Woodworking" in session.categories.custom()
    assert reel.category == "Woodworking"


def test_existing_category_uses_registry_spelling(pipeline, session):
    pipeline.handle_shared(REEL_LINK)

    reel = pipeline.save_selection("gym")

    assert reel.category == "Gym"
    assert session.categories.custom() == []


def test_offered_fallback_is_not_registered(pipeline, session, gemini, api_key):
    gemini.answer(DEFAULT_PRIMARY_MODEL, "garbage that is not json {")
    pipeline.handle_shared(REEL_LINK)

    reel = pipeline.save_selection("Other")

    assert reel.category == "Other"
    assert session.categories.custom() == []


def test_ensure_category_is_independent_of_save(pipeline, session):
    pipeline.handle_shared(REEL_LINK)

    assert pipeline.ensure_category("Chess") == "Chess"
    assert pipeline.ensure_category("chess") == "Chess"

    assert session.categories.custom() == ["Chess"]
    assert len(session.reels) == 0
    assert pipeline.state == PipelineState.AWAITING_SELECTION


def test_empty_selection_is_rejected(pipeline, session):
    pipeline.handle_shared(REEL_LINK)

    with pytest.raises(InvalidCategoryError):
        pipeline.save_selection("   ")
    assert pipeline.state == PipelineState.AWAITING_SELECTION


def test_cancel_discards_without_saving(pipeline, session, kv):
    pipeline.handle_shared(REEL_LINK)

    pipeline.cancel()

    assert pipeline.state == PipelineState.IDLE
    assert pipeline.pending is None
    assert kv.get(REELS_KEY) is None
    pipeline.receive("next one")


def test_save_without_pending_is_rejected(pipeline):
    with pytest.raises(PipelineStateError):
        pipeline.save_selection("Gym")


def test_suggestions_without_receive_are_rejected(pipeline):
    with pytest.raises(PipelineStateError):
        pipeline.request_suggestions()


def test_switch_to_manual_hands_back_draft(pipeline):
    pipeline.handle_shared("pasta recipe")

    draft = pipeline.switch_to_manual()

    assert draft.url == "pasta recipe"
    assert draft.caption == "pasta recipe"
    assert pipeline.pending is None
    assert pipeline.state == PipelineState.IDLE


def test_persistence_failure_keeps_item_pending(gemini, classifier):
    class FailingReelWrites(MemoryKeyValueStore):
        def set(self, key, value):
            if key == REELS_KEY:
                raise PersistenceError("disk full")
            super().set(key, value)

    session = Session(FailingReelWrites(), classifier)
    pipeline = ReelPipeline(session, clock=lambda: NOW)
    pipeline.handle_shared(REEL_LINK)

    with pytest.raises(PersistenceError):
        pipeline.save_selection("Gym")

    assert pipeline.state == PipelineState.AWAITING_SELECTION
    assert pipeline.pending is not None
    assert session.reels.all() == []


class TestManualEntry:
    def test_classify_manual_requires_credential(self, pipeline, gemini):
        with pytest.raises(MissingCredentialError):
            pipeline.classify_manual("hello")
        assert gemini.calls == []

    def test_classify_manual_rejects_empty_text(self, pipeline):
        with pytest.raises(InvalidCategoryError):
            pipeline.classify_manual("  ")

    def test_classify_manual_uses_single_category_mode(self, pipeline, gemini, api_key):
        gemini.raise_error(DEFAULT_PRIMARY_MODEL, httpx.ReadTimeout("timed out"))
        gemini.answer(DEFAULT_SECONDARY_MODEL, "Gym")

        assert pipeline.classify_manual("leg day") == "Gym"

    def test_classify_manual_surfaces_outage(self, pipeline, gemini, api_key):
        gemini.fail(DEFAULT_PRIMARY_MODEL, status=500)
        gemini.fail(DEFAULT_SECONDARY_MODEL, status=500)

        with pytest.raises(ClassificationUnavailableError):
            pipeline.classify_manual("leg day")

    def test_save_manual(self, pipeline, session):
        reel = pipeline.save_manual("leg day", "Gym", notes="monday")

        assert reel.url == "leg day"
        assert reel.caption == "leg day"
        assert reel.category == "Gym"
        assert reel.notes == "monday"
        assert session.reels.all() == [reel]

    def test_save_manual_registers_typed_category(self, pipeline, session):
        pipeline.save_manual("ghazal lines", "sayari", url="https://instagram.com/reel/Z/")

        assert "sayari" in session.categories.custom()

    def test_manual_ids_are_unique_and_increasing(self, pipeline):
        first = pipeline.save_manual("a", "Gym")
        second = pipeline.save_manual("b", "Gym")

        assert int(second.id) > int(first.id)


def test_known_category_skips_classification(pipeline, gemini, api_key):
    prompt = pipeline.handle_shared(REEL_LINK, classify=False)

    assert prompt.manual
    assert gemini.calls == []
    assert pipeline.save_selection("Gym").category == "Gym"
