"""End-to-end tests for the command-line interface on JSON file storage."""

import json

import psycopg2
import pytest

from reelkeeper.cli import choose_category, main
from reelkeeper.models.reel import PendingReel
from reelkeeper.services.classifier import ReelClassifier
from reelkeeper.services.pipeline import SelectionPrompt

REEL_LINK = "https://instagram.com/reel/ABC123/"


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("REELKEEPER_STORAGE", "json")
    monkeypatch.setenv("REELKEEPER_DATA_DIR", str(tmp_path))
    return tmp_path


def answers(*replies):
    queue = list(replies)
    return lambda _prompt: queue.pop(0)


def saved_reels(data_dir):
    return json.loads((data_dir / "saved_reels.json").read_text())


def test_share_without_key_prompts_for_category(data_dir, capsys):
    assert main(["share", REEL_LINK], input_fn=answers("Gym")) == 0

    out = capsys.readouterr().out
    assert "pick a category manually" in out
    assert 'as "Gym"' in out
    reel = saved_reels(data_dir)[0]
    assert reel["url"] == REEL_LINK
    assert reel["caption"] == REEL_LINK
    assert reel["category"] == "Gym"


def test_share_empty_answer_cancels(data_dir, capsys):
    assert main(["share", REEL_LINK], input_fn=answers("")) == 0

    assert "Cancelled." in capsys.readouterr().out
    assert not (data_dir / "saved_reels.json").exists()


def test_share_with_new_category_registers_it(data_dir):
    main(["share", REEL_LINK, "--category", "Woodworking", "--notes", "jigs"])

    custom = json.loads((data_dir / "custom_categories.json").read_text())
    assert custom == ["Woodworking"]
    assert saved_reels(data_dir)[0]["notes"] == "jigs"


def test_save_list_and_delete(capsys):
    main(["save", "leg day routine", "Gym"])
    main(["save", "pasta carbonara", "Food"])
    capsys.readouterr()

    assert main(["list", "--search", "pasta"]) == 0
    out = capsys.readouterr().out
    assert "pasta carbonara" in out
    assert "leg day" not in out
    assert "Showing 1 of 2 reels" in out

    main(["list", "--category", "All"])
    assert "Showing 2 of 2 reels" in capsys.readouterr().out

    reel_id = out.split("]")[0].lstrip("[")
    assert main(["delete", reel_id]) == 0
    assert main(["delete", reel_id]) == 1
    main(["list"])
    assert "Showing 1 of 1 reels" in capsys.readouterr().out


def test_categories_management(capsys):
    assert main(["categories", "add", "Chess"]) == 0
    assert main(["categories", "add", "chess"]) == 1
    assert "already exists" in capsys.readouterr().err.lower()

    assert main(["categories", "remove", "Gym"]) == 1
    assert "built-in" in capsys.readouterr().out

    main(["categories"])
    assert "Chess (custom) (0)" in capsys.readouterr().out

    assert main(["categories", "remove", "chess"]) == 0
    main(["categories"])
    assert "Chess" not in capsys.readouterr().out


def test_key_commands(data_dir, capsys):
    main(["key"])
    assert "No API key set." in capsys.readouterr().out

    main(["key", "set", "AIzaSyABCDEFGH1234"])
    main(["key"])
    out = capsys.readouterr().out
    assert "AIza**********1234" in out
    assert "AIzaSyABCDEFGH1234" not in out

    main(["key", "clear"])
    main(["key"])
    assert "No API key set." in capsys.readouterr().out


def test_empty_key_is_an_error(capsys):
    assert main(["key", "set"], input_fn=answers("   ")) == 1
    assert "Error:" in capsys.readouterr().err


def test_classify_without_key_is_an_error(capsys):
    assert main(["classify", "leg day"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_settings_toggle(data_dir, capsys):
    main(["settings"])
    assert "auto-classify: on" in capsys.readouterr().out

    main(["settings", "--auto-classify", "off"])
    assert "auto-classify: off" in capsys.readouterr().out
    assert json.loads((data_dir / "app_settings.json").read_text()) == {"autoClassify": False}


def test_stats(capsys):
    main(["save", "a", "Gym"])
    main(["save", "b", "Gym"])
    main(["save", "c", "Food"])
    capsys.readouterr()

    main(["stats"])

    out = capsys.readouterr().out
    assert out.index("Gym: 2") < out.index("Food: 1")
    assert "Total: 3 reels" in out


class TestChooseCategory:
    prompt = SelectionPrompt(
        pending=PendingReel(url=REEL_LINK, caption=REEL_LINK, timestamp="t"),
        primary="Gym",
        suggestions=["Gym", "Sports", "Motivational"],
        categories=["Gym", "Motivational", "Sports"],
    )

    def test_number_picks_offered_option(self, capsys):
        assert choose_category(self.prompt, answers("2")) == "Sports"
        assert "1. Gym (recommended)" in capsys.readouterr().out

    def test_text_is_taken_as_name(self):
        assert choose_category(self.prompt, answers("Woodworking")) == "Woodworking"

    def test_out_of_range_number_is_a_name(self):
        assert choose_category(self.prompt, answers("9")) == "9"

    def test_empty_cancels(self):
        assert choose_category(self.prompt, answers("  ")) is None


def test_share_with_category_skips_classifier(data_dir, monkeypatch):
    def no_network(*args, **kwargs):
        raise AssertionError("classifier must not be called")

    monkeypatch.setattr(ReelClassifier, "suggest", no_network)
    main(["key", "set", "AIzaSyABCDEFGH1234"])

    assert main(["share", REEL_LINK, "--category", "Gym"]) == 0
    assert saved_reels(data_dir)[0]["category"] == "Gym"


def test_stats_metrics_prints_prometheus_text(capsys):
    main(["save", "a", "Gym"])
    capsys.readouterr()

    assert main(["stats", "--metrics"]) == 0

    out = capsys.readouterr().out
    assert 'reelkeeper_reels_saved_total{category="Gym"}' in out


def test_invalid_config_is_reported(monkeypatch, capsys):
    monkeypatch.setenv("REELKEEPER_STORAGE", "sqlite")

    assert main(["list"]) == 1
    assert "Error: REELKEEPER_STORAGE" in capsys.readouterr().err


def test_unreachable_database_is_reported(monkeypatch, capsys):
    monkeypatch.setenv("REELKEEPER_STORAGE", "postgres")
    for name, value in {
        "POSTGRES_HOST": "db.invalid",
        "POSTGRES_DB": "reels",
        "POSTGRES_USER": "keeper",
        "POSTGRES_PASSWORD": "secret",
    }.items():
        monkeypatch.setenv(name, value)

    def refuse(**kwargs):
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(psycopg2, "connect", refuse)

    assert main(["list"]) == 1
    assert "Error: could not connect to server" in capsys.readouterr().err
