"""Achievement evaluation, manual awards and the medal catalog."""
from concurrent.futures import ThreadPoolExecutor

import pytest

import medals
from activity import append_activity, record_activity
from errors import ConflictError, NotFoundError, ValidationError
from extensions import db
from medals import (
    assign_directly,
    create_medal,
    delete_medal,
    evaluate,
    slugify,
    unacquired_medals,
    update_medal,
    user_medals,
)
from models_activity import ActivityEntry
from models_medals import Medal, TriggerAction, UserMedal
from models_users import User


def _medal_entries(user_id):
    return ActivityEntry.query.filter_by(user_id=user_id, category="medal").all()


class TestEvaluation:

    def test_scenario_fifth_safety_video_awards_once(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("safety-viewer", "itemWatched", 5, trigger_category="Safety")

        for i in range(4):
            _, new = record_activity("u1", "video", f"vid-{i}", 10, {"category": "Safety"})
            assert new == []

        _, new = record_activity("u1", "video", "vid-4", 10, {"category": "Safety"})
        assert [m.id for m in new] == ["safety-viewer"]

        _, new = record_activity("u1", "video", "vid-5", 10, {"category": "Safety"})
        assert new == []

        assert UserMedal.query.filter_by(user_id="u1").count() == 1
        entries = _medal_entries("u1")
        assert len(entries) == 1
        assert entries[0].points == 0
        assert entries[0].details["name"] == "Safety Viewer"
        # Medal entries are worth nothing; points come from the six videos.
        assert db.session.get(User, "u1").points == 60

    def test_category_scoping_ignores_other_categories(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("safety-viewer", "itemWatched", 3, trigger_category="Safety")

        for i in range(3):
            _, new = record_activity("u1", "video", f"q-{i}", 1, {"category": "Quality"})
            assert new == []

        _, new = record_activity("u1", "video", "s-0", 1, {"category": "Safety"})
        assert new == []
        assert UserMedal.query.count() == 0

    def test_unscoped_medal_counts_every_category(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("any-viewer", "itemWatched", 2)

        record_activity("u1", "video", "a", 1, {"category": "Quality"})
        _, new = record_activity("u1", "video", "b", 1, {"category": "Safety"})

        assert [m.id for m in new] == ["any-viewer"]

    def test_repeated_action_counts_each_time(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("reporter-2", "itemReported", 2)

        record_activity("u1", "incident", "qa-1", 0)
        _, new = record_activity("u1", "incident", "qa-1", 0)

        assert [m.id for m in new] == ["reporter-2"]

    def test_interaction_and_medal_entries_never_trigger(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("reporter", "itemReported", 1)

        _, new = record_activity("u1", "interaction", "qa-1", 1, {"action": "like"})
        assert new == []
        _, new = record_activity("u1", "medal", "something", 0, {"name": "X"})
        assert new == []

    def test_no_candidates_returns_early(self, app_ctx, make_user, make_medal, query_counter):
        make_user("u1")
        make_medal("reporter", "itemReported", 1)
        assign_directly("u1", "reporter")

        with query_counter() as counter:
            assert evaluate("u1", TriggerAction.ITEM_REPORTED, {}) == []

        # Definitions and held awards only; no count query.
        assert counter.count == 2

    def test_evaluation_failure_does_not_fail_the_append(self, app_ctx, make_user, make_medal, monkeypatch):
        make_user("u1")
        make_medal("reporter", "itemReported", 1)

        def _boom(*args, **kwargs):
            raise RuntimeError("rules engine down")

        monkeypatch.setattr(medals, "evaluate", _boom)

        entry, new = record_activity("u1", "incident", "qa-1", 5)

        assert new == []
        assert entry.id is not None
        assert db.session.get(User, "u1").points == 5

    def test_failure_on_later_medal_still_reports_earlier_award(self, app_ctx, make_user, make_medal, monkeypatch):
        make_user("u1")
        make_medal("a-first", "itemReported", 1)
        make_medal("b-second", "itemReported", 1)
        real_award = medals._award

        def _flaky_award(user_id, medal, manual=False):
            if medal.id == "b-second":
                raise RuntimeError("store hiccup")
            return real_award(user_id, medal, manual)

        monkeypatch.setattr(medals, "_award", _flaky_award)

        _, new = record_activity("u1", "incident", "qa-1", 5)

        assert [m.id for m in new] == ["a-first"]
        assert [a.medal_id for a in UserMedal.query.filter_by(user_id="u1")] == ["a-first"]

    def test_concurrent_qualifying_activities_award_at_most_once(self, app, make_user, make_medal):
        make_user("u1")
        make_medal("reporter-3", "itemReported", 3)

        def _report(i):
            with app.app_context():
                _, new = record_activity("u1", "incident", f"qa-{i}", 5)
                return [m.id for m in new]

        with ThreadPoolExecutor(max_workers=3) as pool:
            results = list(pool.map(_report, range(3)))

        with app.app_context():
            assert UserMedal.query.filter_by(user_id="u1", medal_id="reporter-3").count() == 1
            assert len(_medal_entries("u1")) == 1
            assert sum(len(r) for r in results) == 1


class TestManualAward:

    def test_assign_directly_writes_award_and_entry(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("hero", "itemReported", 50)

        medal, created = assign_directly("u1", "hero")

        assert created is True
        assert medal.id == "hero"
        entries = _medal_entries("u1")
        assert len(entries) == 1
        assert entries[0].details["manual"] is True

    def test_assign_directly_is_idempotent(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("hero", "itemReported", 50)

        assign_directly("u1", "hero")
        _, created = assign_directly("u1", "hero")

        assert created is False
        assert UserMedal.query.count() == 1
        assert len(_medal_entries("u1")) == 1

    def test_assign_unknown_medal(self, app_ctx, make_user):
        make_user("u1")

        with pytest.raises(NotFoundError):
            assign_directly("u1", "nope")


class TestCatalog:

    def test_slugify(self):
        assert slugify("  Safety  First!! ") == "safety-first"
        assert slugify("Prevenção Total") == "preveno-total"

    def test_create_normalizes_slug(self, app_ctx):
        medal = create_medal(
            {
                "id": "Quality Master",
                "name": "Quality Master",
                "description": "Three quality trainings",
                "triggerAction": "trainingCompleted",
                "triggerCategory": "Quality",
                "requiredCount": 3,
            }
        )

        assert medal.id == "quality-master"
        assert db.session.get(Medal, "quality-master").required_count == 3

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"triggerAction": "videoWatched"}, "triggerAction"),
            ({"requiredCount": 0}, "requiredCount"),
            ({"requiredCount": "3"}, "requiredCount"),
            ({"triggerCategory": None}, "triggerCategory"),
            ({"name": "  "}, "name"),
        ],
    )
    def test_create_validation(self, app_ctx, overrides, field):
        data = {
            "id": "viewer",
            "name": "Viewer",
            "description": "Watch videos",
            "triggerAction": "itemWatched",
            "triggerCategory": "Safety",
            "requiredCount": 2,
        }
        data.update(overrides)

        with pytest.raises(ValidationError) as exc:
            create_medal(data)

        assert exc.value.field == field

    def test_create_duplicate_conflicts(self, app_ctx, make_medal):
        make_medal("reporter", "itemReported", 1)

        with pytest.raises(ConflictError):
            create_medal({"id": "Reporter", "name": "R", "description": "d", "triggerAction": "itemReported"})

    def test_update_validates_merged_definition(self, app_ctx, make_medal):
        make_medal("reporter", "itemReported", 1)

        medal = update_medal("reporter", {"requiredCount": 4, "name": "Seasoned reporter"})
        assert medal.required_count == 4
        assert medal.name == "Seasoned reporter"

        # Switching to a scoped action without a category is rejected.
        with pytest.raises(ValidationError):
            update_medal("reporter", {"triggerAction": "itemWatched"})

    def test_delete_keeps_awards(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("reporter", "itemReported", 1)
        assign_directly("u1", "reporter")

        delete_medal("reporter")

        assert db.session.get(Medal, "reporter") is None
        assert UserMedal.query.filter_by(user_id="u1").count() == 1
        with pytest.raises(NotFoundError):
            delete_medal("reporter")

    def test_user_and_unacquired_lists(self, app_ctx, make_user, make_medal):
        make_user("u1")
        make_medal("a", "itemReported", 1)
        make_medal("b", "itemReported", 2)
        assign_directly("u1", "a")

        owned = user_medals("u1")
        missing = unacquired_medals("u1")

        assert [m["id"] for m in owned] == ["a"]
        assert owned[0]["acquired"] is True
        assert owned[0]["dateEarned"]
        assert [m["id"] for m in missing] == ["b"]
        assert missing[0]["acquired"] is False


def test_award_is_atomic_with_its_ledger_entry(app_ctx, make_user, make_medal):
    make_user("u1")
    make_medal("reporter", "itemReported", 1)
    # An award row written outside the engine: the next award attempt must not
    # leave a dangling medal entry behind.
    db.session.add(UserMedal(user_id="u1", medal_id="reporter"))
    db.session.commit()

    append_activity("u1", "incident", "qa-1", 0)
    assert medals._award("u1", db.session.get(Medal, "reporter")) is False

    assert _medal_entries("u1") == []
