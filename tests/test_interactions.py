"""Likes and comments."""
from concurrent.futures import ThreadPoolExecutor

import pytest

from errors import NotFoundError, ValidationError
from extensions import db
from interactions import add_comment, add_like, get_like_info, like_count, list_comments, remove_like
from models_activity import ActivityEntry
from models_interactions import Comment, ItemType, Like
from models_users import User


class TestLikes:

    def test_like_records_entry_and_point(self, app_ctx, make_user, make_content):
        make_user("u1")
        make_content("qa", 1)

        assert add_like("u1", "qa-0", ItemType.QA, "Ana") is True

        entry = ActivityEntry.query.filter_by(user_id="u1", category="interaction").one()
        assert entry.points == 1
        assert entry.activity_id == "qa-0"
        assert entry.details == {"action": "like", "itemType": "qa", "itemTitle": "Report 0", "userName": "Ana"}
        assert db.session.get(User, "u1").points == 1

    def test_like_is_idempotent(self, app_ctx, make_user):
        make_user("u1")

        assert add_like("u1", "doc-1", ItemType.ACCIDENT) is True
        assert add_like("u1", "doc-1", ItemType.ACCIDENT) is False

        assert like_count("doc-1", ItemType.ACCIDENT) == 1
        assert ActivityEntry.query.filter_by(category="interaction").count() == 1
        assert db.session.get(User, "u1").points == 1

    def test_same_id_different_type_is_a_different_item(self, app_ctx, make_user):
        make_user("u1")

        add_like("u1", "x1", ItemType.ACCIDENT)
        add_like("u1", "x1", ItemType.SENSIBILIZACAO)

        assert like_count("x1", ItemType.ACCIDENT) == 1
        assert like_count("x1", ItemType.SENSIBILIZACAO) == 1

    def test_concurrent_likes_store_one_row(self, app, make_user):
        make_user("u1")

        def _like(_):
            with app.app_context():
                return add_like("u1", "qa-7", ItemType.QA)

        with ThreadPoolExecutor(max_workers=8) as pool:
            created = list(pool.map(_like, range(16)))

        assert created.count(True) == 1
        with app.app_context():
            assert Like.query.count() == 1
            assert like_count("qa-7", ItemType.QA) == 1
            assert ActivityEntry.query.filter_by(category="interaction").count() == 1
            assert db.session.get(User, "u1").points == 1

    def test_unlike_then_like_again(self, app_ctx, make_user):
        make_user("u1")

        add_like("u1", "qa-1", ItemType.QA)
        remove_like("u1", "qa-1", ItemType.QA)
        add_like("u1", "qa-1", ItemType.QA)

        assert get_like_info("qa-1", ItemType.QA, "u1") == {"likeCount": 1, "userHasLiked": True}
        # Points are sticky: the unlike did not take the first point back.
        assert db.session.get(User, "u1").points == 2

    def test_unlike_missing_like(self, app_ctx):
        with pytest.raises(NotFoundError):
            remove_like("u1", "qa-1", ItemType.QA)

    def test_like_info_without_caller(self, app_ctx, make_user):
        make_user("u1")
        add_like("u1", "qa-1", ItemType.QA)

        assert get_like_info("qa-1", ItemType.QA) == {"likeCount": 1, "userHasLiked": False}
        assert get_like_info("qa-1", ItemType.QA, "u2") == {"likeCount": 1, "userHasLiked": False}


class TestComments:

    def test_500_chars_accepted_and_trimmed(self, app_ctx, make_user):
        make_user("u1")
        text = "a" * 500

        comment = add_comment("u1", "Ana", "qa-1", ItemType.QA, f"   {text}\n")

        assert comment.text == text
        entry = ActivityEntry.query.filter_by(category="interaction").one()
        assert entry.details["action"] == "comment"
        assert entry.details["commentText"] == text

    @pytest.mark.parametrize("text", ["a" * 501, "", "    ", None, 42])
    def test_invalid_text_rejected(self, app_ctx, make_user, text):
        make_user("u1")

        with pytest.raises(ValidationError) as exc:
            add_comment("u1", "Ana", "qa-1", ItemType.QA, text)

        assert exc.value.field == "text"
        assert Comment.query.count() == 0
        assert ActivityEntry.query.count() == 0

    def test_list_comments_paginates_newest_first(self, app_ctx, make_user):
        make_user("u1")
        for i in range(5):
            add_comment("u1", "Ana", "qa-1", ItemType.QA, f"comment {i}")
        add_comment("u1", "Ana", "qa-2", ItemType.QA, "elsewhere")

        first = list_comments("qa-1", ItemType.QA, 1, 2)
        last = list_comments("qa-1", ItemType.QA, 3, 2)

        assert [c["text"] for c in first["comments"]] == ["comment 4", "comment 3"]
        assert first["totalComments"] == 5
        assert first["totalPages"] == 3
        assert first["currentPage"] == 1
        assert [c["text"] for c in last["comments"]] == ["comment 0"]
        assert first["comments"][0]["user"] == {"id": "u1", "name": "Ana"}

    def test_list_comments_empty(self, app_ctx):
        page = list_comments("qa-1", ItemType.QA, 1, 10)

        assert page == {"comments": [], "currentPage": 1, "totalPages": 0, "totalComments": 0}

    @pytest.mark.parametrize("page, size", [(0, 10), (1, 0), (-1, 5)])
    def test_list_comments_rejects_bad_pagination(self, app_ctx, page, size):
        with pytest.raises(ValidationError):
            list_comments("qa-1", ItemType.QA, page, size)
