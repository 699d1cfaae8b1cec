"""
tests/test_services.py — Service Layer Integration Tests
==========================================================

Rewards, quest claims, point adjustments, admin badge tools, settings and
discussions against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_discussion, make_quest, make_reward, make_user, points_of
from sephirots.database.models import (
    AdminActionType,
    AdminLog,
    Badge,
    BadgeProgress,
    QuestStatus,
    Reward,
    RewardRedemption,
    SpecialEffect,
    UserBadge,
    UserQuest,
)
from sephirots.services import (
    activity_service,
    admin_service,
    badge_service,
    discussion_service,
    event_service,
    quest_service,
    reward_service,
    settings_service,
    user_service,
)
from sephirots.services.errors import (
    ConflictError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _audit_rows(engine, target_table: str) -> list[AdminLog]:
    with Session(engine) as session:
        return session.scalars(
            select(AdminLog).where(AdminLog.target_table == target_table).order_by(AdminLog.id)
        ).all()


# ===========================================================================
# Rewards
# ===========================================================================
class TestRewardRedemption:
    def test_success_deducts_points(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=250)
        reward = make_reward(seeded_engine, points_cost=100)
        result = reward_service.redeem_reward(seeded_engine, user, reward)
        assert result == {"success": True, "rewardId": reward, "pointsSpent": 100, "points": 150}
        with Session(seeded_engine) as session:
            assert session.scalar(select(func.count()).select_from(RewardRedemption)) == 1

    def test_exact_balance_is_enough(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=100)
        reward = make_reward(seeded_engine, points_cost=100)
        assert reward_service.redeem_reward(seeded_engine, user, reward)["points"] == 0

    def test_insufficient_points_carries_shortfall(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=1200)
        reward = make_reward(seeded_engine, points_cost=1500)
        with pytest.raises(InsufficientPointsError) as excinfo:
            reward_service.redeem_reward(seeded_engine, user, reward)
        assert excinfo.value.points_needed == 300
        assert excinfo.value.to_dict()["pointsNeeded"] == 300
        assert points_of(seeded_engine, user) == 1200

    def test_failed_spend_restores_stock(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=10)
        reward = make_reward(seeded_engine, points_cost=100, stock=2)
        with pytest.raises(InsufficientPointsError):
            reward_service.redeem_reward(seeded_engine, user, reward)
        with Session(seeded_engine) as session:
            assert session.get(Reward, reward).stock == 2

    def test_out_of_stock(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=1000)
        reward = make_reward(seeded_engine, points_cost=100, stock=1)
        reward_service.redeem_reward(seeded_engine, user, reward)
        with pytest.raises(ConflictError, match="out of stock"):
            reward_service.redeem_reward(seeded_engine, user, reward)
        assert points_of(seeded_engine, user) == 900

    def test_inactive_reward(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=1000)
        reward = make_reward(seeded_engine, active=False)
        with pytest.raises(NotFoundError):
            reward_service.redeem_reward(seeded_engine, user, reward)

    def test_listing_flags_affordability(self, seeded_engine):
        user = make_user(seeded_engine, "buyer", points=600)
        rewards = reward_service.list_rewards(seeded_engine, user_id=user)
        assert rewards
        for item in rewards:
            assert item["canAfford"] == (item["pointsCost"] <= 600)
            assert item["pointsNeeded"] == max(0, item["pointsCost"] - 600)

    def test_listing_by_category(self, seeded_engine):
        rewards = reward_service.list_rewards(seeded_engine, category="physical")
        assert rewards and {r["category"] for r in rewards} == {"physical"}
        assert "canAfford" not in rewards[0]
        with pytest.raises(ValidationError):
            reward_service.list_rewards(seeded_engine, category="snacks")

    def test_categories(self):
        assert [c["id"] for c in reward_service.list_categories()] == [
            "digital", "physical", "experiences", "community",
        ]


# ===========================================================================
# Quests
# ===========================================================================
class TestQuestService:
    def test_progress_then_claim(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"profile_completed": True, "comments_posted": 3}, points=40)

        partial = quest_service.update_progress(
            seeded_engine, user, quest, {"profile_completed": True}, actor_id=admin, now=NOW,
        )
        assert partial["percentage"] == 50
        assert partial["status"] == QuestStatus.IN_PROGRESS
        assert not partial["canClaim"]
        with pytest.raises(ValidationError, match="1/2"):
            quest_service.complete_quest(seeded_engine, user, quest, now=NOW)

        done = quest_service.update_progress(
            seeded_engine, user, quest, {"comments_posted": 3}, actor_id=admin, now=NOW,
        )
        assert done["canClaim"]
        assert quest_service.complete_quest(seeded_engine, user, quest, now=NOW) == {
            "pointsAwarded": 40, "badgeAwarded": False,
        }
        assert points_of(seeded_engine, user) == 40

        with pytest.raises(ConflictError):
            quest_service.complete_quest(seeded_engine, user, quest, now=NOW)
        assert points_of(seeded_engine, user) == 40

    def test_progress_correction_is_audited(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"visits": 2})
        quest_service.update_progress(seeded_engine, user, quest, {"visits": 1}, actor_id=admin, now=NOW)
        with Session(seeded_engine) as session:
            entry = session.scalar(select(AdminLog).where(AdminLog.target_table == "user_quests"))
            assert entry.actor_id == admin
            assert entry.target_id == f"{user}:{quest}"
            assert entry.before_snapshot["progress"] == {}
            assert entry.after_snapshot["progress"] == {"visits": 1}

    def test_claim_awards_badge_reward(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "quester")
        with Session(seeded_engine) as session:
            badge = session.scalar(select(Badge).where(Badge.name == "Seeker"))
            badge_id, badge_points = badge.id, badge.points
        quest = make_quest(seeded_engine, {"visits": 1}, points=10, badge_reward_id=badge_id)
        quest_service.update_progress(seeded_engine, user, quest, {"visits": 1}, actor_id=admin, now=NOW)
        result = quest_service.complete_quest(seeded_engine, user, quest, now=NOW)
        assert result["badgeAwarded"]
        assert points_of(seeded_engine, user) == 10 + badge_points

    def test_claim_lost_to_a_concurrent_claim_pays_nothing(self, seeded_engine, monkeypatch):
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"visits": 1}, points=30)
        with Session(seeded_engine) as session:
            session.add(UserQuest(
                user_id=user, quest_id=quest, progress={"visits": 1},
                status=QuestStatus.COMPLETED.value, completed_at=NOW,
            ))
            session.commit()

        real_load = quest_service._load

        def load_before_other_claim_committed(session, user_id, quest_id):
            loaded, user_quest = real_load(session, user_id, quest_id)
            session.expunge(user_quest)
            user_quest.status = QuestStatus.IN_PROGRESS.value
            return loaded, user_quest

        monkeypatch.setattr(quest_service, "_load", load_before_other_claim_committed)
        with pytest.raises(ConflictError, match="already completed"):
            quest_service.complete_quest(seeded_engine, user, quest, now=NOW)
        assert points_of(seeded_engine, user) == 0

    def test_unknown_progress_keys_rejected(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"visits": 1})
        with pytest.raises(ValidationError, match="Unknown requirement"):
            quest_service.update_progress(seeded_engine, user, quest, {"likes": 9}, actor_id=1, now=NOW)

    def test_expired_quest(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"visits": 1}, expires_at=NOW - timedelta(hours=1))
        with pytest.raises(ValidationError, match="expired"):
            quest_service.update_progress(seeded_engine, user, quest, {"visits": 1}, actor_id=1, now=NOW)
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user, now=NOW)}
        assert listed[quest]["status"] == QuestStatus.EXPIRED

    def test_list_shows_untouched_quests(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"visits": 2})
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user, now=NOW)}
        assert listed[quest]["status"] == QuestStatus.NOT_STARTED
        assert listed[quest]["percentage"] == 0

    def test_missing_quest(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        with pytest.raises(NotFoundError):
            quest_service.complete_quest(seeded_engine, user, 9999, now=NOW)


class TestServerRecordedProgress:
    def test_comments_advance_quests(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        user = make_user(seeded_engine, "quester")
        discussion = make_discussion(seeded_engine, author)
        quest = make_quest(seeded_engine, {"comments_posted": 2}, points=20)

        for text in ("first", "second"):
            discussion_service.create_comment(
                seeded_engine, user_id=user, discussion_id=discussion, content=text,
            )
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user)}
        assert listed[quest]["progress"] == {"comments_posted": 2}
        assert listed[quest]["canClaim"]
        assert quest_service.complete_quest(seeded_engine, user, quest)["pointsAwarded"] == 20

    def test_first_reply_counts_as_joining_once(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        user = make_user(seeded_engine, "quester")
        discussion = make_discussion(seeded_engine, author)
        quest = make_quest(seeded_engine, {"discussions_joined": 2})
        for text in ("one", "two"):
            discussion_service.create_comment(
                seeded_engine, user_id=user, discussion_id=discussion, content=text,
            )
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user)}
        assert listed[quest]["progress"] == {"discussions_joined": 1}

    def test_completed_profile_sets_boolean_requirement(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        quest = make_quest(seeded_engine, {"profile_completed": True})
        user_service.update_profile(seeded_engine, user, actor_id=user, bio="Walker of paths")
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user)}
        assert not listed[quest]["canClaim"]

        user_service.update_profile(seeded_engine, user, actor_id=user, interests=["Tarot"])
        listed = {q["id"]: q for q in quest_service.list_quests(seeded_engine, user)}
        assert listed[quest]["progress"] == {"profile_completed": True}
        assert listed[quest]["canClaim"]

    def test_completed_quests_stop_counting(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        user = make_user(seeded_engine, "quester")
        discussion = make_discussion(seeded_engine, author)
        quest = make_quest(seeded_engine, {"comments_posted": 1})
        discussion_service.create_comment(
            seeded_engine, user_id=user, discussion_id=discussion, content="done",
        )
        quest_service.complete_quest(seeded_engine, user, quest)
        discussion_service.create_comment(
            seeded_engine, user_id=user, discussion_id=discussion, content="again",
        )
        with Session(seeded_engine) as session:
            row = session.get(UserQuest, (user, quest))
            assert row.progress == {"comments_posted": 1}
            assert row.status == QuestStatus.COMPLETED

    def test_expired_quests_are_not_advanced(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        user = make_user(seeded_engine, "quester")
        discussion = make_discussion(seeded_engine, author)
        quest = make_quest(
            seeded_engine, {"comments_posted": 1},
            expires_at=datetime.now(UTC) - timedelta(hours=1),
        )
        discussion_service.create_comment(
            seeded_engine, user_id=user, discussion_id=discussion, content="late",
        )
        with Session(seeded_engine) as session:
            assert session.get(UserQuest, (user, quest)) is None

    def test_unknown_activity_is_rejected(self, seeded_engine):
        user = make_user(seeded_engine, "quester")
        with Session(seeded_engine) as session, pytest.raises(ValueError):
            activity_service.record_activity(session, user, "logins")


# ===========================================================================
# Points and tiers
# ===========================================================================
class TestPointAdjustments:
    def test_positive_adjustment_is_audited(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "member", points=10)
        result = user_service.adjust_points(
            seeded_engine, user_id=user, delta=90, actor_id=admin, reason="event host",
        )
        assert result["points"] == 100
        (row,) = _audit_rows(seeded_engine, "users")
        assert row.action_type == AdminActionType.ADJUST_POINTS
        assert row.before_snapshot == {"points": 10}
        assert row.after_snapshot == {"points": 100}
        assert row.reason == "event host"

    def test_cannot_go_negative(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "member", points=10)
        with pytest.raises(ValidationError):
            user_service.adjust_points(
                seeded_engine, user_id=user, delta=-11, actor_id=admin, reason="oops",
            )
        assert points_of(seeded_engine, user) == 10
        assert _audit_rows(seeded_engine, "users") == []

    def test_zero_delta(self, seeded_engine):
        user = make_user(seeded_engine, "member")
        with pytest.raises(ValidationError):
            user_service.adjust_points(seeded_engine, user_id=user, delta=0, actor_id=1, reason="")

    def test_tier_progress_reads_settings(self, seeded_engine):
        user = make_user(seeded_engine, "member", points=1200)
        progress = user_service.get_tier_progress(seeded_engine, user)
        assert progress["tierIndex"] == 1
        assert progress["percentage"] == pytest.approx(5.0)
        assert progress["pointsToNext"] == 3800


# ===========================================================================
# Admin badge tools
# ===========================================================================
class TestAdminBadges:
    def test_create_badge_is_audited(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        badge = admin_service.create_badge(
            seeded_engine, actor_id=admin, name="Moon Watcher", description="Watched the moon",
            icon="🌕", tier="silver", special_effect="enhanced_glow",
        )
        assert badge.special_effect == SpecialEffect.ENHANCED_GLOW
        (row,) = [r for r in _audit_rows(seeded_engine, "badges") if r.target_id == str(badge.id)]
        assert row.action_type == AdminActionType.CREATE

    def test_duplicate_name_conflicts(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        with pytest.raises(ConflictError):
            admin_service.create_badge(
                seeded_engine, actor_id=admin, name="Seeker", description="", icon="?",
            )

    @pytest.mark.parametrize("kwargs", [
        {"tier": "mithril"},
        {"special_effect": "sparkles"},
        {"is_limited": True},
    ])
    def test_invalid_badge_fields(self, seeded_engine, kwargs):
        with pytest.raises(ValidationError):
            admin_service.create_badge(
                seeded_engine, actor_id=1, name="Odd", description="", icon="?", **kwargs,
            )

    def test_grant_once_and_respect_supply(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        first = make_user(seeded_engine, "first")
        second = make_user(seeded_engine, "second")
        badge = admin_service.create_badge(
            seeded_engine, actor_id=admin, name="Founding Circle", description="",
            icon="⭕", points=15, is_limited=True, max_supply=1,
        )
        assert admin_service.grant_badge(seeded_engine, badge_id=badge.id, user_id=first, actor_id=admin)
        assert not admin_service.grant_badge(
            seeded_engine, badge_id=badge.id, user_id=first, actor_id=admin,
        )
        assert points_of(seeded_engine, first) == 15
        with pytest.raises(ConflictError, match="supply"):
            admin_service.grant_badge(seeded_engine, badge_id=badge.id, user_id=second, actor_id=admin)
        with Session(seeded_engine) as session:
            assert session.scalar(select(func.count()).select_from(UserBadge)) == 1
        grants = [
            r for r in _audit_rows(seeded_engine, "user_badges")
            if r.action_type == AdminActionType.GRANT_BADGE
        ]
        assert len(grants) == 1


# ===========================================================================
# Settings
# ===========================================================================
class TestSettings:
    def test_update_is_audited_with_snapshots(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        settings_service.bulk_upsert(
            seeded_engine, [{"key": "points.vote_proposal", "value": 7}], actor_id=admin,
        )
        (row,) = _audit_rows(seeded_engine, "settings")
        assert row.action_type == AdminActionType.UPDATE
        assert row.before_snapshot["value"] == 5
        assert row.after_snapshot["value"] == 7
        with Session(seeded_engine) as session:
            assert settings_service.get_int_setting(session, "points.vote_proposal") == 7

    def test_unchanged_value_is_not_logged(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        current = {
            s["key"]: s for s in settings_service.get_all_settings(seeded_engine)
        }["points.vote_amendment"]
        settings_service.bulk_upsert(seeded_engine, [current], actor_id=admin)
        assert _audit_rows(seeded_engine, "settings") == []

    def test_new_key_is_created(self, seeded_engine):
        settings_service.bulk_upsert(
            seeded_engine, [{"key": "ui.banner", "value": "Welcome", "category": "ui"}], actor_id=1,
        )
        (row,) = _audit_rows(seeded_engine, "settings")
        assert row.action_type == AdminActionType.CREATE

    def test_invalid_thresholds_write_nothing(self, seeded_engine):
        with pytest.raises(ValidationError, match="points.tier_thresholds"):
            settings_service.bulk_upsert(seeded_engine, [
                {"key": "points.vote_proposal", "value": 9},
                {"key": "points.tier_thresholds", "value": [0, 500, 100]},
            ], actor_id=1)
        with Session(seeded_engine) as session:
            assert settings_service.get_int_setting(session, "points.vote_proposal") == 5

    def test_invalid_donation_tiers_rejected(self, seeded_engine):
        with pytest.raises(ValidationError):
            settings_service.bulk_upsert(
                seeded_engine, [{"key": "donations.tiers", "value": [{"slug": "x"}]}], actor_id=1,
            )

    def test_corrupt_stored_thresholds_fall_back(self, seeded_engine):
        from sephirots.database.models import Setting

        with Session(seeded_engine) as session:
            session.get(Setting, "points.tier_thresholds").value_json = "[5, 1]"
            session.commit()
            assert settings_service.get_tier_thresholds(session) == (0, 1000, 5000, 10000, 25000)


# ===========================================================================
# Discussions
# ===========================================================================
class TestDiscussions:
    def test_create_normalizes_tags(self, seeded_engine):
        user = make_user(seeded_engine, "writer")
        result = discussion_service.create_discussion(
            seeded_engine, user_id=user, title="Dreams", content="Share yours",
            category="wellbeing", tags=[" Dreams", "dreams", "Yesod", ""],
        )
        assert result["tags"] == ["dreams", "yesod"]

    def test_unknown_category(self, seeded_engine):
        user = make_user(seeded_engine, "writer")
        with pytest.raises(ValidationError):
            discussion_service.create_discussion(
                seeded_engine, user_id=user, title="x", content="y", category="gossip",
            )

    def test_comment_counts_and_view(self, seeded_engine):
        user = make_user(seeded_engine, "writer")
        discussion = make_discussion(seeded_engine, user)
        discussion_service.create_comment(
            seeded_engine, user_id=user, discussion_id=discussion, content="First light",
        )
        detail = discussion_service.get_discussion(seeded_engine, discussion)
        assert detail["views"] == 1
        assert [c["content"] for c in detail["comments"]] == ["First light"]
        assert user_service.get_user(seeded_engine, user)["commentsCount"] == 1

    def test_empty_comment(self, seeded_engine):
        user = make_user(seeded_engine, "writer")
        discussion = make_discussion(seeded_engine, user)
        with pytest.raises(ValidationError):
            discussion_service.create_comment(
                seeded_engine, user_id=user, discussion_id=discussion, content="   ",
            )

    def test_missing_discussion(self, seeded_engine):
        with pytest.raises(NotFoundError):
            discussion_service.get_discussion(seeded_engine, 404)


# ===========================================================================
# Likes
# ===========================================================================
class TestLikes:
    def test_discussion_like_pays_author_once(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        fan = make_user(seeded_engine, "fan")
        discussion = make_discussion(seeded_engine, author)
        result = discussion_service.like_discussion(
            seeded_engine, discussion_id=discussion, user_id=fan,
        )
        assert result["likes"] == 1
        with pytest.raises(ConflictError, match="already liked"):
            discussion_service.like_discussion(seeded_engine, discussion_id=discussion, user_id=fan)
        assert points_of(seeded_engine, author) == 2
        assert points_of(seeded_engine, fan) == 0

    def test_comment_like(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        fan = make_user(seeded_engine, "fan")
        discussion = make_discussion(seeded_engine, fan)
        comment = discussion_service.create_comment(
            seeded_engine, user_id=author, discussion_id=discussion, content="Well said",
        )
        result = discussion_service.like_comment(seeded_engine, comment_id=comment["id"], user_id=fan)
        assert result["likes"] == 1
        assert points_of(seeded_engine, author) == 1

    def test_self_like_counts_but_pays_nothing(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        discussion = make_discussion(seeded_engine, author)
        result = discussion_service.like_discussion(
            seeded_engine, discussion_id=discussion, user_id=author,
        )
        assert result["likes"] == 1
        assert points_of(seeded_engine, author) == 0
        assert badge_service.get_badge_progress(seeded_engine, author) == []

    def test_received_likes_advance_empath(self, seeded_engine):
        author = make_user(seeded_engine, "author")
        discussion = make_discussion(seeded_engine, author)
        for i in range(3):
            fan = make_user(seeded_engine, f"fan{i}")
            discussion_service.like_discussion(seeded_engine, discussion_id=discussion, user_id=fan)
        with Session(seeded_engine) as session:
            empath = session.scalar(select(Badge).where(Badge.name == "Empath"))
            row = session.get(BadgeProgress, (author, empath.id))
            assert row.current_progress == 3

    def test_missing_targets(self, seeded_engine):
        fan = make_user(seeded_engine, "fan")
        with pytest.raises(NotFoundError, match="Discussion"):
            discussion_service.like_discussion(seeded_engine, discussion_id=404, user_id=fan)
        with pytest.raises(NotFoundError, match="Comment"):
            discussion_service.like_comment(seeded_engine, comment_id=404, user_id=fan)


# ===========================================================================
# Profile edits
# ===========================================================================
class TestProfileUpdate:
    def test_self_edit_normalizes_interests(self, seeded_engine):
        user = make_user(seeded_engine, "seeker")
        result = user_service.update_profile(
            seeded_engine, user, actor_id=user,
            interests=[" Meditation", "meditation", "Tarot", ""],
            birth_date=date(1990, 4, 2),
        )
        assert result["interests"] == ["meditation", "tarot"]
        assert result["birthDate"] == "1990-04-02"
        assert _audit_rows(seeded_engine, "users") == []

    def test_admin_edit_is_audited(self, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "seeker")
        user_service.update_profile(seeded_engine, user, actor_id=admin, bio="Walks the paths.")
        (row,) = _audit_rows(seeded_engine, "users")
        assert row.action_type == AdminActionType.UPDATE
        assert row.before_snapshot["bio"] is None
        assert row.after_snapshot["bio"] == "Walks the paths."

    @pytest.mark.parametrize("fields", [{"points": 10_000}, {"display_name": ""}])
    def test_rejected_fields(self, seeded_engine, fields):
        user = make_user(seeded_engine, "seeker")
        with pytest.raises(ValidationError):
            user_service.update_profile(seeded_engine, user, actor_id=user, **fields)
        assert points_of(seeded_engine, user) == 0

    def test_missing_user(self, seeded_engine):
        with pytest.raises(NotFoundError):
            user_service.update_profile(seeded_engine, 404, actor_id=1, bio="x")


# ===========================================================================
# Events
# ===========================================================================
class TestEvents:
    def test_create_and_list(self, seeded_engine):
        host = make_user(seeded_engine, "host")
        later = event_service.create_event(
            seeded_engine, user_id=host, title="Full moon circle",
            starts_at=NOW + timedelta(days=14), now=NOW,
        )
        sooner = event_service.create_event(
            seeded_engine, user_id=host, title="Tea and texts",
            starts_at=NOW + timedelta(days=2), category="study", now=NOW,
        )
        listed = event_service.list_events(seeded_engine, upcoming_only=True, now=NOW)
        assert [e["id"] for e in listed] == [sooner["id"], later["id"]]
        assert listed[0]["category"] == "study"
        assert event_service.list_events(
            seeded_engine, upcoming_only=True, now=NOW + timedelta(days=30),
        ) == []

    def test_past_start_rejected(self, seeded_engine):
        host = make_user(seeded_engine, "host")
        with pytest.raises(ValidationError, match="future"):
            event_service.create_event(
                seeded_engine, user_id=host, title="Yesterday",
                starts_at=NOW - timedelta(hours=1), now=NOW,
            )

    def test_attend_once(self, seeded_engine):
        host = make_user(seeded_engine, "host")
        guest = make_user(seeded_engine, "guest")
        event = event_service.create_event(
            seeded_engine, user_id=host, title="Sound bath",
            starts_at=datetime.now(UTC) + timedelta(days=1),
        )
        result = event_service.attend_event(seeded_engine, event_id=event["id"], user_id=guest)
        assert result["attendees"] == 1
        with pytest.raises(ConflictError, match="already attending"):
            event_service.attend_event(seeded_engine, event_id=event["id"], user_id=guest)
        assert points_of(seeded_engine, guest) == 5
        assert event_service.list_events(seeded_engine)[0]["attendees"] == 1

    def test_attend_missing_event(self, seeded_engine):
        guest = make_user(seeded_engine, "guest")
        with pytest.raises(NotFoundError):
            event_service.attend_event(seeded_engine, event_id=404, user_id=guest)


# ===========================================================================
# Activity-driven badge progress
# ===========================================================================
class TestBadgeProgressWriter:
    def _conversationalist(self, engine) -> Badge:
        with Session(engine) as session:
            return session.scalar(select(Badge).where(Badge.name == "Conversationalist"))

    def test_comments_fill_progress_then_award(self, seeded_engine):
        user = make_user(seeded_engine, "talker")
        discussion = make_discussion(seeded_engine, user)
        badge = self._conversationalist(seeded_engine)
        for i in range(3):
            discussion_service.create_comment(
                seeded_engine, user_id=user, discussion_id=discussion, content=f"Reply {i}",
            )
        (entry,) = [
            p for p in badge_service.get_badge_progress(seeded_engine, user)
            if p["badgeId"] == badge.id
        ]
        assert entry["currentProgress"] == 3
        assert entry["maxProgress"] == 10
        assert entry["progressPercentage"] == 30

        for i in range(3, 10):
            discussion_service.create_comment(
                seeded_engine, user_id=user, discussion_id=discussion, content=f"Reply {i}",
            )
        with Session(seeded_engine) as session:
            assert session.get(UserBadge, (user, badge.id)) is not None
            assert session.get(BadgeProgress, (user, badge.id)) is None
        assert points_of(seeded_engine, user) == badge.points

    def test_record_progress_returns_awarded_names(self, seeded_engine):
        user = make_user(seeded_engine, "builder")
        with Session(seeded_engine) as session:
            assert badge_service.record_progress(session, user, "proposals_created") == ["Contributor"]
            assert badge_service.record_progress(session, user, "proposals_created") == []
            session.commit()

    def test_admin_badge_with_progress(self, seeded_engine):
        user = make_user(seeded_engine, "guest")
        badge = admin_service.create_badge(
            seeded_engine, actor_id=1, name="Regular", description="Came twice", icon="☕",
            points=10, progress_key="events_attended", progress_target=2,
        )
        with Session(seeded_engine) as session:
            activity_service.record_activity(session, user, "events_attended")
            assert activity_service.record_activity(session, user, "events_attended") == ["Regular"]
            session.commit()
            assert session.get(UserBadge, (user, badge.id)) is not None

    @pytest.mark.parametrize("kwargs", [
        {"progress_key": "comments_posted"},
        {"progress_target": 5},
        {"progress_key": "stargazing", "progress_target": 5},
        {"progress_key": "comments_posted", "progress_target": 0},
    ])
    def test_invalid_progress_fields(self, seeded_engine, kwargs):
        with pytest.raises(ValidationError):
            admin_service.create_badge(
                seeded_engine, actor_id=1, name="Odd", description="", icon="?", **kwargs,
            )
