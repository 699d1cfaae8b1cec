"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================

Auth guards, camelCase request bodies, and service errors surfacing as JSON
with the right status codes, through the FastAPI TestClient.
"""

from __future__ import annotations

import jwt
import pytest

from conftest import (
    auth,
    make_discussion,
    make_quest,
    make_reward,
    make_token,
    make_user,
    points_of,
)
from sephirots.api.deps import JWT_ALGORITHM, JWT_SECRET


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    ADMIN_ENDPOINTS = [
        ("GET", "/api/admin/settings"),
        ("PUT", "/api/admin/settings"),
        ("POST", "/api/admin/badges"),
        ("POST", "/api/admin/badges/1/grant"),
        ("POST", "/api/users/1/points"),
        ("PATCH", "/api/proposals/1"),
        ("POST", "/api/donations/1/complete"),
        ("POST", "/api/quests/1/progress"),
        ("POST", "/api/rights-agreement"),
    ]

    MEMBER_ENDPOINTS = [
        ("GET", "/api/users/me"),
        ("GET", "/api/quests"),
        ("POST", "/api/rewards/1/redeem"),
        ("POST", "/api/cosmic-reactions/toggle"),
        ("POST", "/api/proposals"),
        ("POST", "/api/polls"),
        ("POST", "/api/comments"),
        ("PATCH", "/api/users/1"),
        ("POST", "/api/discussions/1/like"),
        ("POST", "/api/events"),
        ("GET", "/api/badge-progress"),
    ]

    @pytest.mark.parametrize("method,endpoint", ADMIN_ENDPOINTS + MEMBER_ENDPOINTS)
    def test_rejects_missing_token(self, client, method, endpoint):
        resp = client.request(method, endpoint)
        assert resp.status_code == 401

    @pytest.mark.parametrize("method,endpoint", ADMIN_ENDPOINTS)
    def test_admin_rejects_member(self, client, method, endpoint):
        resp = client.request(method, endpoint, headers=auth(make_token(1)))
        assert resp.status_code == 403

    def test_rejects_forged_token(self, client):
        forged = jwt.encode({"sub": "1", "is_admin": True}, "not-the-secret" * 4, algorithm=JWT_ALGORITHM)
        resp = client.get("/api/admin/settings", headers=auth(forged))
        assert resp.status_code == 401

    def test_rejects_malformed_header(self, client):
        resp = client.get("/api/users/me", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401

    def test_admin_flag_only_from_claim(self, client):
        token = jwt.encode({"sub": "1", "username": "x"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        assert client.get("/api/admin/settings", headers=auth(token)).status_code == 403

    def test_admin_can_read_settings(self, client):
        resp = client.get("/api/admin/settings", headers=auth(make_token(1, is_admin=True)))
        assert resp.status_code == 200
        keys = {s["key"] for s in resp.json()["settings"]}
        assert "points.vote_proposal" in keys


class TestDevLogin:
    def test_disabled_by_default(self, client, monkeypatch):
        monkeypatch.delenv("ALLOW_DEV_LOGIN", raising=False)
        resp = client.post("/api/auth/dev-login", json={"username": "aria"})
        assert resp.status_code == 404

    def test_issues_usable_token(self, client, monkeypatch):
        monkeypatch.setenv("ALLOW_DEV_LOGIN", "1")
        resp = client.post("/api/auth/dev-login", json={"username": "aria", "displayName": "Aria"})
        assert resp.status_code == 200
        body = resp.json()
        me = client.get("/api/auth/me", headers=auth(body["token"])).json()
        assert me == {"id": body["userId"], "username": "aria", "isAdmin": False}
        profile = client.get("/api/users/me", headers=auth(body["token"])).json()
        assert profile["displayName"] == "Aria"


# ===========================================================================
# Members & points
# ===========================================================================
class TestUsers:
    def test_profile_and_tier(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria", points=1200)
        assert client.get(f"/api/users/{user}").json()["points"] == 1200
        tier = client.get(f"/api/users/{user}/tier").json()
        assert tier["tierIndex"] == 1
        assert tier["pointsToNext"] == 3800

    def test_unknown_user_is_json_404(self, client):
        resp = client.get("/api/users/9999")
        assert resp.status_code == 404
        assert resp.json() == {"error": "User not found"}

    def test_admin_adjusts_points(self, client, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "aria")
        resp = client.post(
            f"/api/users/{user}/points",
            json={"delta": 75, "reason": "hosted a circle"},
            headers=auth(make_token(admin, is_admin=True)),
        )
        assert resp.status_code == 200
        assert points_of(seeded_engine, user) == 75


# ===========================================================================
# Rewards
# ===========================================================================
class TestRewards:
    def test_catalog_with_affordability(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria", points=1200)
        body = client.get("/api/rewards", headers=auth(make_token(user))).json()
        assert len(body["categories"]) == 4
        assert all("canAfford" in r for r in body["rewards"])

    def test_anonymous_catalog(self, client):
        body = client.get("/api/rewards", params={"category": "digital"}).json()
        assert body["rewards"]
        assert all("canAfford" not in r for r in body["rewards"])

    def test_redeem_short_returns_402_with_shortfall(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria", points=1200)
        reward = make_reward(seeded_engine, points_cost=1500)
        resp = client.post(f"/api/rewards/{reward}/redeem", headers=auth(make_token(user)))
        assert resp.status_code == 402
        body = resp.json()
        assert body["pointsNeeded"] == 300
        assert "300" in body["error"]

    def test_redeem_success(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria", points=1500)
        reward = make_reward(seeded_engine, points_cost=1500)
        resp = client.post(f"/api/rewards/{reward}/redeem", headers=auth(make_token(user)))
        assert resp.status_code == 200
        assert resp.json()["points"] == 0


# ===========================================================================
# Reactions
# ===========================================================================
class TestReactions:
    def test_toggle_via_api(self, client, seeded_engine):
        author = make_user(seeded_engine, "author")
        reactor = make_user(seeded_engine, "reactor")
        discussion = make_discussion(seeded_engine, author)
        emoji_id = client.get("/api/cosmic-emoji-metadata").json()[0]["id"]
        body = {"contentId": discussion, "contentType": "discussion", "emojiId": emoji_id}
        headers = auth(make_token(reactor))

        assert client.post("/api/cosmic-reactions/toggle", json=body, headers=headers).json() == {
            "added": True, "count": 1,
        }
        summary = client.get(
            f"/api/cosmic-reactions/discussion/{discussion}", headers=headers,
        ).json()
        assert summary["reactions"][0]["userReacted"]
        assert client.post("/api/cosmic-reactions/toggle", json=body, headers=headers).json() == {
            "removed": True, "count": 0,
        }

    def test_bad_content_type(self, client):
        resp = client.get("/api/cosmic-reactions/poll/1")
        assert resp.status_code == 400

    def test_missing_fields_is_422(self, client):
        resp = client.post(
            "/api/cosmic-reactions/toggle", json={"contentId": 1}, headers=auth(make_token(1)),
        )
        assert resp.status_code == 422


# ===========================================================================
# Governance
# ===========================================================================
class TestGovernance:
    def test_create_and_vote(self, client, seeded_engine):
        author = make_user(seeded_engine, "author")
        voter = make_user(seeded_engine, "voter")
        resp = client.post(
            "/api/proposals",
            json={"title": "Full moon gathering", "description": "Monthly", "votesRequired": 1},
            headers=auth(make_token(author)),
        )
        assert resp.status_code == 201
        proposal = resp.json()
        assert proposal["votesRequired"] == 1

        voted = client.post(
            f"/api/proposals/{proposal['id']}/vote",
            json={"vote": True}, headers=auth(make_token(voter)),
        ).json()
        assert voted["status"] == "passed"

        again = client.post(
            f"/api/proposals/{proposal['id']}/vote",
            json={"vote": True}, headers=auth(make_token(voter)),
        )
        assert again.status_code == 400

    def test_double_vote_conflicts(self, client, seeded_engine):
        author = make_user(seeded_engine, "author")
        voter = make_user(seeded_engine, "voter")
        proposal = client.post(
            "/api/proposals", json={"title": "Library", "description": "Books"},
            headers=auth(make_token(author)),
        ).json()
        url = f"/api/proposals/{proposal['id']}/vote"
        assert client.post(url, json={"vote": False}, headers=auth(make_token(voter))).status_code == 200
        resp = client.post(url, json={"vote": True}, headers=auth(make_token(voter)))
        assert resp.status_code == 409

    def test_empty_patch_rejected(self, client, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        resp = client.patch("/api/proposals/1", json={}, headers=auth(make_token(admin, is_admin=True)))
        assert resp.status_code == 400

    def test_poll_lifecycle(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        headers = auth(make_token(user))
        poll = client.post(
            "/api/polls", json={"title": "Next theme", "options": ["Hod", "Netzach"]}, headers=headers,
        ).json()
        option_id = poll["options"][1]["id"]
        resp = client.post(f"/api/polls/{poll['id']}/vote", json={"optionId": option_id}, headers=headers)
        assert resp.status_code == 200
        polls = client.get("/api/polls", headers=headers).json()["polls"]
        assert polls[0]["totalVotes"] == 1


# ===========================================================================
# Discussions
# ===========================================================================
class TestDiscussions:
    def test_create_comment_and_read(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        headers = auth(make_token(user))
        discussion = client.post(
            "/api/discussions",
            json={"title": "Dream journal", "content": "Post yours", "tags": ["Dreams"]},
            headers=headers,
        ).json()
        assert discussion["tags"] == ["dreams"]
        resp = client.post(
            "/api/comments", json={"discussionId": discussion["id"], "content": "I flew"}, headers=headers,
        )
        assert resp.status_code == 201
        detail = client.get(f"/api/discussions/{discussion['id']}").json()
        assert [c["content"] for c in detail["comments"]] == ["I flew"]


# ===========================================================================
# Donations
# ===========================================================================
class TestDonations:
    def test_tiers_are_public(self, client):
        tiers = client.get("/api/donation-tiers").json()["tiers"]
        assert [t["id"] for t in tiers] == ["seed-planter", "tree-tender", "light-guardian"]

    def test_checkout_without_stripe_key_is_503(self, client, monkeypatch):
        monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
        resp = client.post("/api/create-checkout-session", json={"tierId": "seed-planter"})
        assert resp.status_code == 503
        assert "error" in resp.json()

    def test_non_positive_amount_is_422(self, client):
        resp = client.post(
            "/api/create-checkout-session", json={"tierId": "seed-planter", "amountCents": 0},
        )
        assert resp.status_code == 422


# ===========================================================================
# Settings
# ===========================================================================
class TestSettingsRoutes:
    def test_update_and_invalid_value(self, client, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        headers = auth(make_token(admin, is_admin=True))
        resp = client.put(
            "/api/admin/settings", json=[{"key": "points.vote_proposal", "value": 8}], headers=headers,
        )
        assert resp.json() == {"updated": 1}

        bad = client.put(
            "/api/admin/settings",
            json=[{"key": "points.tier_thresholds", "value": [10, 5]}],
            headers=headers,
        )
        assert bad.status_code == 400


# ===========================================================================
# Quests
# ===========================================================================
class TestQuestRoutes:
    def test_member_cannot_report_own_progress(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        quest = make_quest(seeded_engine, {"comments_posted": 3}, points=25)
        headers = auth(make_token(user))
        resp = client.post(
            f"/api/quests/{quest}/progress",
            json={"userId": user, "progress": {"comments_posted": 999}}, headers=headers,
        )
        assert resp.status_code == 403
        claim = client.post(f"/api/quests/{quest}/complete", headers=headers)
        assert claim.status_code == 400
        assert points_of(seeded_engine, user) == 0

    def test_comments_complete_a_quest(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        discussion = make_discussion(seeded_engine, user)
        quest = make_quest(seeded_engine, {"comments_posted": 3}, points=25)
        headers = auth(make_token(user))
        for i in range(3):
            client.post(
                "/api/comments", json={"discussionId": discussion, "content": f"Note {i}"},
                headers=headers,
            )
        (mine,) = [q for q in client.get("/api/quests", headers=headers).json()["quests"] if q["id"] == quest]
        assert mine["progress"] == {"comments_posted": 3}
        assert mine["canClaim"] is True

        claim = client.post(f"/api/quests/{quest}/complete", headers=headers)
        assert claim.json()["pointsAwarded"] == 25
        again = client.post(f"/api/quests/{quest}/complete", headers=headers)
        assert again.status_code == 409
        assert points_of(seeded_engine, user) == 25

    def test_admin_corrects_progress(self, client, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        user = make_user(seeded_engine, "aria")
        quest = make_quest(seeded_engine, {"comments_posted": 3}, points=25)
        resp = client.post(
            f"/api/quests/{quest}/progress",
            json={"userId": user, "progress": {"comments_posted": 3}},
            headers=auth(make_token(admin, is_admin=True)),
        )
        assert resp.status_code == 200
        assert resp.json()["canClaim"] is True


# ===========================================================================
# Likes, profiles & badge progress
# ===========================================================================
class TestCommunityRoutes:
    def test_like_once(self, client, seeded_engine):
        author = make_user(seeded_engine, "author")
        fan = make_user(seeded_engine, "fan")
        discussion = make_discussion(seeded_engine, author)
        url = f"/api/discussions/{discussion}/like"
        assert client.post(url, headers=auth(make_token(fan))).json()["likes"] == 1
        assert client.post(url, headers=auth(make_token(fan))).status_code == 409
        assert client.post("/api/comments/404/like", headers=auth(make_token(fan))).status_code == 404
        assert points_of(seeded_engine, author) == 2

    def test_edit_own_profile(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        resp = client.patch(
            f"/api/users/{user}",
            json={"interests": ["Astrology", "astrology"], "birthDate": "1992-11-03"},
            headers=auth(make_token(user)),
        )
        assert resp.status_code == 200
        assert resp.json()["interests"] == ["astrology"]
        assert client.get(f"/api/users/{user}").json()["birthDate"] == "1992-11-03"

    def test_cannot_edit_someone_else(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        other = make_user(seeded_engine, "other")
        resp = client.patch(f"/api/users/{user}", json={"bio": "mine now"}, headers=auth(make_token(other)))
        assert resp.status_code == 403
        empty = client.patch(f"/api/users/{user}", json={}, headers=auth(make_token(user)))
        assert empty.status_code == 400

    def test_badge_progress_from_comments(self, client, seeded_engine):
        user = make_user(seeded_engine, "aria")
        discussion = make_discussion(seeded_engine, user)
        headers = auth(make_token(user))
        for i in range(3):
            client.post(
                "/api/comments", json={"discussionId": discussion, "content": f"Thought {i}"},
                headers=headers,
            )
        badges = {b["name"]: b["id"] for b in client.get("/api/badges").json()["badges"]}
        progress = client.get("/api/badge-progress", headers=headers).json()["progress"]
        (entry,) = [p for p in progress if p["badgeId"] == badges["Conversationalist"]]
        assert entry["currentProgress"] == 3
        assert entry["maxProgress"] == 10
        assert entry["progressPercentage"] == 30


# ===========================================================================
# Rights agreement & events
# ===========================================================================
class TestAgreementAndEventRoutes:
    def test_agreement_lifecycle(self, client, seeded_engine):
        admin = make_user(seeded_engine, "admin")
        member = make_user(seeded_engine, "aria")
        assert client.get("/api/rights-agreement/latest").status_code == 404

        created = client.post(
            "/api/rights-agreement",
            json={"title": "Rights", "content": "All are welcome.", "version": "1.0", "status": "approved"},
            headers=auth(make_token(admin, is_admin=True)),
        )
        assert created.status_code == 201
        agreement_id = created.json()["id"]

        amendment = client.post(
            "/api/amendments",
            json={"title": "Quiet hours", "content": "After ten.", "agreementId": agreement_id},
            headers=auth(make_token(member)),
        ).json()
        assert amendment["agreementVersion"] == "1.0"
        listed = client.get(f"/api/rights-agreement/{agreement_id}/amendments").json()["amendments"]
        assert [a["id"] for a in listed] == [amendment["id"]]
        assert client.get("/api/rights-agreement/latest").json()["version"] == "1.0"

    def test_events(self, client, seeded_engine):
        host = make_user(seeded_engine, "host")
        guest = make_user(seeded_engine, "guest")
        created = client.post(
            "/api/events",
            json={"title": "Solstice walk", "startsAt": "2099-06-21T05:00:00Z"},
            headers=auth(make_token(host)),
        )
        assert created.status_code == 201
        event_id = created.json()["id"]
        url = f"/api/events/{event_id}/attend"
        assert client.post(url, headers=auth(make_token(guest))).json()["attendees"] == 1
        assert client.post(url, headers=auth(make_token(guest))).status_code == 409
        events = client.get("/api/events", params={"upcoming": True}).json()["events"]
        assert [e["title"] for e in events] == ["Solstice walk"]
        assert points_of(seeded_engine, guest) == 5

    def test_past_event_rejected(self, client, seeded_engine):
        host = make_user(seeded_engine, "host")
        resp = client.post(
            "/api/events",
            json={"title": "Too late", "startsAt": "2001-01-01T00:00:00Z"},
            headers=auth(make_token(host)),
        )
        assert resp.status_code == 400
