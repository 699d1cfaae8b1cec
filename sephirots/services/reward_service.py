"""
sephirots.services.reward_service — Reward Exchange
=====================================================

Lists the points catalog with per-user affordability and redeems rewards.
A redemption is one transaction made of two conditional UPDATEs (stock,
then balance) plus a ledger row.  If either UPDATE matches no row the whole
transaction is rolled back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sephirots.constants import REWARD_CATEGORIES
from sephirots.database.models import Reward, RewardRedemption
from sephirots.engine.points import can_afford, points_needed
from sephirots.services.errors import (
    ConflictError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from sephirots.services.user_service import get_balance, spend_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _reward_to_dict(reward: Reward, balance: int | None) -> dict:
    data = {
        "id": reward.id,
        "name": reward.name,
        "description": reward.description,
        "pointsCost": reward.points_cost,
        "category": reward.category,
        "imageUrl": reward.image_url,
        "stock": reward.stock,
        "tags": list(reward.tags or []),
    }
    if balance is not None:
        data["canAfford"] = can_afford(balance, reward.points_cost)
        data["pointsNeeded"] = points_needed(balance, reward.points_cost)
    return data


def list_categories() -> list[dict]:
    return [
        {"id": slug, "name": name, "description": description}
        for slug, (name, description) in REWARD_CATEGORIES.items()
    ]


def list_rewards(
    engine: Engine, *, category: str | None = None, user_id: int | None = None,
) -> list[dict]:
    """Active rewards, optionally filtered by category.

    With *user_id*, each entry carries ``canAfford`` and ``pointsNeeded``.
    """
    if category is not None and category not in REWARD_CATEGORIES:
        raise ValidationError(f"Unknown reward category {category!r}")
    with Session(engine) as session:
        stmt = select(Reward).where(Reward.active.is_(True))
        if category is not None:
            stmt = stmt.where(Reward.category == category)
        rewards = session.scalars(stmt.order_by(Reward.points_cost, Reward.id)).all()
        balance = get_balance(session, user_id) if user_id is not None else None
        return [_reward_to_dict(r, balance) for r in rewards]


def redeem_reward(engine: Engine, user_id: int, reward_id: int) -> dict:
    """Exchange points for a reward.

    Raises
    ------
    NotFoundError
        Unknown or inactive reward.
    ConflictError
        The reward is out of stock.
    InsufficientPointsError
        The balance doesn't cover the cost (carries ``pointsNeeded``).
    """
    with Session(engine) as session:
        reward = session.get(Reward, reward_id)
        if reward is None or not reward.active:
            raise NotFoundError("Reward not found")
        cost = reward.points_cost
        name = reward.name

        if reward.stock is not None:
            taken = session.execute(
                update(Reward)
                .where(Reward.id == reward_id, Reward.stock > 0)
                .values(stock=Reward.stock - 1)
            )
            if taken.rowcount != 1:
                raise ConflictError(f"{name} is out of stock")

        if not spend_points(session, user_id, cost):
            balance = get_balance(session, user_id)
            session.rollback()
            raise InsufficientPointsError(points_needed(balance, cost))

        session.add(RewardRedemption(user_id=user_id, reward_id=reward_id, points_spent=cost))
        session.commit()
        balance = get_balance(session, user_id)

    logger.info("User %s redeemed %r for %d points", user_id, name, cost)
    return {"success": True, "rewardId": reward_id, "pointsSpent": cost, "points": balance}
