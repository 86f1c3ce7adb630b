"""Plan and usage accounting.

The story limit check and the counter increment run as separate statements
with no lock between them. Two generations started at the same moment can
both pass `check_story_limit` and both increment, leaving a free account one
story over the cap. The increment itself is a single atomic UPDATE, so no
count is lost; only the check-then-act window remains open.
"""
from dataclasses import dataclass
from datetime import datetime

from models import User, db
from models.User import PLAN_FREE, PLAN_PRO

FREE_STORY_LIMIT = 5
UNLIMITED = "unlimited"


@dataclass
class UsageStatus:
    can_generate: bool
    remaining: object
    plan: str
    story_count: int

    def to_dict(self):
        return {
            "canGenerate": self.can_generate,
            "remaining": self.remaining,
            "plan": self.plan,
            "storyCount": self.story_count,
        }


def check_story_limit(user_id):
    """
    Decides whether a user may start another story.

    Args:
        user_id (int): The user to check.

    Returns:
        UsageStatus: Pro users can always generate and have "unlimited" remaining.
        Free users can generate while story_count < 5, with
        remaining = max(0, 5 - story_count). A missing user row yields a
        free status that cannot generate.
    """
    user = db.session.get(User, user_id)
    if not user:
        return UsageStatus(can_generate=False, remaining=0, plan=PLAN_FREE, story_count=0)

    plan = user.plan or PLAN_FREE
    story_count = user.story_count or 0
    if plan == PLAN_PRO:
        return UsageStatus(can_generate=True, remaining=UNLIMITED, plan=PLAN_PRO, story_count=story_count)

    remaining = max(0, FREE_STORY_LIMIT - story_count)
    return UsageStatus(can_generate=remaining > 0, remaining=remaining, plan=PLAN_FREE, story_count=story_count)


def increment_story_count(user_id):
    """
    Adds one finished story to the user's count.

    Raises:
        LookupError: If no user row was updated.
    """
    updated = User.query.filter_by(id=user_id).update(
        {User.story_count: db.func.coalesce(User.story_count, 0) + 1},
        synchronize_session=False
    )
    db.session.commit()
    if not updated:
        raise LookupError(f"User {user_id} not found")


def get_user_plan_details(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return None
    plan = user.plan or PLAN_FREE
    story_count = user.story_count or 0
    is_pro = plan == PLAN_PRO
    return {
        "plan": plan,
        "story_count": story_count,
        "upgraded_at": user.upgraded_at.isoformat() if user.upgraded_at else None,
        "canCreateStory": is_pro or story_count < FREE_STORY_LIMIT,
        "storiesRemaining": UNLIMITED if is_pro else max(0, FREE_STORY_LIMIT - story_count),
        "isProPlan": is_pro,
    }


def upgrade_user_to_pro(user_id, customer_id, upgraded_at=None):
    """
    Moves a user to the pro plan.

    This is an absolute update: applying it twice leaves the row as applying it
    once would, apart from the timestamp of the last call. Runs unscoped, as the
    payment webhook has no user session.

    Args:
        user_id (int): The user to upgrade.
        customer_id (str or None): The payment provider's customer id.
        upgraded_at (datetime, optional): Defaults to now (UTC).

    Returns:
        bool: True if a user row was updated.
    """
    updated = User.query.filter_by(id=user_id).update({
        User.plan: PLAN_PRO,
        User.upgraded_at: upgraded_at or datetime.utcnow(),
        User.stripe_customer_id: customer_id
    }, synchronize_session=False)
    db.session.commit()
    return bool(updated)


def format_usage_text(usage):
    if usage.plan == PLAN_PRO:
        return f"Pro Plan - Unlimited stories ({usage.story_count} generated)"
    return f"Free Plan - {usage.remaining} stories remaining ({usage.story_count}/{FREE_STORY_LIMIT} used)"


def should_show_upgrade_prompt(usage):
    return usage.plan == PLAN_FREE and not usage.can_generate


def should_show_usage_warning(usage):
    return usage.plan == PLAN_FREE and isinstance(usage.remaining, int) and usage.remaining <= 1
