from datetime import datetime

import pytest

from models import User, db
from usage import (
    UsageStatus,
    check_story_limit,
    format_usage_text,
    get_user_plan_details,
    increment_story_count,
    should_show_upgrade_prompt,
    should_show_usage_warning,
    upgrade_user_to_pro
)


@pytest.mark.parametrize("story_count, can_generate, remaining", [
    (0, True, 5),
    (4, True, 1),
    (5, False, 0),
    (9, False, 0),
])
def test_free_plan_limit(app, make_user, story_count, can_generate, remaining):
    user_id = make_user(story_count=story_count)
    with app.app_context():
        status = check_story_limit(user_id)
    assert status.can_generate is can_generate
    assert status.remaining == remaining
    assert status.plan == "free"
    assert status.story_count == story_count


def test_pro_plan_is_unlimited(app, make_user):
    user_id = make_user(plan="pro", story_count=120)
    with app.app_context():
        status = check_story_limit(user_id)
    assert status.can_generate is True
    assert status.remaining == "unlimited"
    assert status.to_dict() == {"canGenerate": True, "remaining": "unlimited", "plan": "pro", "storyCount": 120}


def test_missing_user_cannot_generate(app):
    with app.app_context():
        status = check_story_limit(999)
    assert status == UsageStatus(can_generate=False, remaining=0, plan="free", story_count=0)


def test_increment_adds_one(app, make_user):
    user_id = make_user(story_count=2)
    with app.app_context():
        increment_story_count(user_id)
        increment_story_count(user_id)
        assert db.session.get(User, user_id).story_count == 4


def test_increment_unknown_user_raises(app):
    with app.app_context():
        with pytest.raises(LookupError):
            increment_story_count(999)


def test_fifth_story_closes_the_free_plan(app, make_user):
    user_id = make_user(story_count=4)
    with app.app_context():
        assert check_story_limit(user_id).can_generate
        increment_story_count(user_id)
        assert not check_story_limit(user_id).can_generate


def test_upgrade_is_idempotent(app, make_user):
    user_id = make_user(story_count=5)
    when = datetime(2024, 5, 1, 12, 0, 0)
    with app.app_context():
        assert upgrade_user_to_pro(user_id, "cus_123", upgraded_at=when)
        assert upgrade_user_to_pro(user_id, "cus_123", upgraded_at=when)
        user = db.session.get(User, user_id)
        assert user.plan == "pro"
        assert user.stripe_customer_id == "cus_123"
        assert user.upgraded_at == when
        assert user.story_count == 5


def test_upgrade_unknown_user(app):
    with app.app_context():
        assert upgrade_user_to_pro(999, "cus_123") is False


def test_plan_details(app, make_user):
    user_id = make_user(story_count=3)
    with app.app_context():
        details = get_user_plan_details(user_id)
        assert get_user_plan_details(999) is None
    assert details == {
        "plan": "free",
        "story_count": 3,
        "upgraded_at": None,
        "canCreateStory": True,
        "storiesRemaining": 2,
        "isProPlan": False
    }


def test_usage_text_and_prompts():
    free = UsageStatus(can_generate=True, remaining=1, plan="free", story_count=4)
    spent = UsageStatus(can_generate=False, remaining=0, plan="free", story_count=5)
    pro = UsageStatus(can_generate=True, remaining="unlimited", plan="pro", story_count=8)

    assert format_usage_text(free) == "Free Plan - 1 stories remaining (4/5 used)"
    assert format_usage_text(pro) == "Pro Plan - Unlimited stories (8 generated)"
    assert should_show_usage_warning(free)
    assert not should_show_upgrade_prompt(free)
    assert should_show_upgrade_prompt(spent)
    assert not should_show_usage_warning(pro)
    assert not should_show_upgrade_prompt(pro)


def test_plan_endpoint(client, headers):
    resp = client.get("/api/user/plan", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["storiesRemaining"] == 5


def test_usage_endpoint(client, make_user, auth_headers):
    user_id = make_user(email="pro@example.com", plan="pro")
    resp = client.get("/api/user/usage", headers=auth_headers(user_id))
    assert resp.get_json()["remaining"] == "unlimited"
    assert resp.get_json()["usageText"] == "Pro Plan - Unlimited stories (0 generated)"
    assert resp.get_json()["showUpgradePrompt"] is False


@pytest.mark.parametrize("story_count, text, upgrade, warning", [
    (0, "Free Plan - 5 stories remaining (0/5 used)", False, False),
    (4, "Free Plan - 1 stories remaining (4/5 used)", False, True),
    (5, "Free Plan - 0 stories remaining (5/5 used)", True, True),
])
def test_usage_endpoint_for_free_plan(client, make_user, auth_headers, story_count, text, upgrade, warning):
    user_id = make_user(email="free@example.com", story_count=story_count)

    data = client.get("/api/user/usage", headers=auth_headers(user_id)).get_json()

    assert data["usageText"] == text
    assert data["showUpgradePrompt"] is upgrade
    assert data["showUsageWarning"] is warning
