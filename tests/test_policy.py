import pytest

from errors import Forbidden
from models import Role, User
from policy import POLICY, authorize, is_allowed, requires


def _user(role, user_id=1):
    return User(id=user_id, name="x", email=f"{user_id}@example.com", role=role)


@pytest.mark.parametrize("role, allowed", [
    (Role.USER, False),
    (Role.RECRUITER, True),
    (Role.ADMIN, True),
])
def test_only_recruiters_create_jobs(role, allowed):
    assert is_allowed(_user(role), "job", "create") is allowed


def test_owner_rule_for_jobs():
    owner = _user(Role.RECRUITER, 1)
    other = _user(Role.RECRUITER, 2)
    admin = _user(Role.ADMIN, 3)

    assert is_allowed(owner, "job", "update", owner_id=1)
    assert not is_allowed(other, "job", "update", owner_id=1)
    assert is_allowed(admin, "job", "delete", owner_id=1)


def test_resumes_private_even_to_admin():
    assert is_allowed(_user(Role.USER, 1), "resume", "manage", owner_id=1)
    assert not is_allowed(_user(Role.ADMIN, 2), "resume", "manage", owner_id=1)


def test_authorize_raises_rule_message():
    with pytest.raises(Forbidden, match="Only job seekers can apply for jobs."):
        authorize(_user(Role.RECRUITER), "application", "create")


def test_requires_refuses_owner_rules():
    with pytest.raises(ValueError):
        requires("job", "update")


def test_every_rule_has_a_message():
    assert all(rule.message for rule in POLICY.values())
