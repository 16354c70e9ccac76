"""Role/ownership policy evaluated once per write request."""
from collections import namedtuple
from functools import wraps

from flask_jwt_extended import current_user, jwt_required

from errors import Forbidden
from models import Role

Rule = namedtuple("Rule", "roles owner message")

RECRUITERS = frozenset({Role.RECRUITER, Role.ADMIN})
SEEKERS = frozenset({Role.USER})
ADMINS = frozenset({Role.ADMIN})
EVERYONE = frozenset(Role)

# (resource, action) -> who may do it. ``owner`` rules additionally require
# the caller to own the record; ADMIN bypasses owner checks except on resumes.
POLICY = {
    ("job", "create"): Rule(RECRUITERS, False, "Only recruiters can post jobs."),
    ("job", "update"): Rule(RECRUITERS, True, "You can only update your own jobs."),
    ("job", "delete"): Rule(RECRUITERS, True, "You can only delete your own jobs."),
    ("job", "view_applications"): Rule(
        RECRUITERS, True, "You can only view applications for your own jobs."
    ),
    ("application", "create"): Rule(SEEKERS, False, "Only job seekers can apply for jobs."),
    ("application", "update_status"): Rule(
        RECRUITERS, True, "You can only update applications for your own jobs."
    ),
    ("user", "list_applications"): Rule(SEEKERS, False, "Only job seekers have applications."),
    ("user", "list_jobs"): Rule(RECRUITERS, False, "Only recruiters have posted jobs."),
    ("user", "list"): Rule(ADMINS, False, "Admin access required."),
    ("user", "update_role"): Rule(ADMINS, False, "Admin access required."),
    ("resume", "manage"): Rule(EVERYONE, True, "Resume not found."),
}

# resumes are private even to admins
NO_ADMIN_OVERRIDE = {"resume"}


def is_allowed(user, resource, action, owner_id=None):
    rule = POLICY[(resource, action)]
    if user.role not in rule.roles:
        return False
    if not rule.owner:
        return True
    if user.role == Role.ADMIN and resource not in NO_ADMIN_OVERRIDE:
        return True
    return owner_id == user.id


def authorize(user, resource, action, owner_id=None):
    if not is_allowed(user, resource, action, owner_id):
        raise Forbidden(POLICY[(resource, action)].message)


def requires(resource, action):
    """Route decorator: authenticated caller whose role passes the rule.

    Only for rules without an owner check; owner rules are evaluated in the
    handler once the record is loaded.
    """
    if POLICY[(resource, action)].owner:
        raise ValueError(f"{resource}:{action} needs an owner id, call authorize() instead")

    def decorator(view_func):
        @wraps(view_func)
        @jwt_required()
        def _wrapped(*args, **kwargs):
            authorize(current_user, resource, action)
            return view_func(*args, **kwargs)
        return _wrapped
    return decorator
