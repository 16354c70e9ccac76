import logging

from flask import Blueprint, request
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy import func

from errors import NotFound, ValidationError
from forms import ProfileForm, RoleForm
from jobs import application_counts
from models import Application, Job, Resume, Role, User, db
from policy import requires
from responses import envelope

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)


def _counts(user_id):
    def count(column):
        return db.session.scalar(db.select(func.count()).where(column == user_id))

    return {
        "resumes": count(Resume.user_id),
        "applications": count(Application.user_id),
        "jobs": count(Job.recruiter_id),
    }


@users_bp.get("/profile")
@jwt_required()
def get_profile():
    data = current_user.to_dict()
    data["_count"] = _counts(current_user.id)
    return envelope(data)


@users_bp.put("/profile")
@jwt_required()
def update_profile():
    form = ProfileForm()
    if not form.validate():
        raise ValidationError("Name is required.")

    current_user.name = form.name.data
    db.session.commit()
    return envelope(current_user.to_dict(), "Profile updated successfully.")


@users_bp.get("/applications")
@requires("user", "list_applications")
def my_applications():
    applications = (
        Application.query.filter_by(user_id=current_user.id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )
    data = []
    for application in applications:
        job = application.job
        item = application.to_dict()
        item["job"] = {
            "id": job.id,
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "recruiter": {"name": job.recruiter.name, "email": job.recruiter.email},
        }
        data.append(item)
    return envelope(data)


@users_bp.get("/jobs")
@requires("user", "list_jobs")
def my_jobs():
    query = Job.query
    if current_user.role != Role.ADMIN:
        query = query.filter_by(recruiter_id=current_user.id)
    jobs = query.order_by(Job.created_at.desc(), Job.id.desc()).all()

    counts = application_counts([job.id for job in jobs])

    return envelope([
        {**job.to_dict(), "applicationCount": counts.get(job.id, 0)} for job in jobs
    ])


# ================= ADMIN =================
@users_bp.get("")
@requires("user", "list")
def list_users():
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(100, max(1, int(request.args.get("limit", 10))))
    except ValueError:
        raise ValidationError("page and limit must be integers.")

    query = User.query
    role = request.args.get("role")
    if role:
        if role not in Role.__members__:
            raise ValidationError("Invalid role.")
        query = query.filter_by(role=Role(role))

    pagination = query.order_by(User.created_at.desc(), User.id.desc()).paginate(
        page=page,
        per_page=limit,
        error_out=False,
    )
    users = [{**u.to_dict(), "_count": _counts(u.id)} for u in pagination.items]

    return envelope({
        "users": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": pagination.total,
            "pages": pagination.pages,
        },
    })


@users_bp.patch("/<int:user_id>/role")
@requires("user", "update_role")
def update_role(user_id):
    form = RoleForm()
    if not form.validate():
        raise ValidationError("Invalid role.")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")

    user.role = Role(form.role.data)
    db.session.commit()
    logger.info("Role changed: user=%s role=%s by admin=%s", user.id, user.role.value, current_user.id)
    return envelope(user.public_profile(), "User role updated successfully.")
