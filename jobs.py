import logging
import os
import uuid

from flask import Blueprint, current_app, request, send_from_directory
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

import events
from errors import Conflict, NotFound, ValidationError, form_error
from forms import ApplicationForm, JobForm, JobUpdateForm, StatusForm
from models import Application, ApplicationStatus, Job, JobStatus, db
from policy import authorize, requires
from responses import envelope, json_body

logger = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__)
uploads_bp = Blueprint("uploads", __name__)

ALLOWED_EXTENSIONS = {"pdf", "doc", "docx"}
SORT_FIELDS = {
    "createdAt": Job.created_at,
    "title": Job.title,
    "company": Job.company,
    "location": Job.location,
}
MAX_PAGE_SIZE = 100


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _int_arg(name, default, minimum=1, maximum=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer.")
    value = max(minimum, value)
    return min(value, maximum) if maximum else value


def _skills(payload):
    skills = payload.get("skills")
    if skills is None:
        return None
    if isinstance(skills, str):
        skills = [s.strip() for s in skills.split(",")]
    if not isinstance(skills, list):
        raise ValidationError("skills must be a list of strings.")
    return [str(s).strip() for s in skills if str(s).strip()]


def _recruiter_summary(job):
    recruiter = job.recruiter
    return {"id": recruiter.id, "name": recruiter.name, "email": recruiter.email}


def _get_job(job_id):
    job = db.session.get(Job, job_id)
    if job is None:
        raise NotFound("Job not found.")
    return job


# ================= RESUME UPLOADS =================
@uploads_bp.route("/uploads/<path:filename>")
def uploaded_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)


def save_upload(file):
    if not file or not file.filename:
        return None
    if not allowed_file(file.filename):
        raise ValidationError("Invalid file type. Only PDF or Word files are allowed.")

    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    filename = f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
    file.save(os.path.join(folder, filename))
    return filename


def discard_upload(filename):
    if not filename:
        return
    path = os.path.join(current_app.config["UPLOAD_FOLDER"], filename)
    if os.path.exists(path):
        os.remove(path)


# ================= LIST / DETAIL =================
@jobs_bp.get("")
def list_jobs():
    page = _int_arg("page", 1)
    limit = _int_arg("limit", 10, maximum=MAX_PAGE_SIZE)
    search = request.args.get("search")
    location = request.args.get("location")
    company = request.args.get("company")
    sort_by = request.args.get("sortBy", "createdAt")
    sort_order = request.args.get("sortOrder", "desc").lower()

    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sortBy must be one of {', '.join(SORT_FIELDS)}.")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be asc or desc.")

    query = Job.query
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Job.title.ilike(pattern), Job.description.ilike(pattern)))
    if location:
        query = query.filter(Job.location.ilike(f"%{location}%"))
    if company:
        query = query.filter(Job.company.ilike(f"%{company}%"))

    column = SORT_FIELDS[sort_by]
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Job.id.desc())

    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    counts = application_counts([job.id for job in pagination.items])

    jobs = []
    for job in pagination.items:
        data = job.to_dict()
        data["recruiter"] = _recruiter_summary(job)
        data["applicationCount"] = counts.get(job.id, 0)
        jobs.append(data)

    return envelope({
        "jobs": jobs,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": pagination.total,
            "pages": pagination.pages,
        },
    })


def application_counts(job_ids):
    if not job_ids:
        return {}
    rows = (
        db.session.query(Application.job_id, func.count(Application.id))
        .filter(Application.job_id.in_(job_ids))
        .group_by(Application.job_id)
        .all()
    )
    return dict(rows)


@jobs_bp.get("/<int:job_id>")
def get_job(job_id):
    job = _get_job(job_id)
    data = job.to_dict()
    data["recruiter"] = _recruiter_summary(job)
    data["applications"] = [
        {**a.to_dict(), "user": {"id": a.user.id, "name": a.user.name, "email": a.user.email}}
        for a in job.applications
    ]
    return envelope(data)


# ================= POST JOB =================
@jobs_bp.post("")
@requires("job", "create")
def create_job():
    form = JobForm()
    if not form.validate():
        raise form_error(form)

    job = Job(
        title=form.title.data,
        description=form.description.data,
        company=form.company.data,
        location=form.location.data or None,
        salary=str(form.salary.data) if form.salary.data else None,
        skills=_skills(json_body()) or [],
        recruiter_id=current_user.id,
    )
    db.session.add(job)
    db.session.commit()
    logger.info("Job posted: job_id=%s recruiter=%s", job.id, current_user.id)

    data = job.to_dict()
    data["recruiter"] = _recruiter_summary(job)
    return envelope(data, "Job posted successfully.", 201)


@jobs_bp.put("/<int:job_id>")
@jwt_required()
def update_job(job_id):
    job = _get_job(job_id)
    authorize(current_user, "job", "update", owner_id=job.recruiter_id)

    form = JobUpdateForm()
    if not form.validate():
        raise form_error(form)

    for field in ("title", "description", "company", "location"):
        value = getattr(form, field).data
        if value:
            setattr(job, field, value)
    if form.salary.data:
        job.salary = str(form.salary.data)
    if form.status.data:
        job.status = JobStatus(form.status.data)
    skills = _skills(json_body())
    if skills is not None:
        job.skills = skills

    db.session.commit()

    data = job.to_dict()
    data["recruiter"] = _recruiter_summary(job)
    return envelope(data, "Job updated successfully.")


@jobs_bp.delete("/<int:job_id>")
@jwt_required()
def delete_job(job_id):
    job = _get_job(job_id)
    authorize(current_user, "job", "delete", owner_id=job.recruiter_id)

    db.session.delete(job)
    db.session.commit()
    logger.info("Job deleted: job_id=%s by user=%s", job_id, current_user.id)
    return envelope(message="Job deleted successfully.")


# ================= APPLY JOB =================
@jobs_bp.post("/<int:job_id>/apply")
@requires("application", "create")
def apply_job(job_id):
    job = _get_job(job_id)

    if Application.query.filter_by(job_id=job_id, user_id=current_user.id).first():
        raise Conflict("You have already applied for this job.")

    form = ApplicationForm()
    if not form.validate():
        raise form_error(form)

    resume_file = save_upload(request.files.get("resume"))

    application = Application(
        job_id=job_id,
        user_id=current_user.id,
        cover_letter=form.cover_letter.data or None,
        resume_file=resume_file,
        status=ApplicationStatus.APPLIED,
    )
    db.session.add(application)
    try:
        db.session.commit()
    except SQLAlchemyError:
        # a concurrent apply can still hit the unique constraint
        db.session.rollback()
        discard_upload(resume_file)
        raise

    events.bus.publish(
        events.JOB_APPLIED,
        events.JobApplied(
            applicationId=application.id,
            userId=current_user.id,
            jobId=job_id,
            recruiterId=job.recruiter_id,
        ),
    )

    data = application.to_dict()
    data["job"] = {"title": job.title, "company": job.company}
    data["user"] = {"name": current_user.name, "email": current_user.email}
    return envelope(data, "Application submitted successfully.", 201)


# ================= RECRUITER: APPLICATIONS =================
@jobs_bp.get("/<int:job_id>/applications")
@jwt_required()
def job_applications(job_id):
    job = _get_job(job_id)
    authorize(current_user, "job", "view_applications", owner_id=job.recruiter_id)

    applications = (
        Application.query.filter_by(job_id=job_id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )
    return envelope([
        {**a.to_dict(), "user": {"id": a.user.id, "name": a.user.name, "email": a.user.email}}
        for a in applications
    ])


@jobs_bp.patch("/applications/<int:application_id>/status")
@jwt_required()
def update_application_status(application_id):
    form = StatusForm()
    if not form.validate():
        raise ValidationError("Invalid status.")

    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found.")
    authorize(
        current_user, "application", "update_status", owner_id=application.job.recruiter_id
    )

    application.status = ApplicationStatus(form.status.data)
    db.session.commit()

    events.bus.publish(
        events.APPLICATION_STATUS_CHANGED,
        events.ApplicationStatusChanged(
            applicationId=application.id,
            userId=application.user_id,
            status=application.status.value,
            jobTitle=application.job.title,
        ),
    )

    data = application.to_dict()
    data["user"] = {
        "id": application.user.id,
        "name": application.user.name,
        "email": application.user.email,
    }
    data["job"] = {"title": application.job.title, "company": application.job.company}
    return envelope(data, "Application status updated successfully.")
