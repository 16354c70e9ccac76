import logging

from flask import Blueprint, current_app, make_response
from flask_jwt_extended import current_user, jwt_required
from werkzeug.utils import secure_filename

import pdf
from errors import NotFound, ValidationError, form_error
from forms import ResumeForm
from models import Resume, db
from policy import is_allowed
from responses import envelope, json_body

logger = logging.getLogger(__name__)

resumes_bp = Blueprint("resumes", __name__)


def _content(payload, required):
    content = payload.get("content")
    if content is None and not required:
        return None
    if not isinstance(content, dict) or not content:
        raise ValidationError("Title and content are required.")
    return content


def _own_resume(resume_id):
    resume = db.session.get(Resume, resume_id)
    if resume is None or not is_allowed(current_user, "resume", "manage", owner_id=resume.user_id):
        raise NotFound("Resume not found.")
    return resume


@resumes_bp.get("")
@jwt_required()
def list_resumes():
    resumes = (
        Resume.query.filter_by(user_id=current_user.id)
        .order_by(Resume.created_at.desc(), Resume.id.desc())
        .all()
    )
    return envelope([r.to_dict() for r in resumes])


@resumes_bp.get("/<int:resume_id>")
@jwt_required()
def get_resume(resume_id):
    return envelope(_own_resume(resume_id).to_dict())


@resumes_bp.post("")
@jwt_required()
def create_resume():
    form = ResumeForm()
    if not form.validate():
        raise ValidationError("Title and content are required.")

    resume = Resume(
        title=form.title.data,
        content=_content(json_body(), required=True),
        user_id=current_user.id,
    )
    db.session.add(resume)
    db.session.commit()
    logger.info("Resume created: resume_id=%s user=%s", resume.id, current_user.id)
    return envelope(resume.to_dict(), "Resume created successfully.", 201)


@resumes_bp.put("/<int:resume_id>")
@jwt_required()
def update_resume(resume_id):
    resume = _own_resume(resume_id)
    payload = json_body()

    title = payload.get("title")
    if title is not None:
        form = ResumeForm()
        if not form.validate():
            raise form_error(form)
        resume.title = form.title.data

    content = _content(payload, required=False)
    if content is not None:
        resume.content = content

    db.session.commit()
    return envelope(resume.to_dict(), "Resume updated successfully.")


@resumes_bp.delete("/<int:resume_id>")
@jwt_required()
def delete_resume(resume_id):
    resume = _own_resume(resume_id)
    db.session.delete(resume)
    db.session.commit()
    return envelope(message="Resume deleted successfully.")


# ================= PDF EXPORT =================
@resumes_bp.get("/<int:resume_id>/pdf")
@jwt_required()
def resume_pdf(resume_id):
    resume = _own_resume(resume_id)
    html = pdf.render_resume_html(resume)

    with pdf.launch_engine() as engine:
        data = pdf.render_pdf(engine, html, current_app.config["PDF_RENDER_TIMEOUT_MS"])

    filename = secure_filename(resume.title) or f"resume-{resume.id}"
    response = make_response(data)
    response.headers["Content-Type"] = "application/pdf"
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}.pdf"'
    response.headers["Content-Length"] = str(len(data))
    logger.info("Resume exported: resume_id=%s bytes=%s", resume.id, len(data))
    return response
