import enum
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() + "Z" if value else None


class Role(str, enum.Enum):
    USER = "USER"
    RECRUITER = "RECRUITER"
    ADMIN = "ADMIN"


class JobStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ApplicationStatus(str, enum.Enum):
    APPLIED = "APPLIED"
    REVIEWED = "REVIEWED"
    SHORTLISTED = "SHORTLISTED"
    REJECTED = "REJECTED"
    SELECTED = "SELECTED"


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255))
    google_id = db.Column(db.String(100), unique=True)
    role = db.Column(db.Enum(Role), nullable=False, default=Role.USER)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # a user can have many applications and resumes
    applications = db.relationship(
        "Application", backref="user", lazy=True, cascade="all, delete-orphan"
    )
    resumes = db.relationship(
        "Resume", backref="user", lazy=True, cascade="all, delete-orphan"
    )
    # a recruiter can post many jobs
    jobs_posted = db.relationship(
        "Job", backref="recruiter", lazy=True, cascade="all, delete-orphan"
    )

    def public_profile(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }

    def to_dict(self):
        data = self.public_profile()
        data["createdAt"] = isoformat(self.created_at)
        return data


class Job(db.Model):
    __tablename__ = "job"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    company = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(100))
    salary = db.Column(db.String(100))
    skills = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.Enum(JobStatus), nullable=False, default=JobStatus.OPEN)
    recruiter_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # a job can have many applications
    applications = db.relationship(
        "Application", backref="job", lazy=True, cascade="all, delete-orphan"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "company": self.company,
            "location": self.location,
            "salary": self.salary,
            "skills": self.skills or [],
            "status": self.status.value,
            "recruiterId": self.recruiter_id,
            "createdAt": isoformat(self.created_at),
        }


class Application(db.Model):
    __tablename__ = "application"
    __table_args__ = (
        db.UniqueConstraint("user_id", "job_id", name="uq_application_user_job"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey("job.id"), nullable=False)
    cover_letter = db.Column(db.Text)
    status = db.Column(
        db.Enum(ApplicationStatus), nullable=False, default=ApplicationStatus.APPLIED
    )
    resume_file = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "jobId": self.job_id,
            "coverLetter": self.cover_letter,
            "status": self.status.value,
            "resumeFile": self.resume_file,
            "createdAt": isoformat(self.created_at),
        }


class Resume(db.Model):
    __tablename__ = "resume"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content or {},
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class ChatMessage(db.Model):
    __tablename__ = "chat_message"
    __table_args__ = (
        db.Index("ix_chat_message_pair", "sender_id", "receiver_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "message": self.message,
            "createdAt": isoformat(self.created_at),
        }
