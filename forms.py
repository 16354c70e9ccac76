from flask_wtf import FlaskForm
from wtforms import PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional

from models import ApplicationStatus, JobStatus, Role

# FlaskForm reads request.get_json() for JSON bodies, so these forms validate
# API payloads the same way they would validate an HTML form post.


class SignupForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=100)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6)])
    role = SelectField(
        "Role",
        choices=[(Role.USER.value, "Job Seeker"), (Role.RECRUITER.value, "Recruiter")],
        default=Role.USER.value,
        validate_choice=True,
    )


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])


class ProfileForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=100)])


class RoleForm(FlaskForm):
    role = SelectField(
        "Role", choices=[(r.value, r.value) for r in Role], validators=[DataRequired()]
    )


class JobForm(FlaskForm):
    title = StringField("Job Title", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Job Description", validators=[DataRequired()])
    company = StringField("Company", validators=[DataRequired(), Length(max=200)])
    location = StringField("Location", validators=[Optional(), Length(max=100)])
    salary = StringField("Salary", validators=[Optional()])


class JobUpdateForm(FlaskForm):
    title = StringField("Job Title", validators=[Optional(), Length(max=200)])
    description = TextAreaField("Job Description", validators=[Optional()])
    company = StringField("Company", validators=[Optional(), Length(max=200)])
    location = StringField("Location", validators=[Optional(), Length(max=100)])
    salary = StringField("Salary", validators=[Optional()])
    status = SelectField(
        "Status",
        choices=[(s.value, s.value) for s in JobStatus],
        validators=[Optional()],
    )


class ApplicationForm(FlaskForm):
    cover_letter = TextAreaField("Cover Letter", validators=[Optional()])


class StatusForm(FlaskForm):
    status = SelectField(
        "Status",
        choices=[(s.value, s.value) for s in ApplicationStatus],
        validators=[DataRequired()],
    )


class ResumeForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
