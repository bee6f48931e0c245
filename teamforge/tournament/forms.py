"""Forms for the tournament blueprint.

Field names follow the JSON wire format; Flask-WTF reads ``request.get_json()``
when the request is JSON.
"""

from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class TournamentForm(FlaskForm):
    """Form for creating a tournament."""

    name = StringField("Tournament Name", validators=[DataRequired(), Length(max=120)])

    type = SelectField(
        "Type",
        choices=[("solo", "Solo"), ("duo", "Duo"), ("squad", "Squad")],
        validators=[DataRequired()],
    )

    date = StringField(
        "Date", validators=[DataRequired(), Regexp(DATE_PATTERN, message="Use YYYY-MM-DD.")]
    )

    startTime = StringField("Start Time", validators=[DataRequired()])

    registrationDeadline = StringField("Registration Deadline", validators=[DataRequired()])

    maxTeams = IntegerField("Max Teams", validators=[DataRequired(), NumberRange(min=1)])

    description = TextAreaField("Description", validators=[Optional()])

    prize = StringField("Prize", validators=[Optional()])

    serverIP = StringField("Server IP", validators=[Optional()])


class TournamentDateForm(FlaskForm):
    """Form for creating a legacy date bucket."""

    date = StringField(
        "Date", validators=[DataRequired(), Regexp(DATE_PATTERN, message="Use YYYY-MM-DD.")]
    )

    maxTeams = IntegerField("Max Teams", validators=[DataRequired(), NumberRange(min=1)])
