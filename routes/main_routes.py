# routes/main_routes.py - landing page
from flask import Blueprint, current_app, render_template, session

from services.question_bank import QUESTIONS
from services.quiz_session import PASSING_SCORE
from services.session_helper import SessionHelper

main_bp = Blueprint("main", __name__)


@main_bp.route("/", methods=["GET"])
def index():
    """Landing page: training presentation and start button."""
    # Leaving the quiz discards the attempt in progress
    SessionHelper.clear_quiz_session(session)
    return render_template(
        "index.html",
        course_name=current_app.config["COURSE_NAME"],
        organization=current_app.config["ORGANIZATION_NAME"],
        support_email=current_app.config["SUPPORT_EMAIL"],
        total_questions=len(QUESTIONS),
        passing_score=PASSING_SCORE,
    )
