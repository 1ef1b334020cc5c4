# routes/result_routes.py - result display
from flask import Blueprint, current_app, redirect, render_template, session, url_for
from flask_login import login_required

from services.question_bank import QUESTIONS
from services.quiz_session import PASSING_SCORE
from services.session_helper import SessionHelper

result_bp = Blueprint("result", __name__)


@result_bp.route("/result")
@login_required
def result_page():
    """Pass/fail view for a completed quiz session."""
    if not SessionHelper.has_quiz_session(session):
        return redirect(url_for("quiz.show_question"))

    quiz = SessionHelper.load_quiz_session(session, QUESTIONS)
    results = quiz.results()
    if results is None:
        return redirect(url_for("quiz.show_question"))

    current_app.logger.info("result_viewed score=%s/%s passed=%s", results.score, results.total, results.passed)
    return render_template(
        "result.html",
        results=results,
        passing_score=PASSING_SCORE,
        course_name=current_app.config["COURSE_NAME"],
    )
