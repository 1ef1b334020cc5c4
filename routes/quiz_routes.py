# routes/quiz_routes.py - quiz session: mount, answer selection and navigation
from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import login_required

from services.identity import current_identity
from services.question_bank import QUESTIONS
from services.quiz_session import QuizSession
from services.score_sync import get_score_client
from services.session_helper import SessionHelper
from services.tasks import get_task_runner

quiz_bp = Blueprint("quiz", __name__)


def _build_session() -> QuizSession:
    return SessionHelper.load_quiz_session(
        session,
        QUESTIONS,
        identity=current_identity(),
        score_client=get_score_client(),
        task_runner=get_task_runner(),
    )


def _finish(quiz: QuizSession):
    """Wait for pending side effects, flash their notices and store the state."""
    for task in (quiz.fetch_task, quiz.save_task):
        if task is None:
            continue
        task.wait(timeout=current_app.config.get("API_TIMEOUT_SECONDS"))
        if not task.settled:
            # Anything the task reports after this point is dropped
            current_app.logger.warning("quiz_task_timeout task=%s", task.name)
            flash("Error: The score service did not answer in time.", "error")
    for notice in quiz.drain_notices():
        flash(f"{notice.title}: {notice.message}", notice.category)
    SessionHelper.save_quiz_session(session, quiz)
    if quiz.is_completed:
        return redirect(url_for("result.result_page"))
    return redirect(url_for("quiz.show_question"))


def _int_field(name: str) -> int:
    value = request.form.get(name, "")
    try:
        return int(value)
    except ValueError:
        abort(400)


@quiz_bp.route("/quiz", methods=["GET"])
@login_required
def show_question():
    """Display the current question; the first visit fetches the prior score."""
    if not SessionHelper.has_quiz_session(session):
        quiz = _build_session()
        quiz.mount()
        current_app.logger.info("quiz_mounted email=%s completed=%s", quiz.identity.email, quiz.is_completed)
        return _finish(quiz)

    quiz = _build_session()
    if quiz.is_completed:
        return redirect(url_for("result.result_page"))

    question = quiz.current_question
    return render_template(
        "quiz.html",
        question=question,
        index=quiz.current_index,
        total=quiz.total,
        progress=quiz.progress,
        selected=quiz.answers[quiz.current_index],
        can_go_next=quiz.can_go_next,
        is_last=quiz.current_index == quiz.total - 1,
        course_name=current_app.config["COURSE_NAME"],
    )


@quiz_bp.route("/quiz/answer", methods=["POST"])
@login_required
def select_answer():
    quiz = _build_session()
    if quiz.is_completed:
        return redirect(url_for("result.result_page"))
    index = _int_field("index")
    option = _int_field("option")
    if not 0 <= index < quiz.total or not 0 <= option < len(quiz.questions[index].options):
        abort(400)
    quiz.select_answer(index, option)
    return _finish(quiz)


@quiz_bp.route("/quiz/next", methods=["POST"])
@login_required
def next_question():
    quiz = _build_session()
    was_completed = quiz.is_completed
    if not quiz.go_next():
        if not was_completed:
            flash("Please select an answer before continuing.", "warning")
    elif quiz.is_completed:
        current_app.logger.info(
            "quiz_completed email=%s score=%s/%s", quiz.identity.email, quiz.score, quiz.total
        )
    return _finish(quiz)


@quiz_bp.route("/quiz/previous", methods=["POST"])
@login_required
def previous_question():
    quiz = _build_session()
    quiz.go_previous()
    return _finish(quiz)


@quiz_bp.route("/quiz/restart", methods=["POST"])
@login_required
def restart():
    quiz = _build_session()
    quiz.restart()
    return _finish(quiz)
