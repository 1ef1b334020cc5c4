from services.question_bank import AnswerOption, Question
from services.quiz_session import QuizSession
from services.session_helper import QUIZ_KEY, SessionHelper

QUESTIONS = [
    Question(f"Q{i}", (AnswerOption("yes", True), AnswerOption("no"))) for i in range(3)
]


def test_load_without_state_gives_fresh_session():
    session = {}
    assert not SessionHelper.has_quiz_session(session)
    quiz = SessionHelper.load_quiz_session(session, QUESTIONS)
    assert quiz.current_index == 0
    assert quiz.answers == (None, None, None)


def test_save_then_load_restores_progress():
    session = {}
    quiz = QuizSession(QUESTIONS)
    quiz.select_answer(0, 0)
    quiz.go_next()
    SessionHelper.save_quiz_session(session, quiz)
    assert SessionHelper.has_quiz_session(session)

    restored = SessionHelper.load_quiz_session(session, QUESTIONS)
    assert restored.current_index == 1
    assert restored.answers == (0, None, None)
    assert restored.score == 1


def test_non_dict_state_is_ignored():
    session = {QUIZ_KEY: "garbage"}
    quiz = SessionHelper.load_quiz_session(session, QUESTIONS)
    assert quiz.current_index == 0


def test_clear():
    session = {QUIZ_KEY: {"answers": []}, "other": 1}
    SessionHelper.clear_quiz_session(session)
    assert session == {"other": 1}
    SessionHelper.clear_quiz_session(session)
