# services/session_helper.py - small helpers to load/store the quiz state in the Flask session
from services.quiz_session import QuizSession

QUIZ_KEY = "quiz"


class SessionHelper:
    @staticmethod
    def has_quiz_session(session) -> bool:
        return QUIZ_KEY in session

    @staticmethod
    def load_quiz_session(session, questions, **kwargs) -> QuizSession:
        data = session.get(QUIZ_KEY)
        if not isinstance(data, dict):
            return QuizSession(questions, **kwargs)
        return QuizSession.from_dict(questions, data, **kwargs)

    @staticmethod
    def save_quiz_session(session, quiz: QuizSession):
        session[QUIZ_KEY] = quiz.to_dict()

    @staticmethod
    def clear_quiz_session(session):
        session.pop(QUIZ_KEY, None)
