from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(120), nullable=True)
    company_name = db.Column(db.String(120), nullable=True)


class ScoreRecord(db.Model):
    """Last persisted quiz score, keyed by email."""

    __tablename__ = "score_record"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    # NULL until the user has completed the quiz once
    score = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class CertificateIssue(db.Model):
    __tablename__ = "certificate_issue"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), nullable=False, index=True)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
