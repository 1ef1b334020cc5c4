# routes/api_routes.py - JSON endpoints for score records and certificate issues
import hmac

from flask import Blueprint, current_app, jsonify, request

from models import CertificateIssue, ScoreRecord, User, db

api_bp = Blueprint("api", __name__, url_prefix="/api")


@api_bp.before_request
def _check_token():
    expected = current_app.config.get("API_TOKEN")
    if not expected:
        return None
    provided = request.headers.get("Authorization", "")
    if not hmac.compare_digest(provided, f"Bearer {expected}"):
        return jsonify({"success": False, "message": "Invalid or missing token"}), 401
    return None


def _known_email(email: str) -> bool:
    return User.query.filter_by(email=email).first() is not None


@api_bp.route("/score", methods=["GET"])
def get_score():
    email = (request.args.get("email") or "").strip()
    if not email:
        return jsonify({"success": False, "message": "Email is required"}), 400

    record = ScoreRecord.query.filter_by(email=email).first()
    if record is None and not _known_email(email):
        return jsonify({"success": False, "message": "User not found"}), 404
    score = record.score if record else None
    return jsonify({"success": True, "userData": {"email": email, "score": score}})


@api_bp.route("/score", methods=["POST"])
def save_score():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    score = data.get("score")
    if not isinstance(email, str) or not email.strip():
        return jsonify({"success": False, "message": "Email is required"}), 400
    # bool is an int subclass; reject it explicitly
    if not isinstance(score, int) or isinstance(score, bool) or score < 0:
        return jsonify({"success": False, "message": "Score must be a non-negative integer"}), 400

    email = email.strip()
    try:
        record = ScoreRecord.query.filter_by(email=email).first()
        if record is None:
            record = ScoreRecord(email=email)
            db.session.add(record)
        record.score = score
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("api_score_save_failed email=%s error=%s", email, e)
        return jsonify({"success": False, "message": "Database error"}), 500

    current_app.logger.info("api_score_saved email=%s score=%s", email, score)
    return jsonify({"success": True, "userData": {"email": email, "score": score}})


@api_bp.route("/certinfo", methods=["POST"])
def certificate_info():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    if not isinstance(email, str) or not email.strip():
        return jsonify({"success": False, "message": "Email is required"}), 400
    email = email.strip()
    if not _known_email(email):
        return jsonify({"success": False, "message": "User not found"}), 404

    try:
        db.session.add(CertificateIssue(email=email))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("api_certinfo_failed email=%s error=%s", email, e)
        return jsonify({"success": False, "message": "Database error"}), 500

    current_app.logger.info("api_certificate_issued email=%s", email)
    return jsonify({"success": True})
