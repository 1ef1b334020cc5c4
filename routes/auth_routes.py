import re
import time
from typing import Dict, List

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from models import User, db
from services.session_helper import SessionHelper

auth_bp = Blueprint("auth", __name__)

# Simple in-memory rate limiting for login attempts per IP
_LOGIN_ATTEMPTS: Dict[str, List[float]] = {}
_LOGIN_WINDOW = 10 * 60  # 10 minutes
_LOGIN_MAX = 5


def _rate_limit_ip(ip: str) -> bool:
    now = time.time()
    entries = _LOGIN_ATTEMPTS.get(ip, [])
    # keep only attempts within window
    entries = [t for t in entries if now - t < _LOGIN_WINDOW]
    allowed = len(entries) < _LOGIN_MAX
    if not allowed:
        _LOGIN_ATTEMPTS[ip] = entries
        return False
    entries.append(now)
    _LOGIN_ATTEMPTS[ip] = entries
    return True


def _password_problem(password: str):
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    # Relaxed policy in tests
    if current_app.config.get("TESTING"):
        return None
    if (
        not re.search(r"[A-Z]", password)
        or not re.search(r"[a-z]", password)
        or not re.search(r"\d", password)
    ):
        return "Password must include upper case, lower case and a digit."
    return None


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if request.method == "POST":
        username = request.form.get("username", "").strip()
        email = request.form.get("email", "").strip().lower()
        full_name = request.form.get("full_name", "").strip()
        company_name = request.form.get("company_name", "").strip()
        password = request.form.get("password") or ""
        confirm_password = request.form.get("confirm_password") or ""
        prefill = dict(
            prefill_username=username,
            prefill_email=email,
            prefill_full_name=full_name,
            prefill_company_name=company_name,
        )

        if not username or not email or not password:
            flash("All fields are required", "error")
            return render_template("auth/register.html", **prefill)

        if len(username) < 3 or len(username) > 80:
            flash("Username must be between 3 and 80 characters", "error")
            return render_template("auth/register.html", **prefill)

        problem = _password_problem(password)
        if problem:
            flash(problem, "error")
            return render_template("auth/register.html", **prefill)

        if password != confirm_password:
            flash("Passwords do not match", "error")
            return render_template("auth/register.html", **prefill)

        if User.query.filter_by(username=username).first():
            flash("Username already exists", "error")
            return render_template("auth/register.html", **prefill)

        if User.query.filter_by(email=email).first():
            flash("Email already registered", "error")
            return render_template("auth/register.html", **prefill)

        try:
            user = User(
                username=username,
                email=email,
                full_name=full_name or None,
                company_name=company_name or None,
                password_hash=generate_password_hash(password),
            )
            db.session.add(user)
            db.session.commit()
        except Exception:
            db.session.rollback()
            flash("Registration failed. Please try again.", "error")
            current_app.logger.exception("registration_failed username=%s", username)
            return render_template("auth/register.html", **prefill)

        login_user(user)
        current_app.logger.info("user_registered username=%s id=%s", user.username, user.id)
        flash("Registration successful! You are now logged in.", "success")
        return redirect(url_for("main.index"))

    return render_template("auth/register.html")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        if not _rate_limit_ip(ip):
            flash("Too many login attempts. Please try again later.", "error")
            current_app.logger.warning("login_rate_limited ip=%s", ip)
            return redirect(url_for("auth.login"))

        username = request.form.get("username", "").strip()
        password = request.form.get("password", "")
        remember = request.form.get("remember", False) == "true"

        if not username or not password:
            flash("Both username and password are required", "error")
            return redirect(url_for("auth.login"))

        user = User.query.filter_by(username=username).first()
        if user and check_password_hash(user.password_hash, password):
            login_user(user, remember=remember)
            _LOGIN_ATTEMPTS.pop(ip, None)
            current_app.logger.info("login_success username=%s id=%s ip=%s", user.username, user.id, ip)
            next_page = request.args.get("next")
            if next_page and next_page.startswith("/") and not next_page.startswith("//"):
                return redirect(next_page)
            return redirect(url_for("main.index"))

        flash("Invalid username or password", "error")
        current_app.logger.warning("login_failed username=%s ip=%s", username, ip)

    return render_template("auth/login.html")


@auth_bp.route("/logout")
@login_required
def logout():
    username = getattr(current_user, "username", None)
    SessionHelper.clear_quiz_session(session)
    logout_user()
    current_app.logger.info("logout_success username=%s", username)
    return redirect(url_for("main.index"))
