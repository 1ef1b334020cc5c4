# routes/certificate_routes.py - certificate view, preview image and PDF download
import io

from flask import Blueprint, Response, current_app, flash, redirect, render_template, send_file, url_for

from services.certificate_service import (
    LAYOUT_HEIGHT,
    LAYOUT_WIDTH,
    CertificateExporter,
    get_certificate_notifier,
    render_preview_png,
)
from services.identity import current_identity
from services.tasks import get_task_runner

certificate_bp = Blueprint("certificate", __name__)


def _placeholder(status=200):
    return render_template("certificate.html", identity=None), status


@certificate_bp.route("/certificate", methods=["GET"])
def certificate():
    identity = current_identity()
    if identity is None:
        return _placeholder()
    return render_template(
        "certificate.html",
        identity=identity,
        width=LAYOUT_WIDTH,
        height=LAYOUT_HEIGHT,
        course_name=current_app.config["COURSE_NAME"],
    )


@certificate_bp.route("/certificate/preview.png", methods=["GET"])
def preview():
    identity = current_identity()
    if identity is None:
        return _placeholder(401)
    png = render_preview_png(identity, current_app.config["COURSE_NAME"])
    return Response(png, mimetype="image/png", headers={"Cache-Control": "no-store"})


@certificate_bp.route("/certificate/download", methods=["POST"])
def download():
    identity = current_identity()
    if identity is None:
        return _placeholder(401)

    saved = {}

    def _save(filename, data):
        saved["filename"] = filename
        saved["data"] = data

    exporter = CertificateExporter(
        saver=_save,
        notifier=get_certificate_notifier(),
        task_runner=get_task_runner(),
        course_name=current_app.config["COURSE_NAME"],
        notify_timeout=current_app.config.get("API_TIMEOUT_SECONDS"),
    )
    result = exporter.export(identity)

    if not result.saved:
        flash("The certificate could not be generated. Please try again.", "error")
        return redirect(url_for("certificate.certificate"))

    # The download goes out even when the issue notification failed
    if not result.notified:
        current_app.logger.warning("certificate_notification_failed email=%s", identity.email)
    return send_file(
        io.BytesIO(saved["data"]),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=saved["filename"],
    )
