"""Certificate rendering, PDF packaging and the export pipeline."""

import io
import threading
import time
from datetime import date
from unittest.mock import MagicMock

import pytest
from PIL import Image

from app import create_app
from models import CertificateIssue, User, db
from services.certificate_service import (
    LAYOUT_HEIGHT,
    LAYOUT_WIDTH,
    PDF_FILENAME,
    RENDER_SCALE,
    CertificateExporter,
    HttpCertificateNotifier,
    LocalCertificateNotifier,
    build_certificate_pdf,
    encode_png,
    get_certificate_notifier,
    render_certificate,
)
from services.identity import Identity
from services.tasks import TaskRunner

IDENTITY = Identity("Grace Hopper", "Navy Computing", "grace@example.com")


def test_render_uses_fixed_layout_and_scale():
    image = render_certificate(IDENTITY, "Ethics 101", issued_on=date(2024, 5, 2))
    assert image.size == (LAYOUT_WIDTH * RENDER_SCALE, LAYOUT_HEIGHT * RENDER_SCALE)
    assert image.mode == "RGB"
    # White background in the corner, border drawn further in
    assert image.getpixel((2, 2)) == (255, 255, 255)


def test_render_handles_very_long_names():
    long_identity = Identity("A" * 200, "B" * 200, "long@example.com")
    image = render_certificate(long_identity, scale=1)
    assert image.size == (LAYOUT_WIDTH, LAYOUT_HEIGHT)


def test_png_encoding():
    png = encode_png(render_certificate(IDENTITY, scale=1))
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
    assert Image.open(io.BytesIO(png)).size == (LAYOUT_WIDTH, LAYOUT_HEIGHT)


def test_pdf_is_single_landscape_page():
    pdf = build_certificate_pdf(encode_png(render_certificate(IDENTITY, scale=1)))
    assert pdf.startswith(b"%PDF-")
    assert b"/Count 1" in pdf
    assert b"/MediaBox [ 0 0 800 600 ]" in pdf


def test_export_saves_then_notifies_in_order():
    calls = []
    flags = []

    exporter = None

    def saver(filename, data):
        flags.append(exporter.is_generating)
        calls.append(("save", filename, data[:5]))

    notifier = MagicMock()
    notifier.notify.side_effect = lambda email: calls.append(("notify", email))

    exporter = CertificateExporter(saver=saver, notifier=notifier)
    assert exporter.is_generating is False
    result = exporter.export(IDENTITY)

    assert result.ok
    assert calls == [("save", PDF_FILENAME, b"%PDF-"), ("notify", "grace@example.com")]
    assert notifier.notify.call_count == 1
    assert flags == [True]
    assert exporter.is_generating is False


def test_notification_failure_does_not_undo_download():
    saver = MagicMock()
    notifier = MagicMock()
    notifier.notify.side_effect = RuntimeError("endpoint down")

    exporter = CertificateExporter(saver=saver, notifier=notifier)
    result = exporter.export(IDENTITY)

    assert result.saved
    assert not result.notified
    assert isinstance(result.error, RuntimeError)
    saver.assert_called_once()
    assert exporter.is_generating is False


def test_render_failure_saves_nothing(monkeypatch):
    def broken_render(*a, **k):
        raise OSError("font missing")

    monkeypatch.setattr("services.certificate_service.render_certificate", broken_render)
    saver = MagicMock()
    notifier = MagicMock()
    exporter = CertificateExporter(saver=saver, notifier=notifier)
    result = exporter.export(IDENTITY)

    assert not result.saved
    assert isinstance(result.error, OSError)
    saver.assert_not_called()
    notifier.notify.assert_not_called()
    assert exporter.is_generating is False


def test_http_notifier_treats_non_2xx_as_failure(monkeypatch):
    class Resp:
        status_code = 500
        content = b""

        def raise_for_status(self):
            import requests

            raise requests.HTTPError("HTTP 500")

    monkeypatch.setattr("services.api_client.requests.post", lambda *a, **k: Resp())
    from services.api_client import ApiError

    with pytest.raises(ApiError):
        HttpCertificateNotifier("http://x/api/certinfo").notify("grace@example.com")


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app


def test_local_notifier_records_issue(app):
    db.session.add(User(username="grace", email="grace@example.com", password_hash="x"))
    db.session.commit()
    LocalCertificateNotifier().notify("grace@example.com")
    assert CertificateIssue.query.filter_by(email="grace@example.com").count() == 1


def test_local_notifier_rejects_unknown_user(app):
    with pytest.raises(LookupError):
        LocalCertificateNotifier().notify("nobody@example.com")


def test_get_certificate_notifier_follows_config(app):
    assert isinstance(get_certificate_notifier(), LocalCertificateNotifier)
    app.config["CERTINFO_API_URL"] = "https://api.example.com/api/certinfo"
    assert isinstance(get_certificate_notifier(), HttpCertificateNotifier)


def test_slow_notification_does_not_hold_the_download():
    release = threading.Event()
    notified = []

    class SlowNotifier:
        def notify(self, email):
            release.wait(5)
            notified.append(email)

    runner = TaskRunner(max_workers=1)
    saver = MagicMock()
    exporter = CertificateExporter(
        saver=saver, notifier=SlowNotifier(), task_runner=runner, notify_timeout=0.1
    )
    try:
        started = time.monotonic()
        result = exporter.export(IDENTITY)
        assert time.monotonic() - started < 4
        assert result.saved
        assert not result.notified
        assert result.error is None
        saver.assert_called_once()
        assert exporter.is_generating is False

        release.set()
        assert result.notification.wait(timeout=5)
        assert notified == ["grace@example.com"]
    finally:
        release.set()
        runner.shutdown()
