# services/certificate_service.py - certificate export pipeline
# layout (800x600 logical units) -> 3x raster -> PNG -> landscape 800x600 PDF
# -> saver -> notify the certificate endpoint
import io
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Protocol

from flask import current_app
from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from models import CertificateIssue, User, db
from services.api_client import JsonApiClient
from services.identity import Identity
from services.tasks import Task, TaskRunner

logger = logging.getLogger(__name__)

LAYOUT_WIDTH = 800
LAYOUT_HEIGHT = 600
RENDER_SCALE = 3
PDF_FILENAME = "certificate.pdf"
DEFAULT_COURSE_NAME = "Anti-Corruption Training"

NAVY = "#1e3a8a"
GOLD = "#c9a227"
INK = "#1f2937"
MUTED = "#4b5563"

Saver = Callable[[str, bytes], None]


class CertificateNotifier(Protocol):
    def notify(self, email: str) -> None: ...


@dataclass
class ExportResult:
    saved: bool = False
    notified: bool = False
    notification: Optional[Task] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.saved and self.notified


# --- rendering ---


def _font(size: float):
    return ImageFont.load_default(size=size)


def _draw_centered(draw, text, y, size, scale, fill, max_width=LAYOUT_WIDTH - 100):
    """Draw text centred horizontally at logical y, shrinking the font until it fits."""
    px = size * scale
    font = _font(px)
    while draw.textlength(text, font=font) > max_width * scale and px > 8 * scale:
        px -= scale
        font = _font(px)
    width = draw.textlength(text, font=font)
    draw.text(((LAYOUT_WIDTH * scale - width) / 2, y * scale), text, font=font, fill=fill)


def render_certificate(
    identity: Identity,
    course_name: str = DEFAULT_COURSE_NAME,
    issued_on: Optional[date] = None,
    scale: int = RENDER_SCALE,
) -> Image.Image:
    issued_on = issued_on or date.today()
    width, height = LAYOUT_WIDTH * scale, LAYOUT_HEIGHT * scale
    image = Image.new("RGB", (width, height), "#ffffff")
    draw = ImageDraw.Draw(image)

    def s(v):
        return int(round(v * scale))

    draw.rectangle([s(20), s(20), width - s(20) - 1, height - s(20) - 1], outline=NAVY, width=s(6))
    draw.rectangle([s(34), s(34), width - s(34) - 1, height - s(34) - 1], outline=GOLD, width=s(2))

    _draw_centered(draw, "CERTIFICATE OF COMPLETION", 80, 40, scale, NAVY)
    _draw_centered(draw, "This certificate is proudly awarded to", 180, 18, scale, MUTED)
    _draw_centered(draw, identity.name, 220, 40, scale, INK)
    draw.line([s(200), s(278), width - s(200), s(278)], fill=GOLD, width=s(2))
    _draw_centered(draw, identity.organization, 295, 22, scale, MUTED)
    _draw_centered(draw, "for successfully completing the training", 350, 18, scale, MUTED)
    _draw_centered(draw, course_name, 385, 28, scale, NAVY)
    _draw_centered(draw, f"Issued on {issued_on.strftime('%d %B %Y')}", 480, 16, scale, MUTED)
    return image


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def build_certificate_pdf(png_bytes: bytes, title: str = "Certificate") -> bytes:
    """One landscape 800x600 page holding the PNG stretched to the full page."""
    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=landscape((LAYOUT_HEIGHT, LAYOUT_WIDTH)), pageCompression=1)
    pdf.setTitle(title)
    pdf.setSubject("Training certificate")
    pdf.setCreator("training-quiz")
    pdf.drawImage(ImageReader(io.BytesIO(png_bytes)), 0, 0, width=LAYOUT_WIDTH, height=LAYOUT_HEIGHT)
    pdf.showPage()
    pdf.save()
    return buf.getvalue()


def render_preview_png(identity: Identity, course_name: str = DEFAULT_COURSE_NAME) -> bytes:
    return encode_png(render_certificate(identity, course_name, scale=1))


# --- notification ---


class HttpCertificateNotifier:
    def __init__(self, url: str, timeout: Optional[float] = None, token: str = ""):
        self._api = JsonApiClient(url, timeout=timeout, token=token)

    def notify(self, email: str) -> None:
        # Any non-2xx reply raises ApiError
        self._api.post_json({"email": email})
        logger.info("certificate_notified email=%s", email)


class LocalCertificateNotifier:
    def notify(self, email: str) -> None:
        if User.query.filter_by(email=email).first() is None:
            raise LookupError(f"unknown user {email}")
        try:
            db.session.add(CertificateIssue(email=email))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info("certificate_recorded email=%s", email)


def get_certificate_notifier() -> CertificateNotifier:
    url = current_app.config.get("CERTINFO_API_URL")
    if url:
        return HttpCertificateNotifier(
            url,
            timeout=current_app.config.get("API_TIMEOUT_SECONDS"),
            token=current_app.config.get("API_TOKEN", ""),
        )
    return LocalCertificateNotifier()


# --- pipeline ---


class CertificateExporter:
    def __init__(
        self,
        saver: Saver,
        notifier: CertificateNotifier,
        task_runner: Optional[TaskRunner] = None,
        course_name: str = DEFAULT_COURSE_NAME,
        notify_timeout: Optional[float] = None,
    ):
        self.saver = saver
        self.notifier = notifier
        self.task_runner = task_runner or TaskRunner(eager=True)
        self.course_name = course_name
        self.notify_timeout = notify_timeout
        self.is_generating = False

    def export(self, identity: Identity) -> ExportResult:
        """Run the whole pipeline; failures are logged and reported in the result, never raised."""
        result = ExportResult()
        self.is_generating = True
        try:
            png = encode_png(render_certificate(identity, self.course_name))
            pdf_bytes = build_certificate_pdf(png, title=f"{self.course_name} - {identity.name}")
            self.saver(PDF_FILENAME, pdf_bytes)
            result.saved = True
            logger.info("certificate_saved email=%s bytes=%s", identity.email, len(pdf_bytes))

            result.notification = self.task_runner.submit(
                "certificate_notification", self.notifier.notify, identity.email
            )
            task = result.notification
            if task.wait(timeout=self.notify_timeout):
                result.notified = True
            elif task.error is not None:
                raise task.error
            else:
                # Still running: the download goes out and the notification finishes in the background
                logger.warning("certificate_notification_pending email=%s", identity.email)
        except Exception as e:
            logger.exception("certificate_export_failed email=%s saved=%s", identity.email, result.saved)
            result.error = e
        finally:
            self.is_generating = False
        return result
