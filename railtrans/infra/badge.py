"""
E-badge rendering: a one-page A6 PDF with the registrant details and a
QR code that encodes the ticket code.
"""
import io
import json
import logging
from typing import Optional
import qrcode
from reportlab.lib.pagesizes import A6
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas
from ..core.email_templates import determine_role_label
from ..core.normalizers import plural_role

logger = logging.getLogger(__name__)

LABEL_COLORS = {
    "VISITOR": (0.10, 0.43, 0.53),
    "DELEGATE": (0.78, 0.06, 0.18),
    "PARTNER": (0.04, 0.31, 0.38),
    "AWARDEE": (0.72, 0.53, 0.04),
    "EXHIBITOR": (0.18, 0.49, 0.20),
    "SPEAKER": (0.42, 0.18, 0.55),
}


def build_qr_payload(registrant: dict) -> str:
    """
    Compact JSON encoded in the badge QR.
    Ticket validation reads `ticket_code` back out of it.
    """
    role = registrant.get("role") or ""
    payload = {
        "ticket_code": registrant.get("ticket_code") or "",
        "entity": plural_role(role) if role else "",
        "id": registrant.get("id"),
        "name": registrant.get("name") or "",
    }
    return json.dumps(payload, separators=(",", ":"))


def make_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(version=1, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    buffer = io.BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def render_badge_pdf(registrant: dict, event: Optional[dict] = None) -> bytes:
    """
    Render the e-badge PDF for a registrant dict (as returned by the API).
    """
    event = event or {}
    label = determine_role_label(registrant, registrant.get("ticket_category") or "")
    color = LABEL_COLORS.get(label, LABEL_COLORS["VISITOR"])
    width, height = A6

    buffer = io.BytesIO()
    c = pdf_canvas.Canvas(buffer, pagesize=A6)
    c.setTitle(f"E-Badge {registrant.get('ticket_code') or ''}".strip())

    # header band
    c.setFillColorRGB(0.04, 0.31, 0.38)
    c.rect(0, height - 22 * mm, width, 22 * mm, stroke=0, fill=1)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 11)
    c.drawCentredString(width / 2, height - 10 * mm, (event.get("name") or "RailTrans Expo")[:48])
    c.setFont("Helvetica", 7)
    details = " | ".join(part for part in (event.get("dates"), event.get("venue")) if part)
    c.drawCentredString(width / 2, height - 16 * mm, details[:80])

    c.setFillColorRGB(0.07, 0.09, 0.15)
    c.setFont("Helvetica-Bold", 14)
    c.drawCentredString(width / 2, height - 32 * mm, (registrant.get("name") or "")[:32])
    company = registrant.get("company") or ""
    if company:
        c.setFont("Helvetica", 9)
        c.drawCentredString(width / 2, height - 38 * mm, company[:48])

    qr_png = make_qr_png(build_qr_payload(registrant))
    qr_size = 45 * mm
    c.drawImage(ImageReader(io.BytesIO(qr_png)), (width - qr_size) / 2, 28 * mm, qr_size, qr_size)

    c.setFont("Helvetica-Bold", 10)
    c.drawCentredString(width / 2, 23 * mm, registrant.get("ticket_code") or "")

    # role strip
    c.setFillColorRGB(*color)
    c.rect(0, 0, width, 16 * mm, stroke=0, fill=1)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(width / 2, 5.5 * mm, label)

    c.showPage()
    c.save()
    logger.debug(f"Badge rendered: id={registrant.get('id')}, role={registrant.get('role')}, label={label}")
    return buffer.getvalue()
