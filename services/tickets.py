from datetime import timezone
from io import BytesIO
from zoneinfo import ZoneInfo

import qrcode
from fpdf import FPDF
from PIL import Image

from models import as_utc

QR_SIZE = 256
TICKET_QR_SIZE = 200
TICKET_TITLE = "Cinema Ticket"


def qr_payload(booking):
    return f"booking:{booking.id}|session:{booking.session_id}|status:{booking.status}"


def render_qr(booking, size=QR_SIZE):
    """PNG bytes of a medium error-correction QR code, ``size`` pixels square."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(qr_payload(booking))
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").get_image()
    image = image.convert("L").resize((size, size), Image.NEAREST)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def sanitize_ascii(value):
    # The core PDF fonts only cover Latin-1; anything outside printable ASCII is replaced.
    cleaned = "".join(ch if 32 <= ord(ch) <= 126 else "?" for ch in value or "")
    return cleaned or "-"


def format_seat_list(seats):
    if not seats:
        return "-"
    ordered = sorted(seats, key=lambda seat: (seat.row, seat.number))
    return ", ".join(seat.label for seat in ordered)


def format_start_time(value, tz_name="UTC"):
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return as_utc(value).astimezone(tz).strftime("%Y-%m-%d %H:%M")


def render_ticket(booking, tz_name="UTC"):
    """Single page A4 ticket with the booking details and its QR code."""
    session = booking.session
    lines = [
        f"Booking: #{booking.id}",
        f"Movie: {sanitize_ascii(session.movie.title)}",
        f"Hall: {sanitize_ascii(session.hall.name)}",
        f"Start: {format_start_time(session.start_time, tz_name)}",
        f"Seats: {format_seat_list(booking.seats)}",
        f"Status: {sanitize_ascii(booking.status)}",
    ]

    pdf = FPDF(orientation="P", unit="mm", format="A4")
    pdf.set_margins(20, 20, 20)
    pdf.set_auto_page_break(False)
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 12, TICKET_TITLE)
    pdf.ln(14)
    pdf.set_font("Helvetica", "", 12)
    for line in lines:
        pdf.cell(0, 8, line)
        pdf.ln(8)
    pdf.ln(4)

    qr_png = render_qr(booking, size=TICKET_QR_SIZE)
    pdf.image(BytesIO(qr_png), x=20, y=pdf.get_y(), w=40, h=40)

    return bytes(pdf.output())
