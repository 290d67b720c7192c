"""
Génération des QR codes de check-in.

Deux rendus à partir de l'URL stockée dans la session (jamais recalculée ici) :
- un aperçu écran (PNG 280 px)
- un flyer imprimable A4 portrait à 200 DPI : titre, sous-titre, séparateur,
  QR encadré, panneau « Informasi Sesi » optionnel et pied de page

Rendu pur : aucun accès réseau ni base de données.
"""

import io
import logging
from typing import Dict, Mapping, Optional

import qrcode
from PIL import Image, ImageDraw, ImageFont

from meetingtrack.schemas.session import SessionResponse
from meetingtrack.services.formatting import format_long_date, format_time_range, sanitize_title

logger = logging.getLogger(__name__)

# Aperçu écran
PREVIEW_SIZE = 280
PREVIEW_MARGIN = 2
QR_DARK = "#1e293b"
QR_LIGHT = "#ffffff"

# Flyer A4 portrait, 200 DPI
PAGE_WIDTH = 1654
PAGE_HEIGHT = 2339
PAGE_MARGIN = 150
QR_SIZE = 550
QR_FRAME = 20
PANEL_PADDING = 80
PANEL_ROW_HEIGHT = 65
PANEL_EXTRA_HEIGHT = 80

SUBTITLE = "QR Code Absensi"
PANEL_TITLE = "Informasi Sesi"
FOOTER_TEXT = "Scan QR code di atas untuk melakukan absensi"

INFO_LABELS = {
    "date": "Tanggal",
    "time": "Waktu",
    "location": "Lokasi",
    "coordinator": "Koordinator",
}

COLOR_TITLE = "#0f172a"
COLOR_MUTED = "#64748b"
COLOR_DIVIDER = "#e2e8f0"
COLOR_BORDER = "#cbd5e1"
COLOR_PANEL = "#f8fafc"


def make_qr(url: str, border: int = PREVIEW_MARGIN) -> qrcode.QRCode:
    """Construit la matrice QR encodant exactement l'URL fournie."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=border)
    qr.add_data(url)
    qr.make(fit=True)
    return qr


def qr_image(url: str, size: int = PREVIEW_SIZE) -> Image.Image:
    """Image carrée du QR code redimensionnée à `size` pixels."""
    img = make_qr(url).make_image(fill_color=QR_DARK, back_color=QR_LIGHT).get_image().convert("RGB")
    return img.resize((size, size), Image.NEAREST)


def generate_qr_png(url: str, size: int = PREVIEW_SIZE) -> bytes:
    """Génère l'aperçu PNG du QR code."""
    buf = io.BytesIO()
    qr_image(url, size).save(buf, format="PNG")
    return buf.getvalue()


def flyer_filename(title: str) -> str:
    return f"QR-{sanitize_title(title)}.png"


def session_info_for(session: SessionResponse, coordinator: Optional[str] = None) -> Dict[str, str]:
    """Lignes du panneau d'information, dans l'ordre d'affichage."""
    info = {
        "date": format_long_date(session.session_date),
        "time": format_time_range(session.start_time, session.end_time),
    }
    if session.location:
        info["location"] = session.location
    if coordinator:
        info["coordinator"] = coordinator
    return info


def info_panel_height(row_count: int) -> int:
    """Le panneau grandit avec le nombre de lignes affichées."""
    return row_count * PANEL_ROW_HEIGHT + PANEL_EXTRA_HEIGHT


def render_flyer(checkin_url: str, title: str, session_info: Optional[Mapping[str, Optional[str]]] = None) -> bytes:
    """
    Compose le flyer imprimable et le retourne en PNG.
    Les valeurs vides de session_info sont ignorées ; sans valeur, pas de panneau.
    """
    page = Image.new("RGB", (PAGE_WIDTH, PAGE_HEIGHT), "#ffffff")
    draw = ImageDraw.Draw(page)

    y = PAGE_MARGIN + 50

    # En-tête
    title_font = _fit_font(draw, title, 60, PAGE_WIDTH - 2 * PAGE_MARGIN, bold=True)
    _draw_centered(draw, y, title, title_font, COLOR_TITLE)
    y += 90
    _draw_centered(draw, y, SUBTITLE, _font(30), COLOR_MUTED)
    y += 80
    _draw_divider(draw, y)
    y += 100

    # QR code encadré
    qr_x = (PAGE_WIDTH - QR_SIZE) // 2
    draw.rectangle(
        [qr_x - QR_FRAME, y - QR_FRAME, qr_x + QR_SIZE + QR_FRAME, y + QR_SIZE + QR_FRAME],
        outline=COLOR_BORDER,
        width=3,
    )
    page.paste(qr_image(checkin_url, QR_SIZE), (qr_x, y))
    y += QR_SIZE + 100

    # Informations de session
    entries = [(key, value) for key, value in (session_info or {}).items() if value]
    if entries:
        _draw_centered(draw, y, PANEL_TITLE, _font(40, bold=True), COLOR_TITLE)
        y += 70
        _draw_info_panel(draw, y, entries)

    # Pied de page
    y = PAGE_HEIGHT - PAGE_MARGIN - 120
    _draw_centered(draw, y, FOOTER_TEXT, _font(26), COLOR_MUTED)
    y += 70
    _draw_divider(draw, y)

    buf = io.BytesIO()
    page.save(buf, format="PNG", dpi=(200, 200))
    logger.info("Flyer QR généré pour « %s » (%d lignes d'information)", title, len(entries))
    return buf.getvalue()


def _draw_info_panel(draw: ImageDraw.ImageDraw, y: int, entries) -> None:
    content_width = PAGE_WIDTH - 2 * PAGE_MARGIN
    panel_x = PAGE_MARGIN + PANEL_PADDING
    panel_width = content_width - 2 * PANEL_PADDING
    height = info_panel_height(len(entries))

    draw.rounded_rectangle(
        [panel_x, y, panel_x + panel_width, y + height],
        radius=20,
        fill=COLOR_PANEL,
        outline=COLOR_BORDER,
        width=2,
    )

    marker_x = panel_x + 50
    label_x = marker_x + 80
    value_right = panel_x + panel_width - 50
    label_font = _font(30)
    value_font = _font(30, bold=True)

    row_y = y + PANEL_EXTRA_HEIGHT // 2
    for key, value in entries:
        middle = row_y + PANEL_ROW_HEIGHT // 2
        draw.ellipse([marker_x, middle - 8, marker_x + 16, middle + 8], fill=COLOR_TITLE)
        _draw_middle(draw, label_x, middle, INFO_LABELS.get(key, key), label_font, COLOR_MUTED)
        value = str(value)
        _draw_middle(draw, value_right - _text_width(draw, value, value_font), middle, value, value_font, COLOR_TITLE)
        row_y += PANEL_ROW_HEIGHT


def _draw_divider(draw: ImageDraw.ImageDraw, y: int) -> None:
    draw.line([(PAGE_MARGIN + 200, y), (PAGE_WIDTH - PAGE_MARGIN - 200, y)], fill=COLOR_DIVIDER, width=2)


def _draw_centered(draw: ImageDraw.ImageDraw, y: int, text: str, font, fill: str) -> None:
    x = (PAGE_WIDTH - _text_width(draw, text, font)) // 2
    draw.text((x, y), text, font=font, fill=fill)


def _draw_middle(draw: ImageDraw.ImageDraw, x: int, middle: int, text: str, font, fill: str) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    draw.text((x, middle - (bottom + top) // 2), text, font=font, fill=fill)


def _text_width(draw: ImageDraw.ImageDraw, text: str, font) -> int:
    left, _, right, _ = draw.textbbox((0, 0), text, font=font)
    return right - left


def _fit_font(draw: ImageDraw.ImageDraw, text: str, size: int, max_width: int, bold: bool = False):
    """Réduit la taille du titre jusqu'à ce qu'il tienne dans la largeur utile."""
    font = _font(size, bold)
    while size > 30 and _text_width(draw, text, font) > max_width:
        size -= 4
        font = _font(size, bold)
    return font


def _font(size: int, bold: bool = False):
    name = "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"
    try:
        return ImageFont.truetype(name, size)
    except OSError:
        return ImageFont.load_default(size=size)
