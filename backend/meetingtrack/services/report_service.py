"""
Export du rapport de présence d'une session (PDF et CSV).

PDF :
  - kop surat (en-tête institutionnel) uniquement en première page, logo optionnel
  - titre « LAPORAN DAFTAR HADIR » et cadre d'informations de la session
  - tableau paginé des présences avec la signature de chaque participant
  - pied de page « Page i of N » sur chaque page, calculé après pagination complète

CSV : une ligne par participant, tous les champs entre guillemets, UTF-8 avec BOM.

Les deux exports ne dépendent que de (session, présences). Seul le logo peut
nécessiter un appel réseau ; s'il échoue, l'export continue sans logo.
Une signature illisible laisse sa cellule vide sans interrompre l'export.
"""

import base64
import binascii
import csv
import io
import logging
import datetime as dt
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

import requests
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from meetingtrack.config import settings
from meetingtrack.exceptions import RenderError, ResourceFetchError
from meetingtrack.schemas.session import SessionResponse
from meetingtrack.services.formatting import (
    KIND_LABELS,
    format_long_date,
    format_time_range,
    format_timestamp,
    sanitize_title,
)

logger = logging.getLogger(__name__)

# (texte, taille, gras)
LETTERHEAD_LINES = [
    ("KEMENTERIAN IMIGRASI DAN PEMASYARAKATAN REPUBLIK INDONESIA", 9, True),
    ("DIREKTORAT JENDERAL IMIGRASI", 10, True),
    ("KANTOR WILAYAH KALIMANTAN TIMUR", 10, True),
    ("KANTOR IMIGRASI KELAS II TPI TARAKAN", 10, True),
    ("Jl. P. Sumatera No.1, Kec Tarakan Tengah, Kota Tarakan, Kalimantan Utara", 8, False),
    ("Telepon: 0811-8773-337, Faxsimili: -", 8, False),
    ("Laman: tarakan.imigrasi.go.id, Pos-el: kanim_tarakan@imigrasi.go.id", 8, False),
]

REPORT_TITLE = "LAPORAN DAFTAR HADIR"

TABLE_HEADERS = {
    "external": ["No", "Nama Lengkap", "Instansi", "Jabatan", "Tanda Tangan"],
    "employee": ["No", "NIP", "Nama Lengkap", "Jabatan", "Tanda Tangan"],
}
TABLE_COL_WIDTHS = {
    "external": [10 * mm, 50 * mm, 45 * mm, 40 * mm, 35 * mm],
    "employee": [10 * mm, 40 * mm, 55 * mm, 40 * mm, 35 * mm],
}

CSV_HEADERS = {
    "external": ["No", "Nama Lengkap", "Instansi", "Jabatan", "No. Telepon", "Waktu Absen"],
    "employee": ["No", "NIP", "Nama Lengkap", "Jabatan", "Waktu Absen"],
}

SIGNATURE_BOX = (30 * mm, 10 * mm)
LOGO_SIZE = 20 * mm
HEADER_BLUE = colors.Color(41 / 255, 128 / 255, 185 / 255)

_CELL = ParagraphStyle("cell", fontName="Helvetica", fontSize=8, leading=10)
_LABEL = ParagraphStyle("label", fontName="Helvetica-Bold", fontSize=9, leading=12)
_VALUE = ParagraphStyle("value", fontName="Helvetica", fontSize=9, leading=12)
_TITLE = ParagraphStyle("title", fontName="Helvetica-Bold", fontSize=12, leading=16, alignment=TA_CENTER)


# ============================================================
# Noms de fichiers
# ============================================================

def pdf_filename(session: SessionResponse, today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return (
        f"Laporan_Absensi_{KIND_LABELS[session.session_type]}_"
        f"{sanitize_title(session.title)}_{today.isoformat()}.pdf"
    )


def csv_filename(session: SessionResponse) -> str:
    return f"Absensi_{KIND_LABELS[session.session_type]}_{sanitize_title(session.title)}.csv"


# ============================================================
# CSV
# ============================================================

def export_csv(session: SessionResponse, rows: Sequence) -> str:
    """
    Retourne le contenu CSV (préfixé du BOM UTF-8 pour les tableurs).
    L'en-tête n'est pas quoté, chaque champ de données l'est.
    La signature n'est pas représentable en CSV et n'est pas exportée.
    """
    output = io.StringIO()
    output.write(",".join(CSV_HEADERS[session.session_type]) + "\n")

    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for index, row in enumerate(rows, start=1):
        if row.kind == "employee":
            writer.writerow([index, row.nip, row.full_name, row.position, format_timestamp(row.checked_in_at)])
        else:
            writer.writerow([
                index,
                row.full_name,
                row.institution,
                row.position,
                row.phone_number,
                format_timestamp(row.checked_in_at),
            ])

    logger.info("Export CSV : session %s, %d ligne(s)", session.id, len(rows))
    return "\ufeff" + output.getvalue()  # BOM pour compatibilité Excel


# ============================================================
# PDF
# ============================================================

def page_footer_text(page: int, total: int) -> str:
    return f"Page {page} of {total}"


class NumberedCanvas(canvas.Canvas):
    """
    Canvas en deux passes : les pages sont mémorisées jusqu'à save(),
    puis chaque page reçoit son pied « Page i of N » une fois N connu.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.draw_page_footer(total)
            super().showPage()
        super().save()

    def draw_page_footer(self, total: int) -> None:
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillGray(0.4)
        self.drawCentredString(self._pagesize[0] / 2, 10 * mm, page_footer_text(self.getPageNumber(), total))
        self.restoreState()


def fetch_logo(url: Optional[str] = None, timeout: Optional[float] = None) -> Optional[bytes]:
    """
    Télécharge le logo du kop surat. Retourne None si aucun logo n'est configuré.
    Lève ResourceFetchError si le logo est configuré mais inaccessible.
    """
    url = settings.REPORT_LOGO_URL if url is None else url
    if not url:
        return None
    try:
        response = requests.get(url, timeout=timeout or settings.REPORT_LOGO_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ResourceFetchError(f"Logo indisponible ({url}) : {exc}") from exc
    return response.content


def decode_signature(data_url: Optional[str]) -> PILImage.Image:
    """
    Décode une signature stockée en data URL (ou base64 brut) vers une image RGB sur fond blanc.
    Lève RenderError si la donnée est absente ou illisible.
    """
    if not data_url:
        raise RenderError("Signature absente.")

    payload = data_url.partition(",")[2] if data_url.startswith("data:") else data_url
    if not payload:
        raise RenderError("Signature sans contenu.")
    try:
        raw = base64.b64decode(payload, validate=True)
        img = PILImage.open(io.BytesIO(raw))
        img.load()
    except (binascii.Error, ValueError, OSError, PILImage.DecompressionBombError) as exc:
        raise RenderError(f"Signature illisible : {exc}") from exc

    # Les signatures dessinées sont transparentes : aplatir sur fond blanc
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        img = img.convert("RGBA")
        background = PILImage.new("RGB", img.size, "white")
        background.paste(img, mask=img.split()[-1])
        return background
    return img.convert("RGB")


def metadata_rows(session: SessionResponse, attendee_count: int) -> List[Tuple[str, str]]:
    """Lignes du cadre d'informations ; les champs optionnels absents sont omis."""
    rows = [("Judul Rapat", session.title)]
    if session.description:
        rows.append(("Deskripsi", session.description))
    if session.location:
        rows.append(("Lokasi", session.location))
    rows.append(("Hari/Tanggal", format_long_date(session.session_date)))
    rows.append(("Waktu", f"{format_time_range(session.start_time, session.end_time, 'selesai')} WIB"))
    rows.append(("Jumlah Peserta", f"{attendee_count} orang"))
    return rows


def export_pdf(session: SessionResponse, rows: Sequence, logo_url: Optional[str] = None) -> bytes:
    """Génère le rapport PDF complet et retourne son contenu."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=10 * mm,
        bottomMargin=18 * mm,
        title=f"{REPORT_TITLE} - {session.title}",
    )

    story = []
    story.extend(_letterhead(_load_logo(logo_url)))
    story.append(Spacer(1, 4 * mm))
    story.append(Paragraph(REPORT_TITLE, _TITLE))
    story.append(Spacer(1, 4 * mm))
    story.append(_metadata_panel(session, len(rows)))
    story.append(Spacer(1, 6 * mm))
    story.append(_attendance_table(session, rows))

    doc.build(story, canvasmaker=NumberedCanvas)

    logger.info("Export PDF : session %s, %d ligne(s)", session.id, len(rows))
    return buf.getvalue()


def _load_logo(logo_url: Optional[str]) -> Optional[PILImage.Image]:
    try:
        raw = fetch_logo(logo_url)
    except ResourceFetchError as exc:
        logger.warning("%s, export poursuivi sans logo", exc)
        return None
    if raw is None:
        return None
    try:
        img = PILImage.open(io.BytesIO(raw))
        img.load()
    except OSError as exc:
        logger.warning("Logo illisible, export poursuivi sans logo : %s", exc)
        return None
    return img.convert("RGB")


def _letterhead(logo: Optional[PILImage.Image]) -> list:
    lines = [
        Paragraph(
            escape(text),
            ParagraphStyle(
                f"kop{i}",
                fontName="Helvetica-Bold" if bold else "Helvetica",
                fontSize=size,
                leading=size + 3,
                alignment=TA_CENTER,
            ),
        )
        for i, (text, size, bold) in enumerate(LETTERHEAD_LINES)
    ]

    if logo is not None:
        block = Table(
            [[_pil_flowable(logo, LOGO_SIZE, LOGO_SIZE), lines]],
            colWidths=[LOGO_SIZE + 2 * mm, 182 * mm - LOGO_SIZE - 2 * mm],
        )
        block.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        head = [block]
    else:
        head = list(lines)

    return head + [
        HRFlowable(width="100%", thickness=0.8, color=colors.black, spaceBefore=2, spaceAfter=1),
        HRFlowable(width="100%", thickness=0.3, color=colors.black, spaceBefore=0, spaceAfter=0),
    ]


def _metadata_panel(session: SessionResponse, attendee_count: int) -> Table:
    """Cadre clé/valeur ; sa hauteur suit le nombre de champs et le retour à la ligne de la description."""
    data = [
        [Paragraph(escape(label), _LABEL), Paragraph(": " + escape(value), _VALUE)]
        for label, value in metadata_rows(session, attendee_count)
    ]
    panel = Table(data, colWidths=[31 * mm, 151 * mm])
    panel.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 1),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 1),
        ("TOPPADDING", (0, 0), (-1, 0), 4),
        ("BOTTOMPADDING", (0, -1), (-1, -1), 4),
    ]))
    return panel


def _attendance_table(session: SessionResponse, rows: Sequence) -> Table:
    """
    Tableau des présences. L'en-tête n'apparaît qu'en première page (repeatRows=0) ;
    une ligne n'est jamais coupée entre deux pages.
    """
    data = [TABLE_HEADERS[session.session_type]]
    for index, row in enumerate(rows, start=1):
        if row.kind == "employee":
            cells = [row.nip, row.full_name, row.position]
        else:
            cells = [row.full_name, row.institution, row.position]
        data.append(
            [str(index)]
            + [Paragraph(escape(value or ""), _CELL) for value in cells]
            + [_signature_cell(index, row)]
        )

    table = Table(data, colWidths=TABLE_COL_WIDTHS[session.session_type], repeatRows=0)
    table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BLUE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 1), (0, -1), "CENTER"),
        ("ALIGN", (-1, 1), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))
    return table


def _signature_cell(index: int, row):
    """Image centrée dans la cellule, ou cellule vide (hauteur minimale conservée)."""
    blank = Spacer(1, SIGNATURE_BOX[1])
    if not row.signature:
        return blank
    try:
        img = decode_signature(row.signature)
    except RenderError as exc:
        logger.warning("Ligne %d : %s, cellule laissée vide", index, exc)
        return blank
    return _pil_flowable(img, *SIGNATURE_BOX)


def _pil_flowable(img: PILImage.Image, max_width: float, max_height: float) -> Image:
    """Image reportlab ajustée à la boîte en conservant les proportions."""
    width, height = img.size
    scale = min(max_width / width, max_height / height)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return Image(buf, width=width * scale, height=height * scale)
