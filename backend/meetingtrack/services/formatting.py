"""
Formats d'affichage communs au flyer QR et aux exports (dates en indonésien, heure WIB,
noms de fichiers).
"""

import re
import datetime as dt
from typing import Optional
from zoneinfo import ZoneInfo

from meetingtrack.config import settings

DAY_NAMES = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

KIND_LABELS = {
    "external": "Eksternal",
    "employee": "Pegawai",
}


def sanitize_title(title: str) -> str:
    """Remplace chaque suite d'espaces ou de caractères non alphanumériques par '_'."""
    cleaned = re.sub(r"[^A-Za-z0-9]+", "_", title or "").strip("_")
    return cleaned or "Sesi"


def format_long_date(value: dt.date) -> str:
    """Ex. : 'Senin, 13 Oktober 2025'."""
    return f"{DAY_NAMES[value.weekday()]}, {value.day} {MONTH_NAMES[value.month - 1]} {value.year}"


def format_clock(value: Optional[dt.time]) -> str:
    return value.strftime("%H:%M") if value else ""


def format_time_range(start: dt.time, end: Optional[dt.time], open_label: Optional[str] = None) -> str:
    """
    '09:00 - 11:30', ou '09:00 - selesai' si open_label est fourni et qu'il n'y a pas d'heure de fin.
    Sans open_label ni heure de fin : '09:00'.
    """
    if end is not None:
        return f"{format_clock(start)} - {format_clock(end)}"
    if open_label:
        return f"{format_clock(start)} - {open_label}"
    return format_clock(start)


def to_local(value: dt.datetime) -> dt.datetime:
    """Convertit un horodatage vers le fuseau d'affichage (les valeurs naïves sont supposées UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(ZoneInfo(settings.TIMEZONE))


def format_timestamp(value: Optional[dt.datetime]) -> str:
    """Ex. : '13/10/2025, 14.30.00' (format id-ID)."""
    if value is None:
        return ""
    return to_local(value).strftime("%d/%m/%Y, %H.%M.%S")
