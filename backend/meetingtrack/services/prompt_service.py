"""
Boîtes de confirmation réutilisables.

Chaque action sensible (créer, fermer, rouvrir, supprimer une session, soumettre
une présence) est décrite une seule fois ici ; le front n'a plus qu'à afficher
le descripteur selon sa variante (danger, warning, success).
"""

from typing import Optional

from meetingtrack.schemas.session import ConfirmationPrompt

PROMPT_ACTIONS = ("create", "close", "open", "delete", "submit")


def build_prompt(action: str, session_title: Optional[str] = None) -> ConfirmationPrompt:
    """
    Retourne le descripteur de confirmation pour une action.
    Lève ValueError si l'action est inconnue.
    """
    if action == "create":
        return ConfirmationPrompt(
            action=action,
            variant="warning",
            title="Konfirmasi Pembuatan Sesi",
            message=(
                "Pastikan semua informasi sesi sudah benar. "
                "Setelah dibuat, QR code akan langsung tersedia."
            ),
            confirm_label="Ya, Buat Sesi",
        )
    if action == "close":
        return ConfirmationPrompt(
            action=action,
            variant="danger",
            title="Tutup Sesi?",
            message=(
                "Setelah sesi ditutup, peserta tidak dapat lagi melakukan absensi. "
                "Anda masih dapat membuka kembali sesi ini nanti."
            ),
            confirm_label="Ya, Tutup Sesi",
        )
    if action == "open":
        return ConfirmationPrompt(
            action=action,
            variant="success",
            title="Buka Sesi Kembali?",
            message="Sesi akan dibuka kembali dan peserta dapat melakukan absensi. QR Code akan aktif kembali.",
            confirm_label="Ya, Buka Sesi",
        )
    if action == "delete":
        target = f'"{session_title}"' if session_title else "ini"
        return ConfirmationPrompt(
            action=action,
            variant="danger",
            title="Hapus Sesi?",
            message=(
                f"Yakin ingin menghapus sesi {target}? "
                "Semua data absensi akan ikut terhapus dan tidak dapat dikembalikan."
            ),
            confirm_label="Ya, Hapus Sesi",
        )
    if action == "submit":
        return ConfirmationPrompt(
            action=action,
            variant="success",
            title="Konfirmasi Data Absensi",
            message="Pastikan data yang Anda masukkan sudah benar. Data tidak dapat diubah setelah submit.",
            confirm_label="Ya, Submit Absensi",
        )
    raise ValueError(f"Action de confirmation inconnue : {action}")
