# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Les présences référencent sessions.id : session.py doit être chargé en premier.

from meetingtrack.models.session import MeetingSession  # noqa: F401  (doit précéder attendance)
from meetingtrack.models.attendance import Attendance, EmployeeAttendance  # noqa: F401
