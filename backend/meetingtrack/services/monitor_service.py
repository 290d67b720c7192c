"""
Moniteur temps réel d'une session (vue organisateur).

Activation :
  1. Deux lectures concurrentes : la session, et ses présences existantes
     (non transactionnel : une insertion entre les deux lectures peut manquer
     à l'historique jusqu'au prochain rafraîchissement)
  2. Abonnement aux insertions de la table correspondant au type de session
  3. Chaque insertion reçue est ajoutée en fin de `rows`, sans jamais retrier
     ni remplacer le préfixe déjà chargé

Le moniteur n'est pas redémarrable. stop() doit être appelé sur tous les chemins
de sortie : l'utiliser comme gestionnaire de contexte asynchrone le garantit.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator, Callable, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from meetingtrack.database import SessionLocal
from meetingtrack.exceptions import SessionUnavailable
from meetingtrack.models.attendance import model_for_kind
from meetingtrack.models.session import SESSION_TYPES
from meetingtrack.schemas.attendance import MonitorSnapshot
from meetingtrack.schemas.session import SessionResponse
from meetingtrack.services import checkin_service, session_service
from meetingtrack.services.realtime import InsertBroker, Subscription, broker as default_broker

logger = logging.getLogger(__name__)

_STOP = object()


def _read_session(session_id: uuid.UUID) -> Optional[SessionResponse]:
    db = SessionLocal()
    try:
        return session_service.get_session(db, session_id)
    finally:
        db.close()


def _read_rows(session_id: uuid.UUID) -> Dict[str, list]:
    """Lit les présences des deux tables : le type de session n'est pas encore connu."""
    db = SessionLocal()
    try:
        return {kind: checkin_service.list_attendances(db, session_id, kind) for kind in SESSION_TYPES}
    finally:
        db.close()


class LiveMonitor:
    """Liste de présences d'une session, alimentée en continu par le canal d'insertions."""

    def __init__(
        self,
        session_id: uuid.UUID,
        broker: InsertBroker = default_broker,
        read_session: Callable[[uuid.UUID], Optional[SessionResponse]] = _read_session,
        read_rows: Callable[[uuid.UUID], Dict[str, list]] = _read_rows,
    ):
        self.session_id = session_id
        self.session: Optional[SessionResponse] = None
        self.rows: List = []
        self._broker = broker
        self._read_session = read_session
        self._read_rows = read_rows
        self._subscription: Optional[Subscription] = None
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def start(self) -> MonitorSnapshot:
        """
        Charge l'instantané puis ouvre l'abonnement.
        Lève SessionUnavailable si la session n'existe pas.
        """
        if self._started:
            raise RuntimeError("Un moniteur ne peut pas être redémarré.")
        self._started = True
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        session, rows_by_kind = await asyncio.gather(
            run_in_threadpool(self._read_session, self.session_id),
            run_in_threadpool(self._read_rows, self.session_id),
        )
        if session is None:
            self._stopped = True
            raise SessionUnavailable("Session introuvable.", SessionUnavailable.NOT_FOUND)

        self.session = session
        self.rows = list(rows_by_kind.get(session.session_type, []))

        table = model_for_kind(session.session_type).__tablename__
        self._subscription = self._broker.subscribe(table, self.session_id, self._on_insert)
        logger.info("Moniteur démarré : session %s (%d présences)", self.session_id, len(self.rows))

        return MonitorSnapshot(session=session, attendances=list(self.rows))

    async def events(self) -> AsyncIterator:
        """Séquence infinie des nouvelles présences, jusqu'à stop()."""
        if self._queue is None:
            raise RuntimeError("Le moniteur n'est pas démarré.")
        while not self._stopped:
            row = await self._queue.get()
            if row is _STOP:
                break
            yield row

    def stop(self) -> None:
        """Ferme l'abonnement ; plus aucune ligne n'est ajoutée ensuite. Idempotent."""
        if self._stopped and self._subscription is None:
            return
        self._stopped = True
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            logger.info("Moniteur arrêté : session %s", self.session_id)
        if self._queue is not None:
            self._queue.put_nowait(_STOP)

    async def __aenter__(self) -> "LiveMonitor":
        try:
            await self.start()
        except BaseException:
            self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _on_insert(self, row) -> None:
        # Appelé depuis le thread du publieur : on repasse par la boucle du moniteur
        loop = self._loop
        if self._stopped or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._append, row)

    def _append(self, row) -> None:
        if self._stopped:
            return
        self.rows.append(row)
        self._queue.put_nowait(row)
