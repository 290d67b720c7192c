"""
Canal temps réel des insertions de présences.

Le service de check-in publie chaque ligne après un commit réussi ;
le moniteur organisateur s'abonne aux insertions d'une table filtrées par session.

subscribe() renvoie une Subscription dont le consommateur est propriétaire :
il doit appeler cancel() à la fermeture de la vue, sinon l'abonnement continue
de recevoir des événements pour une vue détachée.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

SessionKey = Union[str, uuid.UUID]


class Subscription:
    """Abonnement annulable aux insertions d'une table pour une session donnée."""

    def __init__(self, broker: "InsertBroker", table: str, session_id: str, callback: Callable[[Any], None]):
        self._broker = broker
        self.table = table
        self.session_id = session_id
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Idempotent : après retour, plus aucun callback n'est déclenché."""
        if not self._active:
            return
        self._active = False
        self._broker._remove(self)

    def _deliver(self, row: Any) -> None:
        if self._active:
            self._callback(row)


class InsertBroker:
    """Diffusion en mémoire des événements INSERT, thread-safe."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[Tuple[str, str], List[Subscription]] = {}

    def subscribe(self, table: str, session_id: SessionKey, callback: Callable[[Any], None]) -> Subscription:
        key = (table, str(session_id))
        subscription = Subscription(self, table, key[1], callback)
        with self._lock:
            self._subscriptions.setdefault(key, []).append(subscription)
        logger.debug("Abonnement ouvert : %s / %s", table, key[1])
        return subscription

    def publish(self, table: str, session_id: SessionKey, row: Any) -> int:
        """
        Transmet une ligne insérée à tous les abonnés de (table, session).
        Un abonné défaillant n'empêche pas la livraison aux autres.
        Retourne le nombre d'abonnés notifiés.
        """
        with self._lock:
            targets = list(self._subscriptions.get((table, str(session_id)), []))

        delivered = 0
        for subscription in targets:
            try:
                subscription._deliver(row)
                delivered += 1
            except Exception as exc:
                logger.error("Abonné temps réel en erreur (%s / %s) : %s", table, session_id, exc, exc_info=True)
        return delivered

    def subscriber_count(self, table: str, session_id: SessionKey) -> int:
        with self._lock:
            return len(self._subscriptions.get((table, str(session_id)), []))

    def _remove(self, subscription: Subscription) -> None:
        key = (subscription.table, subscription.session_id)
        with self._lock:
            subscribers = self._subscriptions.get(key, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscriptions.pop(key, None)
        logger.debug("Abonnement fermé : %s / %s", subscription.table, subscription.session_id)


broker = InsertBroker()
