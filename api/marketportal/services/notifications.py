"""In-app notifications delivered after the workflow transaction commits."""
import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketportal.core.errors import SideEffectError
from marketportal.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotice:
    user_id: int
    title: str
    message: str
    severity: str = "info"
    category: str = "role_request"


class NotificationGateway:
    """Writes notifications in their own short transaction.

    Delivery is best-effort: a failure is logged and never reaches the caller,
    whose status change has already been committed.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "role_request",
    ) -> bool:
        try:
            self.db.add(Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=severity,
                category=category,
            ))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            error = SideEffectError("notification", original_error=exc)
            logger.warning("%s (user_id=%s, title=%r)", error.message, user_id, title)
            return False
        return True

    def deliver(self, notices: Iterable[PendingNotice]) -> int:
        delivered = 0
        for notice in notices:
            if self.notify(
                notice.user_id,
                notice.title,
                notice.message,
                severity=notice.severity,
                category=notice.category,
            ):
                delivered += 1
        return delivered
