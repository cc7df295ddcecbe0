import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamehub.core.errors import Forbidden, NotificationNotFound
from gamehub.models import notification as notification_model
from gamehub.models.tournament_model import TournamentEvent, TournamentEventKind

logger = logging.getLogger(__name__)

GAME_RESULT = "game_result"
FRIEND_REQUEST = "friend_request"

_MESSAGES = {
    TournamentEventKind.TOURNAMENT_STARTED: "{name} has started. Check your first match!",
    TournamentEventKind.MATCH_READY: "Your match {match_id} in {name} is ready.",
    TournamentEventKind.MATCH_COMPLETED: "Match {match_id} in {name} is over.",
    TournamentEventKind.ROUND_COMPLETED: "Round {round} of {name} is complete.",
    TournamentEventKind.TOURNAMENT_COMPLETED: "{name} has finished.",
    TournamentEventKind.TOURNAMENT_CANCELLED: "{name} was cancelled.",
    TournamentEventKind.PRIZE_AWARDED: "You finished {place} in {name} and won {coins} coins.",
}


def render_event(event: TournamentEvent, tournament_name: str) -> str:
    template = _MESSAGES[TournamentEventKind(event.kind)]
    return template.format(
        name=tournament_name,
        match_id=event.match_id,
        round=event.round,
        place=event.data.get("place"),
        coins=event.data.get("coins", 0),
    )


def notify_tournament_events(db: Session, events: Iterable[TournamentEvent], tournament_name: str) -> int:
    """Persist one notification per recipient per event.

    Runs after the tournament has been committed. A failure here is logged
    and swallowed so the tournament operation still succeeds.
    """
    rows = []
    for event in events:
        message = render_event(event, tournament_name)
        for user_id in event.user_ids:
            rows.append(notification_model.Notification(
                user_id=user_id,
                message=message,
                type=event.kind,
                payload=event.model_dump(mode="json"),
            ))
    if not rows:
        return 0
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store {len(rows)} tournament notifications: {e}")
        return 0
    return len(rows)


def notify_users(db: Session, user_ids: List[str], kind: str, message: str, payload: Optional[dict] = None) -> int:
    """Best-effort: the caller's change is already committed."""
    rows = [
        notification_model.Notification(user_id=user_id, message=message, type=kind, payload=payload)
        for user_id in user_ids
    ]
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store {kind} notifications: {e}")
        return 0
    return len(rows)


def notify_game_result(db: Session, user_ids: List[str], message: str, payload: Optional[dict] = None) -> int:
    return notify_users(db, user_ids, GAME_RESULT, message, payload)


def get_user_notifications(db: Session, user_id: str, skip: int = 0, limit: int = 100) -> List[notification_model.Notification]:
    return db.query(notification_model.Notification)\
        .filter(notification_model.Notification.user_id == user_id)\
        .order_by(notification_model.Notification.created_at.desc(), notification_model.Notification.id.desc())\
        .offset(skip)\
        .limit(limit)\
        .all()


def mark_notification_as_read(db: Session, notification_id: int, current_user_id: str) -> notification_model.Notification:
    db_notification = db.query(notification_model.Notification).filter(notification_model.Notification.id == notification_id).first()

    if not db_notification:
        raise NotificationNotFound()

    if db_notification.user_id != current_user_id:
        raise Forbidden("Not authorized to mark this notification as read")

    if not db_notification.read_status:
        db_notification.read_status = True
        db.commit()
        db.refresh(db_notification)

    return db_notification


def mark_all_user_notifications_as_read(db: Session, current_user_id: str) -> int:
    unread = db.query(notification_model.Notification)\
        .filter(notification_model.Notification.user_id == current_user_id, notification_model.Notification.read_status == False)\
        .all()

    for notification in unread:
        notification.read_status = True
    if unread:
        db.commit()
    return len(unread)
