"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these synchronously; nothing is retried internally. The API
renders every GameHubError with the status code of its family:

    NotFound      404  tournament / match / user / room absent
    Conflict      409  already registered, already completed, full
    InvalidState  409  operation attempted in the wrong lifecycle phase
    InvalidInput  400  malformed winner id, unsupported format
    AuthError     401  missing or bad credentials
    Forbidden     403  authenticated but not allowed
    EmailDeliveryFailed 503  the email API rejected a verification or reset mail
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GameHubError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": type(self).__name__,
            "detail": self.message,
        }


# --- Families ---

class NotFound(GameHubError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(GameHubError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting request"


class InvalidState(GameHubError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed in the current state"


class InvalidInput(GameHubError, ValueError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class AuthError(GameHubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class Forbidden(GameHubError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized to perform this action"


class EmailDeliveryFailed(GameHubError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Email could not be sent"


# --- NotFound ---

class TournamentNotFound(NotFound):
    default_message = "Tournament not found"


class UnknownMatch(NotFound):
    default_message = "Match not found in any round"


class UserNotFound(NotFound):
    default_message = "User not found"


class RoomNotFound(NotFound):
    default_message = "Game not found"


class NotRegistered(NotFound):
    default_message = "User is not registered in this tournament"


class NotificationNotFound(NotFound):
    default_message = "Notification not found"


class FriendRequestNotFound(NotFound):
    default_message = "No pending friend request from this user"


class NotFriends(NotFound):
    default_message = "This user is not in your friends list"


# --- Conflict ---

class AlreadyRegistered(Conflict):
    default_message = "Already registered"


class TournamentFull(Conflict):
    default_message = "Tournament is full"


class MatchAlreadyCompleted(Conflict):
    default_message = "Match already completed"


class ConcurrentUpdate(Conflict):
    default_message = "The document was modified concurrently"


class RoomFull(Conflict):
    default_message = "Game is full"


class AlreadyInRoom(Conflict):
    default_message = "Already in this game"


class UserExists(Conflict):
    default_message = "User already exists with this email or username"


class AlreadyFriends(Conflict):
    default_message = "Already friends"


class FriendRequestPending(Conflict):
    default_message = "A friend request is already pending"


# --- InvalidState ---

class InsufficientParticipants(InvalidState):
    default_message = "Not enough participants to start the tournament"


class InvalidTransition(InvalidState):
    default_message = "Invalid status transition"


class MatchNotReady(InvalidState):
    default_message = "Match does not have two participants assigned yet"


class UserBanned(InvalidState):
    default_message = "User is banned"


# --- InvalidInput ---

class InvalidWinner(InvalidInput):
    default_message = "Winner must be one of the match participants"


class InvalidParticipantCount(InvalidInput):
    default_message = "Bracket generation requires at least 2 participants"


class UnsupportedFormat(InvalidInput):
    default_message = "Bracket generation is only available for single elimination"


async def gamehub_error_handler(request: Request, exc: GameHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
