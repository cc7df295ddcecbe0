import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from gamehub.core.config import settings
from gamehub.core.errors import (
    AlreadyFriends,
    FriendRequestNotFound,
    FriendRequestPending,
    InvalidInput,
    NotFriends,
    UserExists,
    UserNotFound,
)
from gamehub.core.locks import KeyedLocks
from gamehub.models.user import User
from gamehub.models.user_model import GameKind, UserProfile, UserSettings, UserStats
from gamehub.schemas.user_schemas import FriendRequestRead, FriendsLeaderboard, LeaderboardEntry, PlayerSearchResult
from gamehub.services import notification_service

logger = logging.getLogger(__name__)

# Stat updates are read-modify-write on a JSON document, serialize them per user
_user_locks = KeyedLocks()

DEFAULT_LEADERBOARD_LIMIT = 100


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def create_user(
        self,
        username: str,
        email: str,
        hashed_password: Optional[str] = None,
        google_id: Optional[str] = None,
        is_email_verified: bool = False,
        avatar: Optional[str] = None,
    ) -> User:
        email = email.lower()
        existing = self.db.query(User).filter(or_(User.email == email, User.username == username)).first()
        if existing:
            raise UserExists()

        user = User(
            username=username,
            email=email,
            hashed_password=hashed_password,
            google_id=google_id,
            is_email_verified=is_email_verified,
            stats=UserStats(coins=settings.STARTING_COINS).model_dump(mode="json"),
            settings=UserSettings().model_dump(),
        )
        if avatar:
            user.avatar = avatar
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise UserNotFound(f"User {user_id} not found.")
        return user

    def get_profile(self, user_id: str) -> UserProfile:
        """Identity lookup used by tournaments and game rooms."""
        return UserProfile.model_validate(self.get_user(user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.google_id == google_id).first()

    def get_user_by_reset_token(self, hashed_token: str) -> Optional[User]:
        return self.db.query(User).filter(
            User.password_reset_token == hashed_token,
            User.password_reset_expire > datetime.utcnow(),
        ).first()

    def save(self, user: User) -> User:
        user.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_presence(self, user: User, online: bool) -> User:
        user.is_online = online
        user.last_seen = datetime.utcnow()
        return self.save(user)

    def _fresh_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).populate_existing().first()
        if user is None:
            raise UserNotFound(f"User {user_id} not found.")
        return user

    def get_stats(self, user: User) -> UserStats:
        return UserStats.model_validate(user.stats or {})

    def update_stats(self, user_id: str, change: Callable[[UserStats], UserStats]) -> UserStats:
        """Apply `change` to the freshest stored stats of one user and commit."""
        with _user_locks.hold(user_id):
            user = self._fresh_user(user_id)
            updated = change(self.get_stats(user))
            user.stats = updated.model_dump(mode="json")
            user.updated_at = datetime.utcnow()
            self.db.commit()
            return updated

    def leaderboard(
        self,
        game_type: Optional[str] = None,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        user_ids: Optional[Iterable[str]] = None,
    ) -> List[LeaderboardEntry]:
        """Global ranking by score, or per-game ranking by games won. Banned users are excluded.

        `user_ids` narrows the ranking to those users, as the friends board does.
        """
        if game_type and game_type != "all":
            game_type = GameKind(game_type).value

            def sort_key(stats: UserStats):
                per_game = stats.game_stats.get(game_type)
                return per_game.won if per_game else 0
        else:
            def sort_key(stats: UserStats):
                return stats.score

        query = self.db.query(User).filter(User.is_banned == False)
        if user_ids is not None:
            query = query.filter(User.id.in_(list(user_ids)))
        users = query.all()
        ranked = sorted(
            ((user, self.get_stats(user)) for user in users),
            key=lambda pair: sort_key(pair[1]),
            reverse=True,
        )[:limit]
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=user.id,
                username=user.username,
                avatar=user.avatar,
                score=stats.score,
                level=stats.level,
                games_played=stats.games_played,
                games_won=stats.games_won,
                win_rate=stats.win_rate,
            )
            for rank, (user, stats) in enumerate(ranked, start=1)
        ]

    def search_players(self, query: str, limit: int = 20) -> List[PlayerSearchResult]:
        users = self.db.query(User)\
            .filter(User.username.ilike(f"{query}%"), User.is_banned == False)\
            .order_by(User.username)\
            .limit(limit)\
            .all()
        return [
            PlayerSearchResult(
                id=u.id,
                username=u.username,
                avatar=u.avatar,
                level=self.get_stats(u).level,
                is_online=bool(u.is_online),
            )
            for u in users
        ]

    # --- Friends ---

    def get_friends(self, user_id: str) -> List[PlayerSearchResult]:
        user = self.get_user(user_id)
        if not user.friends:
            return []
        friends = self.db.query(User).filter(User.id.in_(user.friends)).order_by(User.username).all()
        return [
            PlayerSearchResult(
                id=f.id,
                username=f.username,
                avatar=f.avatar,
                level=self.get_stats(f).level,
                is_online=bool(f.is_online),
            )
            for f in friends
        ]

    def get_friend_requests(self, user_id: str) -> List[FriendRequestRead]:
        user = self.get_user(user_id)
        pending = user.friend_requests or []
        if not pending:
            return []
        senders = {
            u.id: u for u in self.db.query(User).filter(User.id.in_([r["from_user_id"] for r in pending])).all()
        }
        return [
            FriendRequestRead(
                from_user_id=r["from_user_id"],
                username=senders[r["from_user_id"]].username,
                avatar=senders[r["from_user_id"]].avatar,
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in pending
            if r["from_user_id"] in senders
        ]

    def send_friend_request(self, sender_id: str, recipient_id: str) -> None:
        if sender_id == recipient_id:
            raise InvalidInput("You cannot send a friend request to yourself.")
        sender = self.get_user(sender_id)
        with _user_locks.hold(recipient_id):
            recipient = self._fresh_user(recipient_id)
            if sender_id in (recipient.friends or []):
                raise AlreadyFriends()
            pending = recipient.friend_requests or []
            if any(r["from_user_id"] == sender_id for r in pending):
                raise FriendRequestPending()
            recipient.friend_requests = pending + [
                {"from_user_id": sender_id, "created_at": datetime.utcnow().isoformat()}
            ]
            self.db.commit()
        logger.info(f"Friend request from {sender_id} to {recipient_id}")
        notification_service.notify_users(
            self.db,
            [recipient_id],
            notification_service.FRIEND_REQUEST,
            f"{sender.username} sent you a friend request.",
            {"from_user_id": sender_id},
        )

    def accept_friend_request(self, user_id: str, sender_id: str) -> None:
        if user_id == sender_id:
            raise FriendRequestNotFound()
        # Both users change: take their locks in id order.
        first, second = sorted((user_id, sender_id))
        with _user_locks.hold(first), _user_locks.hold(second):
            user = self._fresh_user(user_id)
            pending = user.friend_requests or []
            if not any(r["from_user_id"] == sender_id for r in pending):
                raise FriendRequestNotFound()
            sender = self._fresh_user(sender_id)
            user.friend_requests = [r for r in pending if r["from_user_id"] != sender_id]
            user.friends = _append_unique(user.friends, sender_id)
            sender.friends = _append_unique(sender.friends, user_id)
            # a crossed request from the other side is settled too
            sender.friend_requests = [r for r in (sender.friend_requests or []) if r["from_user_id"] != user_id]
            self.db.commit()
        logger.info(f"{user_id} and {sender_id} are now friends")

    def decline_friend_request(self, user_id: str, sender_id: str) -> None:
        with _user_locks.hold(user_id):
            user = self._fresh_user(user_id)
            pending = user.friend_requests or []
            if not any(r["from_user_id"] == sender_id for r in pending):
                raise FriendRequestNotFound()
            user.friend_requests = [r for r in pending if r["from_user_id"] != sender_id]
            self.db.commit()

    def remove_friend(self, user_id: str, friend_id: str) -> None:
        if user_id == friend_id:
            raise NotFriends()
        first, second = sorted((user_id, friend_id))
        with _user_locks.hold(first), _user_locks.hold(second):
            user = self._fresh_user(user_id)
            if friend_id not in (user.friends or []):
                raise NotFriends()
            user.friends = [f for f in user.friends if f != friend_id]
            friend = self.db.query(User).filter(User.id == friend_id).populate_existing().first()
            if friend is not None:
                friend.friends = [f for f in (friend.friends or []) if f != user_id]
            self.db.commit()
        logger.info(f"{user_id} removed {friend_id} from friends")

    def friends_leaderboard(self, user_id: str) -> FriendsLeaderboard:
        """The user and their friends ranked by score."""
        user = self.get_user(user_id)
        ids = [user.id] + list(user.friends or [])
        board = self.leaderboard(limit=len(ids), user_ids=ids)
        your_rank = next((e.rank for e in board if e.user_id == user.id), None)
        return FriendsLeaderboard(your_score=self.get_stats(user).score, your_rank=your_rank, leaderboard=board)


def _append_unique(ids: Optional[List[str]], user_id: str) -> List[str]:
    ids = list(ids or [])
    if user_id not in ids:
        ids.append(user_id)
    return ids
