from typing import List

from fastapi import APIRouter, Depends, status

from gamehub.api.dependencies import get_current_user, get_user_service
from gamehub.models import user as user_model
from gamehub.models.user_model import UserStats
from gamehub.schemas import auth_schemas, user_schemas
from gamehub.services.user_service import UserService

router = APIRouter()

@router.get("/me", response_model=user_schemas.UserRead)
async def read_users_me(current_user: user_model.User = Depends(get_current_user)):
    return current_user

@router.get("/me/friends", response_model=List[user_schemas.PlayerSearchResult])
async def my_friends(
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return users.get_friends(current_user.id)

@router.get("/me/friend-requests", response_model=List[user_schemas.FriendRequestRead])
async def my_friend_requests(
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return users.get_friend_requests(current_user.id)

@router.get("/{user_id}/stats", response_model=UserStats)
async def get_user_stats(user_id: str, users: UserService = Depends(get_user_service)):
    return users.get_stats(users.get_user(user_id))

@router.post("/{user_id}/friend-request", response_model=auth_schemas.MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    user_id: str,
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    users.send_friend_request(current_user.id, user_id)
    return {"message": "Friend request sent"}

@router.post("/{user_id}/friend-request/accept", response_model=auth_schemas.MessageResponse)
async def accept_friend_request(
    user_id: str,
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    users.accept_friend_request(current_user.id, user_id)
    return {"message": "Friend request accepted"}

@router.post("/{user_id}/friend-request/decline", response_model=auth_schemas.MessageResponse)
async def decline_friend_request(
    user_id: str,
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    users.decline_friend_request(current_user.id, user_id)
    return {"message": "Friend request declined"}

@router.delete("/{user_id}/friend", response_model=auth_schemas.MessageResponse)
async def remove_friend(
    user_id: str,
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    users.remove_friend(current_user.id, user_id)
    return {"message": "Friend removed"}
