"""Friends router: friend requests and friend relationships."""

from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from ledger.entities import User
from utils.validation import get_user_by_email


router = APIRouter(prefix="/friends", tags=["friends"])


def connections_between(db: Session, user_id: int, other_user_id: int):
    """Connection rows between two users, in either direction."""
    return db.query(models.UserConnection).filter(
        or_(
            and_(models.UserConnection.user_id == user_id, models.UserConnection.other_user_id == other_user_id),
            and_(models.UserConnection.user_id == other_user_id, models.UserConnection.other_user_id == user_id)
        )
    )


def get_public_users(db: Session, user_ids: list[int]) -> list[schemas.UserPublic]:
    # Batch fetch, kept in the caller's order
    if not user_ids:
        return []
    users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(user_ids)).all()}
    return [schemas.UserPublic.model_validate(users[uid]) for uid in user_ids if uid in users]


def get_other_user_or_404(db: Session, user_id: int) -> models.User:
    other_user = db.query(models.User).filter(models.User.id == user_id).first()
    if not other_user:
        raise HTTPException(status_code=404, detail="User not found")
    return other_user


def answer_request(db: Session, user_id: int, requester_id: int, accepted: bool) -> None:
    """Clear pending requests between the pair, then record the friendship if accepted."""
    connections_between(db, user_id, requester_id).delete(synchronize_session=False)
    if accepted:
        db.add(models.UserConnection(user_id=requester_id, other_user_id=user_id, connection_type="friend"))
    db.commit()


@router.get("", response_model=schemas.FriendList)
def read_friends(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return schemas.FriendList(
        friends=get_public_users(db, current_user.friend_ids),
        incoming_requests=get_public_users(db, current_user.incoming_request_ids),
        outgoing_requests=get_public_users(db, current_user.outgoing_request_ids)
    )


@router.post("")
def send_friend_request(
    friend_request: schemas.FriendRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    other_user = get_user_by_email(db, friend_request.email)
    if not other_user:
        raise HTTPException(status_code=404, detail="An account with that email does not exist")

    if other_user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot send a friend request to yourself")

    if other_user.id in current_user.friend_ids:
        raise HTTPException(status_code=400, detail="Already friends")

    if other_user.id in current_user.outgoing_request_ids:
        raise HTTPException(status_code=400, detail="Friend request already sent")

    # Asking someone who already asked you accepts their request
    if other_user.id in current_user.incoming_request_ids:
        answer_request(db, current_user.id, other_user.id, accepted=True)
        return {"message": "Friend request accepted"}

    db.add(models.UserConnection(user_id=current_user.id, other_user_id=other_user.id, connection_type="request"))
    db.commit()

    return {"message": "Friend request sent"}


@router.put("")
def respond_to_friend_request(
    response: schemas.FriendResponse,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    other_user = get_other_user_or_404(db, response.other_user_id)

    if other_user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot respond to a friend request from yourself")

    if other_user.id in current_user.friend_ids:
        raise HTTPException(status_code=400, detail="Already friends")

    if other_user.id not in current_user.incoming_request_ids:
        raise HTTPException(status_code=400, detail="This user did not send you a friend request")

    answer_request(db, current_user.id, other_user.id, response.accepted)

    return {"message": "Friend request accepted" if response.accepted else "Friend request declined"}


@router.delete("/{friend_id}")
def remove_friend(
    friend_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    other_user = get_other_user_or_404(db, friend_id)

    if other_user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot remove yourself as a friend")

    if other_user.id not in current_user.friend_ids:
        raise HTTPException(status_code=400, detail="This person is not currently your friend")

    connections_between(db, current_user.id, other_user.id).delete(synchronize_session=False)
    db.commit()

    return {"message": "Friend removed successfully"}
