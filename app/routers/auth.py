"""
Authentication routes
Handles user signup, login, profile and preferences
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from app.db.client import get_record_store
from app.db.record_store import RecordStore, USERS
from app.schemas.interview import Difficulty, Topic
from app.schemas.user import (
    AuthResponse,
    LoginRequest,
    PreferencesUpdate,
    SignupRequest,
    UserPreferences,
    UserResponse,
)
from app.utils.datetime_utils import utc_now_iso
from app.utils.exceptions import AuthenticationError, ConcurrencyConflictError, ConflictError, NotFoundError
from app.utils.security import create_access_token, get_current_user_id, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    auth_data: SignupRequest,
    store: RecordStore = Depends(get_record_store)
):
    """
    User signup endpoint
    Emails are unique case-insensitively
    """
    email = auth_data.email.lower()
    if await store.find_one(USERS, {"email": email}):
        raise ConflictError("An account with this email already exists")

    # bcrypt is CPU-bound; keep it off the event loop
    password_hash = await asyncio.to_thread(hash_password, auth_data.password)

    now = utc_now_iso()
    try:
        user = await store.insert(USERS, {
            "name": auth_data.name.strip(),
            "email": email,
            "password_hash": password_hash,
            "preferences": UserPreferences().model_dump(),
            "created_at": now,
            "updated_at": now
        })
    except ConcurrencyConflictError:
        raise ConflictError("An account with this email already exists")
    logger.info(f"[AUTH][SIGNUP] Created user {user['id']}")

    return AuthResponse(
        access_token=create_access_token(user["id"]),
        user=UserResponse.model_validate(user),
        message="User created successfully"
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    auth_data: LoginRequest,
    store: RecordStore = Depends(get_record_store)
):
    """User login endpoint"""
    user = await store.find_one(USERS, {"email": auth_data.email.lower()})
    if not user:
        raise AuthenticationError("Invalid credentials")

    valid = await asyncio.to_thread(verify_password, auth_data.password, user.get("password_hash", ""))
    if not valid:
        logger.info(f"[AUTH][LOGIN] Failed login for user {user['id']}")
        raise AuthenticationError("Invalid credentials")

    return AuthResponse(
        access_token=create_access_token(user["id"]),
        user=UserResponse.model_validate(user),
        message="Login successful"
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    user = await store.find_by_id(USERS, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return UserResponse.model_validate(user)


@router.put("/preferences", response_model=UserResponse)
async def update_preferences(
    update: PreferencesUpdate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store)
):
    """
    Update favorite topics and/or preferred difficulty
    Topics must come from the fixed topic set
    """
    user = await store.find_by_id(USERS, user_id)
    if not user:
        raise NotFoundError("User", user_id)

    preferences = UserPreferences.model_validate(user.get("preferences") or {})
    if update.favorite_topics is not None:
        topics = []
        for topic in update.favorite_topics:
            value = Topic.parse(topic).value
            if value not in topics:
                topics.append(value)
        preferences.favorite_topics = topics
    if update.preferred_difficulty is not None:
        preferences.preferred_difficulty = Difficulty.parse(update.preferred_difficulty).value

    user = await store.update(USERS, user_id, {
        "preferences": preferences.model_dump(),
        "updated_at": utc_now_iso()
    })
    return UserResponse.model_validate(user)
