from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from timetracker.auth import create_access_token
from timetracker.dependencies import check_error, get_current_user, get_data_service
from timetracker.schemas.user import PublicUser, SignInRequest, Token, User, UserCreate
from timetracker.services.data_service import DataService
from timetracker.services.session_manager import INVALID_CREDENTIALS

router = APIRouter()


async def _issue_token(service: DataService, username: str, password: str) -> Token:
    user = await service.authenticate(username, password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(data={"sub": user.username, "uid": user.id})
    return Token(access_token=access_token, user=user.to_public())


@router.post("/sign-in", response_model=Token)
async def sign_in(credentials: SignInRequest, service: Annotated[DataService, Depends(get_data_service)]):
    """Verify credentials and issue a bearer token for the user."""
    return await _issue_token(service, credentials.username, credentials.password)


@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    service: Annotated[DataService, Depends(get_data_service)],
):
    """OAuth2 password flow, used by the interactive docs."""
    return await _issue_token(service, form_data.username, form_data.password)


@router.post("/sign-out")
async def sign_out(current_user: Annotated[User, Depends(get_current_user)]):
    # Tokens are stateless; the client discards its copy
    return {"signed_out": True, "username": current_user.username}


@router.get("/session", response_model=PublicUser)
async def read_session(current_user: Annotated[User, Depends(get_current_user)]):
    """The principal the bearer token belongs to."""
    return current_user.to_public()


@router.post("/sign-up", response_model=PublicUser, status_code=status.HTTP_201_CREATED)
async def sign_up(payload: UserCreate, service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.sign_up(payload.username, payload.password, payload.name)
    check_error(result.error)
    return PublicUser.model_validate(result.rows[0])
