"""FastAPI dependencies shared by the v1 endpoints."""

from typing import Annotated, NoReturn, Optional, Union

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from timetracker.auth import decode_access_token
from timetracker.config import settings
from timetracker.constants.tables import UNIQUE_VIOLATION
from timetracker.schemas.store import StoreError
from timetracker.schemas.user import User, UserRole
from timetracker.services.data_service import DataService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_str}/auth/token")


def get_data_service(request: Request) -> DataService:
    return request.app.state.data_service


def raise_store_error(error: StoreError) -> NoReturn:
    code = status.HTTP_409_CONFLICT if error.code == UNIQUE_VIOLATION else status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=error.message)


def check_error(error: Optional[StoreError]) -> None:
    if error is not None:
        raise_store_error(error)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    service: Annotated[DataService, Depends(get_data_service)],
) -> User:
    """The principal named by the request's bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = payload.get("uid")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = await service.get_user(user_id)
    if user is None:
        raise credentials_exception
    return user


def get_current_admin_user(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return current_user


def require_self_or_admin(current_user: User, user_id: Union[int, str]) -> None:
    """Rows owned by `user_id` may be changed by that user or by an admin."""
    if current_user.role != UserRole.ADMIN and str(current_user.id) != str(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to modify another user's data")
