from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError as PydanticValidationError

from app.inventsight.core.error_catalog import AppError, ErrorCatalog
from app.inventsight.core.scope import Actor
from app.inventsight.core.security import TokenData, decode_token, oauth2_scheme
from app.inventsight.db.session import get_db
from app.inventsight.repos.transfers import TransferRepository
from app.inventsight.services.transfers import TransferRequestService


def get_current_token_data(token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, PydanticValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def get_current_actor(request: Request, token_data: TokenData = Depends(get_current_token_data)) -> Actor:
    try:
        actor = Actor.build(
            id=token_data.sub,
            name=token_data.name,
            role=token_data.role,
            locations=token_data.locations,
        )
    except ValueError as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN, details={"message": str(exc)}) from exc
    request.state.user_id = actor.id
    return actor


def get_transfer_service(db=Depends(get_db)) -> TransferRequestService:
    return TransferRequestService(TransferRepository(db))


__all__ = [
    "get_current_token_data",
    "get_current_actor",
    "get_transfer_service",
]
