"""
Public authentication endpoints.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, status

from ..deps import get_deadline, get_dispatcher, get_gateway, require_identity
from ..events import OutboxDispatcher
from ..gateway import AuthGateway
from ..identity import Identity
from ..schemas import (
    AuthRequest,
    CreateUserRequest,
    ErrorResponse,
    IdentityResponse,
    TokenResponse,
    ValidateTokenRequest,
    ValidateTokenResponse,
)
from ..utils.deadline import Deadline

router = APIRouter(prefix="/v1", tags=["auth"])


@router.post(
    "/auth",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def authenticate(
    payload: AuthRequest,
    background_tasks: BackgroundTasks,
    gateway: AuthGateway = Depends(get_gateway),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    deadline: Deadline = Depends(get_deadline),
):
    token = gateway.authenticate(payload.email, payload.password, deadline)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return TokenResponse(token=token)


@router.post(
    "/users",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def create_user(
    payload: CreateUserRequest,
    background_tasks: BackgroundTasks,
    gateway: AuthGateway = Depends(get_gateway),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    deadline: Deadline = Depends(get_deadline),
):
    token = gateway.create_account(
        payload.email,
        payload.password,
        payload.first_name,
        payload.last_name,
        deadline,
    )
    background_tasks.add_task(dispatcher.dispatch_pending)
    return TokenResponse(token=token)


@router.post(
    "/validate-token",
    response_model=ValidateTokenResponse,
    responses={401: {"model": ErrorResponse}},
)
def validate_token(payload: ValidateTokenRequest, gateway: AuthGateway = Depends(get_gateway)):
    return ValidateTokenResponse(email=gateway.validate_token(payload.token))


@router.get("/me", response_model=IdentityResponse, responses={401: {"model": ErrorResponse}})
def me(identity: Identity = Depends(require_identity)):
    """
    Return the identity resolved from the bearer token.
    Requires JWT authentication.
    """
    return IdentityResponse(subject_id=identity.subject_id, email=identity.email)
