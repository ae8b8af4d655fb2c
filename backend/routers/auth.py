import logging

from fastapi import APIRouter, Depends

from core.auth import CredentialVerifier, get_credential_verifier
from core.errors import Unauthenticated
from schemas.auth import LoginRequest, LoginResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, verifier: CredentialVerifier = Depends(get_credential_verifier)):
    if not verifier.verify(payload.username, payload.password):
        logger.info("Rejected login for %r", payload.username)
        raise Unauthenticated("Invalid username or password")
    return LoginResponse(message="Login successful")
