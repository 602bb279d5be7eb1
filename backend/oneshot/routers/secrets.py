from fastapi import APIRouter, Depends, HTTPException, Request

from oneshot.config import settings
from oneshot.dependencies import get_secret_service
from oneshot.exceptions import DecryptionError, SecretNotFoundError, SecretValidationError
from oneshot.middleware.rate_limit import limiter
from oneshot.schemas.secret import SecretCreate, SecretCreateResponse, SecretRevealResponse
from oneshot.services.secret_service import SecretService

router = APIRouter()


@router.post("/secrets", response_model=SecretCreateResponse, status_code=201)
@limiter.limit(settings.rate_limit_creates)
def create_new_secret(
    request: Request,
    secret_data: SecretCreate,
    service: SecretService = Depends(get_secret_service),
):
    """
    Encrypt and store a new secret.

    Returns the id the consumer uses to reveal it.
    """
    try:
        secret_id = service.create(
            secret_data.text,
            view_limit=secret_data.view_limit,
            ttl_minutes=secret_data.expiration_minutes,
        )
    except SecretValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SecretCreateResponse(id=secret_id)


@router.get("/secrets/{secret_id}", response_model=SecretRevealResponse)
@limiter.limit(settings.rate_limit_reveals)
def reveal_secret(
    request: Request,
    secret_id: str,
    service: SecretService = Depends(get_secret_service),
):
    """
    Reveal a secret's plaintext, consuming one view.

    Once the view limit is reached the secret is permanently deleted.
    Missing, expired and exhausted secrets all answer 404.
    """
    try:
        text = service.reveal(secret_id)
    except SecretNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DecryptionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SecretRevealResponse(id=secret_id, text=text)
