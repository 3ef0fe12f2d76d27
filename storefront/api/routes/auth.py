from fastapi import APIRouter, Depends

from storefront.api.deps import get_app_settings, get_repository
from storefront.api.security import Principal, get_principal
from storefront.application.auth import AuthService
from storefront.application.schemas import LoginRequest, TokenResponse, UserRead
from storefront.core_settings import Settings
from storefront.domain.repository import Repository
from storefront.errors import UnauthorizedError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, repo: Repository = Depends(get_repository),
          settings: Settings = Depends(get_app_settings)):
    token = AuthService(repo, settings).login(payload.email, payload.password)
    return TokenResponse(access_token=token, expires_in=settings.JWT_EXPIRES_MINUTES * 60)


@router.get("/me", response_model=UserRead)
def me(principal: Principal = Depends(get_principal), repo: Repository = Depends(get_repository),
       settings: Settings = Depends(get_app_settings)):
    user = AuthService(repo, settings).get_user(principal.id)
    if user is None:
        raise UnauthorizedError("Account no longer exists")
    return user
