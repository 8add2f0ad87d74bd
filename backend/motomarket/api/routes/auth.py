from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from motomarket.api.dependencies import get_current_account
from motomarket.core.config import settings
from motomarket.core.database import get_db
from motomarket.core.security import token_claims, token_response
from motomarket.models.account import Account
from motomarket.schemas import AccountCreate, AccountResponse, LoginRequest, listing_response
from motomarket.services.account_service import account_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("")
async def auth_info():
    """Authentication API overview"""
    return {
        "name": "MotoMarket Authentication API",
        "version": "1.0.0",
        "endpoints": {
            "public": {
                "POST /register": "Register a new account",
                "POST /login": "Log in",
            },
            "protected": {
                "GET /me": "Current account profile",
                "POST /logout": "Log out",
                "GET /validate": "Validate the current token",
                "POST /refresh": "Issue a fresh token",
            },
        },
        "authentication": {
            "type": "JWT Bearer Token",
            "header": "Authorization: Bearer <token>",
            "expires_in_minutes": settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        },
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(account_data: AccountCreate, db: Session = Depends(get_db)):
    """Register a new account and log it in"""
    account = account_service.register(db, account_data)
    return {
        "message": "Account registered successfully",
        "user": AccountResponse.model_validate(account),
        "auth": token_response(account),
    }


@router.post("/login")
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Log in with email and password and get an access token"""
    account = account_service.authenticate(db, credentials.email, credentials.password)
    return {
        "message": "Login successful",
        "user": AccountResponse.model_validate(account),
        "auth": token_response(account),
    }


@router.get("/me")
async def get_current_account_info(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Current account profile, stats and active listings"""
    profile = account_service.profile(db, current_account)
    return {
        "user": AccountResponse.model_validate(current_account),
        "stats": profile["stats"],
        "motos": [listing_response(listing, image_limit=1) for listing in profile["listings"]],
    }


@router.post("/logout")
async def logout(current_account: Account = Depends(get_current_account)):
    """Tokens are not revoked server-side; the client discards its token"""
    return {
        "message": "Logged out",
        "note": "The token stays valid until it expires",
    }


@router.get("/validate")
async def validate_token(current_account: Account = Depends(get_current_account)):
    """Check that the presented token is still valid"""
    claims = token_claims(current_account)
    return {"valid": True, "user": claims, "message": "Token is valid"}


@router.post("/refresh")
async def refresh_token(current_account: Account = Depends(get_current_account)):
    """Issue a new token for a caller whose token is still valid"""
    return {"auth": token_response(current_account)}
