import hashlib

from fastapi import APIRouter, Request

from uploads.errors import AuthError
from uploads.logger_config import setup_logger, structured_log
from uploads.models.file_record import LoginIn, LoginOut

logger = setup_logger()

router = APIRouter()


def password_hash(password: str) -> str:
    """Hex MD5 of the password, the format ``ui_password_hash`` is stored in."""
    return hashlib.md5(password.encode()).hexdigest()


@router.post("/api/login", response_model=LoginOut)
async def login(credentials: LoginIn, request: Request):
    """Exchange UI credentials for the API key."""
    settings = request.app.state.settings

    if (credentials.username == settings.ui_username
            and password_hash(credentials.password) == settings.ui_password_hash):
        logger.info(structured_log("Login succeeded", event="login", username=credentials.username))
        return LoginOut(status="success", api_key=settings.api_key)

    logger.info(structured_log("Login rejected", event="login_failed", username=credentials.username))
    raise AuthError("Invalid credentials")
