from typing import Dict, Optional
import logging
import uuid

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from ..models import AdminUser, LoginRequest, LoginResponse
from ..settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error off: the admin gate decides whether a missing token is fatal
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False)


_admins: Dict[str, str] = {}


def _ensure_admin_user() -> None:
	username = settings.admin_username
	if username and username not in _admins:
		_admins[username] = pwd_context.hash(settings.admin_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(plain_password, hashed_password)


def authenticate_admin(username: str, password: str) -> Optional[AdminUser]:
	_ensure_admin_user()
	hashed = _admins.get(username)
	if hashed and verify_password(password, hashed):
		return AdminUser(username=username)
	return None


def create_access_token(data: dict) -> str:
	# No exp claim: admin tokens stay valid until the secret rotates
	return jwt.encode(data.copy(), settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest):
	user = authenticate_admin(req.username, req.password)
	if not user:
		logger.info("Rejected login for %r", req.username)
		raise HTTPException(status_code=401, detail="Invalid credentials")
	token = create_access_token({"sub": user.username, "role": user.role, "jti": uuid.uuid4().hex})
	return LoginResponse(token=token, user=user)


def decode_admin_token(token: str) -> AdminUser:
	credentials_exception = HTTPException(
		status_code=401,
		detail="Could not validate credentials",
		headers={"WWW-Authenticate": "Bearer"},
	)
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	username: str | None = payload.get("sub")
	if username is None or payload.get("role") != "admin":
		raise credentials_exception
	return AdminUser(username=username)


def require_admin(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[AdminUser]:
	if not settings.require_admin_auth:
		return None
	if not token:
		raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
	return decode_admin_token(token)
