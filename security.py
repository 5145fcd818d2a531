from typing import Optional

from itsdangerous import BadData, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from config import get_settings


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="access-token")


def issue_access_token(user_id: int) -> str:
    return _serializer().dumps({"sub": user_id})


def read_access_token(token: str) -> Optional[int]:
    """Return the user id carried by ``token`` or ``None`` when it is invalid."""
    settings = get_settings()
    try:
        data = _serializer().loads(
            token, max_age=settings.token_max_age_hours * 3600
        )
    except BadData:
        return None

    user_id = data.get("sub") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        return None
    return user_id


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)
