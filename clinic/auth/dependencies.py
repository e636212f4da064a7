from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinic.auth.principal import Principal
from clinic.auth.resolver import resolve_credential
from clinic.core.errors import SchedulingError
from clinic.database import SessionLocal
from clinic.routes.errors import to_http_exception

security = HTTPBearer()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    try:
        return resolve_credential(db, credentials.credentials)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
