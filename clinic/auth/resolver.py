"""Turn an opaque bearer credential into a :class:`Principal`.

The role is parsed once here; nothing downstream compares role strings.
Every failure to prove the caller's identity fails closed.
"""

import logging

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.auth import jwt_handler
from clinic.auth.principal import Principal, Role
from clinic.core.errors import AuthenticationError, InternalError
from clinic.models.doctor import Doctor
from clinic.models.user import Admin, Patient

logger = logging.getLogger(__name__)


def _find_account_id(db: Session, role: Role, subject: str) -> int | None:
    if role is Role.ADMIN:
        account = db.query(Admin.id).filter(Admin.username == subject).first()
    elif role is Role.DOCTOR:
        account = db.query(Doctor.id).filter(Doctor.email == subject).first()
    else:
        account = db.query(Patient.id).filter(Patient.email == subject).first()
    return account[0] if account else None


def resolve_credential(db: Session, credential: str | None) -> Principal:
    token = jwt_handler.strip_bearer(credential)
    if not token:
        raise AuthenticationError('Missing credential.')

    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError('Credential has expired.') from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationError('Invalid credential.') from exc

    subject = (payload.get('sub') or '').strip()
    if not subject:
        raise AuthenticationError('Invalid credential subject.')

    role = Role.parse(payload.get('role'))
    if role is None:
        raise AuthenticationError('Invalid credential role.')

    try:
        account_id = _find_account_id(db, role, subject)
    except SQLAlchemyError as exc:
        logger.exception('Identity lookup failed for %s %s', role.value, subject)
        raise InternalError('Identity store unavailable.') from exc

    if account_id is None:
        raise AuthenticationError('Account not found.')

    return Principal(subject=subject, role=role, account_id=account_id)
