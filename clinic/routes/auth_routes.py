from fastapi import APIRouter, Depends

from clinic.auth.dependencies import get_current_principal
from clinic.auth.principal import Principal

router = APIRouter(tags=['auth'])


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {
        'subject': principal.subject,
        'role': principal.role.value,
        'account_id': principal.account_id,
    }
