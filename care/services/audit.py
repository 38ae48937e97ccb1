from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from care.models import AuditEvent

Account = get_user_model()

def log_action(*, user: Optional[Any], action: str, object_type: Optional[str]=None, object_id: Optional[Any]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    # Admin users are not accounts; their id goes into the detail instead
    detail = dict(detail or {})
    if user is not None and not isinstance(user, Account):
        detail.setdefault('adminId', getattr(user, 'id', None))
        user = None
    return AuditEvent.objects.create(
        user=user,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail,
    )
