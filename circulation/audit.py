from django.utils import timezone

from .models import AuditLog


def record(action, entity_type, entity_id='', details=None, librarian=None, device='', timestamp=None):
    """Append an entry to the audit trail"""
    return AuditLog.objects.create(
        librarian=librarian,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else '',
        details=details or {},
        device=device or '',
        timestamp=timestamp or timezone.now(),
    )
