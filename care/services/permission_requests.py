"""
Review workflow for permission requests.

A request starts ``pending``.  The requester may edit or cancel it only
while it is still pending; admins may move it to any of the four
statuses.  At most one request per (requester, role) may be in flight
(``pending`` or ``under_review``) at a time; a lookup catches the common
case and the partial unique constraint on the table catches the race.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable

import bleach
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from ..exceptions import (
    DuplicateInFlightRequest,
    InvalidRole,
    InvalidState,
    InvalidStatus,
    NotFound,
)
from ..models import PermissionRequest, PermissionRequestNote
from .audit import log_action
from .relay import ADMINS_ROOM, user_room

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    return bleach.clean(text or '', tags=[], strip=True).strip()


class ReviewWorkflow:
    """State machine over :class:`~care.models.PermissionRequest` rows.

    ``requests`` and ``accounts`` are model managers (or anything with the
    same query surface); ``relay`` needs a ``publish(room, event, payload)``
    method and may be ``None``.
    """

    def __init__(self, *, requests, accounts, relay=None):
        self.requests = requests
        self.accounts = accounts
        self.relay = relay

    # ------------------------------------------------------------------
    # Requester operations
    # ------------------------------------------------------------------
    def submit(self, *, requester_id: int, requester_email: str, role: str, details: dict[str, Any],
               documents: Iterable[dict] = (), priority: str = 'medium', is_urgent: bool = False,
               request_type: str = 'permission_request') -> PermissionRequest:
        if role not in PermissionRequest.ROLES:
            raise InvalidRole()
        if self._in_flight(requester_id, role).exists():
            raise DuplicateInFlightRequest()
        try:
            with transaction.atomic():
                req = self.requests.create(
                    requester_id=requester_id,
                    requester_email=requester_email,
                    role=role,
                    request_type=request_type,
                    details=dict(details),
                    documents=list(documents),
                    priority=priority,
                    is_urgent=is_urgent,
                )
        except IntegrityError:
            raise DuplicateInFlightRequest()

        logger.info('Permission request %s submitted by %s for %s', req.pk, requester_id, role)
        self._audit(None, 'permission_request_submit', req, {'role': role, 'requesterId': requester_id})
        self._publish(ADMINS_ROOM, 'permission_request_submitted', {
            'requestId': req.pk,
            'requesterId': requester_id,
            'requesterEmail': requester_email,
            'role': role,
            'priority': req.priority,
            'isUrgent': req.is_urgent,
        })
        return req

    def list_for_requester(self, requester_id: int, role: str | None = None):
        qs = self.requests.filter(requester_id=requester_id)
        if role:
            qs = qs.filter(role=role)
        return list(qs.order_by('-created_at', '-id').prefetch_related('notes'))

    def get_for_requester(self, request_id: int, requester_id: int, role: str) -> PermissionRequest:
        req = self.requests.filter(pk=request_id, requester_id=requester_id, role=role).first()
        if req is None:
            raise NotFound('Permission request not found')
        return req

    def update(self, request_id: int, requester_id: int, role: str, *, details: dict[str, Any] | None = None,
               documents: list[dict] | None = None, priority: str | None = None,
               is_urgent: bool | None = None) -> PermissionRequest:
        req = self.get_for_requester(request_id, requester_id, role)
        if req.status != PermissionRequest.STATUS_PENDING:
            raise InvalidState('Cannot update request that is no longer pending')

        fields = ['updated_at']
        if details:
            # sparse merge: keys not supplied keep their stored value
            req.details = {**(req.details or {}), **details}
            fields.append('details')
        if documents is not None:
            req.documents = list(documents)
            fields.append('documents')
        if priority is not None:
            req.priority = priority
            fields.append('priority')
        if is_urgent is not None:
            req.is_urgent = is_urgent
            fields.append('is_urgent')
        req.save(update_fields=fields)
        return req

    def cancel(self, request_id: int, requester_id: int, role: str) -> None:
        """Delete a pending request outright; there is no cancelled status."""
        req = self.get_for_requester(request_id, requester_id, role)
        if req.status != PermissionRequest.STATUS_PENDING:
            raise InvalidState('Cannot cancel request that is no longer pending')
        req.delete()
        logger.info('Permission request %s cancelled by %s', request_id, requester_id)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------
    def list_for_admin(self, *, status: str | None = None, role: str | None = None, priority: str | None = None,
                       page: int = 1, limit: int | None = None):
        """Return ``(items, total)`` for one offset page."""
        limit = limit or settings.ADMIN_PAGE_SIZE_DEFAULT
        qs = self.requests.all()
        if status:
            qs = qs.filter(status=status)
        if role:
            qs = qs.filter(role=role)
        if priority:
            qs = qs.filter(priority=priority)
        total = qs.count()
        offset = (max(page, 1) - 1) * limit
        items = list(qs.order_by('-created_at', '-id').prefetch_related('notes')[offset:offset + limit])
        return items, total

    def get(self, request_id: int) -> PermissionRequest:
        req = self.requests.filter(pk=request_id).first()
        if req is None:
            raise NotFound('Permission request not found')
        return req

    def set_status(self, request_id: int, *, admin_id, admin_name: str, status: str,
                   rejection_reason: str | None = None, note: str | None = None) -> PermissionRequest:
        if status not in PermissionRequest.STATUSES:
            raise InvalidStatus()
        req = self.get(request_id)
        previous = req.status
        now = timezone.now()

        req.status = status
        req.reviewed_by_id = str(admin_id)
        req.reviewed_by_name = admin_name
        req.reviewed_at = now
        req.review_date = now
        fields = ['status', 'reviewed_by_id', 'reviewed_by_name', 'reviewed_at', 'review_date', 'updated_at']
        if status == PermissionRequest.STATUS_REJECTED and rejection_reason:
            req.rejection_reason = rejection_reason
            fields.append('rejection_reason')
        try:
            with transaction.atomic():
                req.save(update_fields=fields)
        except IntegrityError:
            raise DuplicateInFlightRequest('Requester already has another in-flight request for this role')

        if note:
            self._append_note(req.pk, admin_id, admin_name, note)

        if status == PermissionRequest.STATUS_APPROVED:
            self._approve_requester(req)

        logger.info('Permission request %s moved %s -> %s by admin %s', req.pk, previous, status, admin_id)
        self._audit(None, 'permission_request_status', req,
                    {'from': previous, 'to': status, 'adminId': admin_id})
        self._publish(user_room(req.requester_id), 'permission_request_updated', {
            'requestId': req.pk,
            'role': req.role,
            'status': status,
            'rejectionReason': req.rejection_reason or None,
        })
        return req

    def add_note(self, request_id: int, *, admin_id, admin_name: str, text: str) -> PermissionRequest:
        req = self.get(request_id)
        self._append_note(req.pk, admin_id, admin_name, text)
        req.save(update_fields=['updated_at'])
        return req

    def bulk_set_status(self, request_ids: Iterable[int], *, admin_id, admin_name: str, status: str,
                        rejection_reason: str | None = None, note: str | None = None) -> dict[str, int]:
        """Overwrite the status of every listed request.

        The status write is one mass update regardless of each request's
        current status.  Notes are appended per id afterwards, so a failure
        part way through leaves the status change without every note.
        Requesters' approval flags are not touched here.
        """
        if status not in PermissionRequest.STATUSES:
            raise InvalidStatus()
        ids = list(dict.fromkeys(request_ids))
        now = timezone.now()
        values: dict[str, Any] = {
            'status': status,
            'reviewed_by_id': str(admin_id),
            'reviewed_by_name': admin_name,
            'reviewed_at': now,
            'review_date': now,
            'updated_at': now,
        }
        if status == PermissionRequest.STATUS_REJECTED and rejection_reason:
            values['rejection_reason'] = rejection_reason
        try:
            with transaction.atomic():
                modified = self.requests.filter(pk__in=ids).update(**values)
        except IntegrityError:
            raise DuplicateInFlightRequest('Bulk update would create a second in-flight request for a requester')

        affected = list(self.requests.filter(pk__in=ids).values_list('pk', 'requester_id', 'role'))
        if note:
            for pk, _, _ in affected:
                self._append_note(pk, admin_id, admin_name, note)

        logger.info('Bulk status %s applied to %s of %s requests by admin %s', status, modified, len(ids), admin_id)
        self._audit(None, 'permission_request_bulk_status', None,
                    {'ids': ids, 'status': status, 'modified': modified, 'adminId': admin_id})
        for pk, requester_id, role in affected:
            self._publish(user_room(requester_id), 'permission_request_updated',
                          {'requestId': pk, 'role': role, 'status': status})
        return {'modifiedCount': modified, 'requestedCount': len(ids)}

    def stats(self) -> dict[str, Any]:
        def grouped(field: str, keys: Iterable[str]) -> dict[str, int]:
            counts = dict.fromkeys(keys, 0)
            for row in self.requests.order_by().values(field).annotate(n=Count('id')):
                counts[row[field]] = row['n']
            return counts

        since = timezone.now() - timedelta(days=settings.RECENT_REQUEST_DAYS)
        return {
            'byStatus': grouped('status', PermissionRequest.STATUSES),
            'byRole': grouped('role', PermissionRequest.ROLES),
            'byPriority': grouped('priority', PermissionRequest.PRIORITIES),
            'urgent': self.requests.filter(is_urgent=True).count(),
            'recent': self.requests.filter(created_at__gte=since).count(),
            'total': self.requests.count(),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _in_flight(self, requester_id: int, role: str):
        return self.requests.filter(requester_id=requester_id, role=role,
                                    status__in=PermissionRequest.IN_FLIGHT_STATUSES)

    def _append_note(self, request_pk: int, admin_id, admin_name: str, text: str) -> PermissionRequestNote:
        return PermissionRequestNote.objects.create(
            request_id=request_pk,
            admin_id=str(admin_id),
            admin_name=admin_name,
            text=clean_text(text),
        )

    def _approve_requester(self, req: PermissionRequest) -> None:
        # Best effort: the status change above is already saved and stays
        # saved whether or not the approval flag can be written.
        try:
            with transaction.atomic():
                updated = self.accounts.filter(pk=req.requester_id).update(is_approved=True)
            if not updated:
                logger.warning('Approved request %s but requester %s no longer exists', req.pk, req.requester_id)
        except Exception:
            logger.exception('Could not set approval flag for requester %s of request %s',
                             req.requester_id, req.pk)

    def _audit(self, user, action: str, req: PermissionRequest | None, detail: dict[str, Any]) -> None:
        try:
            log_action(user=user, action=action, object_type='permission_request',
                       object_id=getattr(req, 'pk', None), detail=detail)
        except Exception:
            logger.warning('Audit write failed for %s', action, exc_info=True)

    def _publish(self, room: str, event: str, payload: dict[str, Any]) -> None:
        if self.relay is not None:
            self.relay.publish(room, event, payload)
