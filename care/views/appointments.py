"""
Appointment endpoints.

An appointment is visible to, and may be changed by, any of its
participants: the booking account, the doctor and the service
provider.  Every change is pushed to each participant's room.
"""
from __future__ import annotations

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFound
from ..models import Account, Appointment
from ..serializers.appointments import AppointmentSerializer, appointment_payload
from ..services import get_relay
from ..services.relay import user_room


def _participant_filter(user) -> Q:
    return Q(user=user) | Q(doctor=user) | Q(service_provider=user)


def _resolve_account(account_id, role: str, field: str):
    if account_id is None:
        return None
    account = Account.objects.filter(pk=account_id, role=role, is_active=True).first()
    if account is None:
        raise ValidationError({field: f'No active {role} with this id'})
    return account


def _notify(appt: Appointment, action: str, payload: dict, previous=()) -> None:
    ids = list(previous) + [pid for pid in appt.participant_ids() if pid not in previous]
    rooms = [user_room(pid) for pid in ids]
    get_relay().publish_many(rooms, 'appointment_updated', {'action': action, 'appointment': payload})


def _apply(appt: Appointment, vd: dict) -> None:
    if 'doctorId' in vd:
        appt.doctor = _resolve_account(vd['doctorId'], Account.ROLE_DOCTOR, 'doctorId')
    if 'serviceProviderId' in vd:
        appt.service_provider = _resolve_account(vd['serviceProviderId'], Account.ROLE_SERVICE_PROVIDER,
                                                 'serviceProviderId')
    for key, attr in (('startTime', 'start_time'), ('endTime', 'end_time'), ('status', 'status'),
                      ('reason', 'reason'), ('notes', 'notes'), ('location', 'location')):
        if key in vd:
            setattr(appt, attr, vd[key])


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def appointments(request):
    if request.method == 'GET':
        qs = (Appointment.objects.filter(_participant_filter(request.user))
              .order_by('start_time', 'id'))
        return Response({'status': 'success', 'data': {'appointments': [appointment_payload(a) for a in qs]}})

    s = AppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = Appointment(user=request.user)
    _apply(appt, s.validated_data)
    if not appt.location:
        appt.location = 'online'
    appt.save()
    payload = appointment_payload(appt)
    _notify(appt, 'created', payload)
    return Response({
        'status': 'success',
        'message': 'Appointment created successfully',
        'data': {'appointment': payload},
    }, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id: int):
    appt = Appointment.objects.filter(_participant_filter(request.user), pk=appointment_id).first()
    if appt is None:
        raise NotFound('Appointment not found')

    if request.method == 'DELETE':
        payload = appointment_payload(appt)
        appt.delete()
        _notify(appt, 'deleted', payload)
        return Response({'status': 'success', 'message': 'Appointment deleted successfully'})

    s = AppointmentSerializer(appt, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    previous = appt.participant_ids()
    _apply(appt, s.validated_data)
    appt.save()
    payload = appointment_payload(appt)
    _notify(appt, 'updated', payload, previous)
    return Response({
        'status': 'success',
        'message': 'Appointment updated successfully',
        'data': {'appointment': payload},
    })
