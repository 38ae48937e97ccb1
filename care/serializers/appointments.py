import bleach
from rest_framework import serializers

from care.models import Appointment


class AppointmentSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(required=False, allow_null=True)
    serviceProviderId = serializers.IntegerField(required=False, allow_null=True)
    startTime = serializers.DateTimeField()
    endTime = serializers.DateTimeField()
    status = serializers.ChoiceField(choices=[s for s, _ in Appointment.STATUS_CHOICES], required=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    location = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_reason(self, v):
        return bleach.clean(v or '', tags=[], strip=True)

    def validate_notes(self, v):
        return bleach.clean(v or '', tags=[], strip=True)

    def validate(self, attrs):
        start = attrs.get('startTime', getattr(self.instance, 'start_time', None))
        end = attrs.get('endTime', getattr(self.instance, 'end_time', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'endTime': 'End time must be after start time'})
        return attrs


def appointment_payload(appt: Appointment) -> dict:
    return {
        'id': appt.pk,
        'userId': appt.user_id,
        'doctorId': appt.doctor_id,
        'serviceProviderId': appt.service_provider_id,
        'startTime': appt.start_time.isoformat(),
        'endTime': appt.end_time.isoformat(),
        'status': appt.status,
        'reason': appt.reason,
        'notes': appt.notes,
        'location': appt.location,
        'createdAt': appt.created_at.isoformat() if appt.created_at else None,
        'updatedAt': appt.updated_at.isoformat() if appt.updated_at else None,
    }
