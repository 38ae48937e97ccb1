"""
Input validation and output shaping for permission requests.

The details payload depends on the target role.  Each role has its own
serializer with its own required fields; :func:`details_serializer_for`
picks one by role and anything belonging to another role is dropped.
"""
import bleach
from rest_framework import serializers

from care.models import PermissionRequest


def _clean(v):
    return bleach.clean((v or '').strip(), tags=[], strip=True)


class CleanCharField(serializers.CharField):
    def to_internal_value(self, data):
        return _clean(super().to_internal_value(data))


def _text_list():
    return serializers.ListField(child=CleanCharField(max_length=200), required=False)


class CommonDetailsSerializer(serializers.Serializer):
    reason = CleanCharField(required=False, allow_blank=True, max_length=1000)
    additionalInfo = CleanCharField(required=False, allow_blank=True, max_length=2000)


class DoctorDetailsSerializer(CommonDetailsSerializer):
    specialization = CleanCharField(max_length=100)
    licenseNumber = CleanCharField(required=False, allow_blank=True, max_length=50)
    hospital = CleanCharField(required=False, allow_blank=True, max_length=200)
    experience = serializers.IntegerField(required=False, min_value=0, max_value=80)
    education = _text_list()
    certifications = _text_list()


class MidwifeDetailsSerializer(CommonDetailsSerializer):
    certificationNumber = CleanCharField(max_length=50)
    clinic = CleanCharField(required=False, allow_blank=True, max_length=200)
    experience = serializers.IntegerField(required=False, min_value=0, max_value=80)
    services = _text_list()
    certifications = _text_list()


class ServiceProviderDetailsSerializer(CommonDetailsSerializer):
    businessName = CleanCharField(max_length=200)
    businessType = CleanCharField(required=False, allow_blank=True, max_length=100)
    registrationNumber = CleanCharField(required=False, allow_blank=True, max_length=50)
    businessServices = _text_list()


DETAILS_SERIALIZERS = {
    'doctor': DoctorDetailsSerializer,
    'midwife': MidwifeDetailsSerializer,
    'service_provider': ServiceProviderDetailsSerializer,
}

# Keys that describe the request itself rather than the role details
META_KEYS = ('documents', 'priority', 'isUrgent', 'requestType')


def details_serializer_for(role, data, *, partial=False):
    return DETAILS_SERIALIZERS[role](data=data, partial=partial)


class DocumentSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    url = serializers.CharField(max_length=1024)
    type = CleanCharField(required=False, allow_blank=True, max_length=100)
    uploadedAt = serializers.DateTimeField(required=False)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if value.get('uploadedAt'):
            value['uploadedAt'] = value['uploadedAt'].isoformat()
        return value


class RequestMetaSerializer(serializers.Serializer):
    documents = DocumentSerializer(many=True, required=False)
    priority = serializers.ChoiceField(choices=list(PermissionRequest.PRIORITIES), required=False)
    isUrgent = serializers.BooleanField(required=False)
    requestType = serializers.ChoiceField(choices=[t for t, _ in PermissionRequest.TYPE_CHOICES], required=False)


def validate_request_body(role, data, *, partial=False):
    """Validate a submit/update body; return ``(details, meta)``.

    Both halves are validated before either error is raised so the
    caller sees every field problem at once.
    """
    data = data if hasattr(data, 'get') else {}
    detail_data = {k: v for k, v in data.items() if k not in META_KEYS}
    meta_data = {k: data[k] for k in META_KEYS if k in data}
    details = details_serializer_for(role, detail_data, partial=partial)
    meta = RequestMetaSerializer(data=meta_data)
    ok_details = details.is_valid()
    ok_meta = meta.is_valid()
    if not (ok_details and ok_meta):
        raise serializers.ValidationError({**details.errors, **meta.errors})
    return dict(details.validated_data), dict(meta.validated_data)


class StatusUpdateSerializer(serializers.Serializer):
    # status is checked by the workflow so an unknown value maps to InvalidStatus
    status = serializers.CharField()
    rejectionReason = CleanCharField(required=False, allow_blank=True, max_length=1000)
    note = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class BulkStatusSerializer(StatusUpdateSerializer):
    requestIds = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False,
                                       max_length=500)


class NoteSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=2000)

    def validate_note(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Note text is required')
        return v


class AdminListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=list(PermissionRequest.STATUSES), required=False)
    role = serializers.ChoiceField(choices=list(PermissionRequest.ROLES), required=False)
    priority = serializers.ChoiceField(choices=list(PermissionRequest.PRIORITIES), required=False)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


def _iso(dt):
    return dt.isoformat() if dt else None


def note_payload(note) -> dict:
    return {
        'id': note.pk,
        'adminId': note.admin_id,
        'adminName': note.admin_name,
        'note': note.text,
        'timestamp': _iso(note.created_at),
    }


def request_payload(req: PermissionRequest, *, include_notes: bool = True) -> dict:
    data = {
        'id': req.pk,
        'userId': req.requester_id,
        'userEmail': req.requester_email,
        'role': req.role,
        'requestType': req.request_type,
        'status': req.status,
        'details': req.details or {},
        'documents': req.documents or [],
        'priority': req.priority,
        'isUrgent': req.is_urgent,
        'reviewedBy': None,
        'reviewDate': _iso(req.review_date),
        'rejectionReason': req.rejection_reason or None,
        'createdAt': _iso(req.created_at),
        'updatedAt': _iso(req.updated_at),
    }
    if req.reviewed_by_id:
        data['reviewedBy'] = {
            'adminId': req.reviewed_by_id,
            'adminName': req.reviewed_by_name,
            'reviewedAt': _iso(req.reviewed_at),
        }
    if include_notes:
        data['adminNotes'] = [note_payload(n) for n in req.notes.all()]
    return data
