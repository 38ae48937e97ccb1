from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from care.exceptions import (
    DuplicateInFlightRequest,
    InvalidRole,
    InvalidState,
    InvalidStatus,
    NotFound,
)
from care.models import Account, PermissionRequest
from care.services.permission_requests import ReviewWorkflow
from care.services.relay import NotificationRelay

pytestmark = pytest.mark.django_db


class Recorder:
    def __init__(self):
        self.events = []

    def publish(self, room, event, payload):
        self.events.append((room, event, payload))


class BrokenAccounts:
    """Account store whose every query fails."""

    def filter(self, *args, **kwargs):
        raise RuntimeError('identity store unavailable')


@pytest.fixture
def relay():
    return Recorder()


@pytest.fixture
def workflow(relay):
    return ReviewWorkflow(requests=PermissionRequest.objects, accounts=Account.objects, relay=relay)


@pytest.fixture
def doctor(make_account):
    return make_account('doc@example.com', role=Account.ROLE_DOCTOR)


def submit(workflow, account, role='doctor', **details):
    details = details or {'specialization': 'Cardiology'}
    return workflow.submit(requester_id=account.pk, requester_email=account.email, role=role, details=details)


def review(workflow, req, status, **kwargs):
    return workflow.set_status(req.pk, admin_id=1, admin_name='root', status=status, **kwargs)


def test_submit_starts_pending_and_notifies_admins(workflow, relay, doctor):
    req = submit(workflow, doctor)
    assert req.status == 'pending'
    assert req.requester_email == 'doc@example.com'
    room, event, payload = relay.events[-1]
    assert (room, event) == ('admins', 'permission_request_submitted')
    assert payload['requestId'] == req.pk


def test_submit_rejects_non_elevated_role(workflow, doctor):
    with pytest.raises(InvalidRole):
        submit(workflow, doctor, role='mom')


def test_second_in_flight_request_is_rejected(workflow, doctor):
    first = submit(workflow, doctor)
    with pytest.raises(DuplicateInFlightRequest):
        submit(workflow, doctor)
    review(workflow, first, 'under_review')
    with pytest.raises(DuplicateInFlightRequest):
        submit(workflow, doctor)
    # a different role is a different pair
    assert submit(workflow, doctor, role='midwife', certificationNumber='MW-1').status == 'pending'


@pytest.mark.parametrize('final', ['approved', 'rejected'])
def test_resubmit_after_terminal_status(workflow, doctor, final):
    first = submit(workflow, doctor)
    review(workflow, first, final)
    second = submit(workflow, doctor)
    assert second.pk != first.pk
    assert second.status == 'pending'


def test_in_flight_constraint_holds_without_the_lookup(doctor):
    PermissionRequest.objects.create(requester_id=doctor.pk, requester_email=doctor.email, role='doctor')
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            PermissionRequest.objects.create(requester_id=doctor.pk, requester_email=doctor.email,
                                             role='doctor', status='under_review')
    # terminal rows are not constrained
    PermissionRequest.objects.create(requester_id=doctor.pk, requester_email=doctor.email,
                                     role='doctor', status='rejected')


def test_details_round_trip(workflow, doctor):
    details = {
        'specialization': 'Cardiology',
        'licenseNumber': 'LIC-42',
        'hospital': 'General',
        'experience': 7,
        'education': ['MBBS', 'MD'],
        'reason': 'Join the platform',
    }
    req = submit(workflow, doctor, **details)
    assert workflow.get(req.pk).details == details
    items, total = workflow.list_for_admin()
    assert total == 1
    assert items[0].details == details


def test_update_merges_sparse_details(workflow, doctor):
    req = submit(workflow, doctor, specialization='Cardiology', hospital='General')
    updated = workflow.update(req.pk, doctor.pk, 'doctor', details={'hospital': 'St. Mary'}, priority='high')
    assert updated.details == {'specialization': 'Cardiology', 'hospital': 'St. Mary'}
    assert updated.priority == 'high'


def test_update_and_cancel_need_ownership(workflow, doctor, make_account):
    other = make_account('other@example.com', role=Account.ROLE_DOCTOR)
    req = submit(workflow, doctor)
    with pytest.raises(NotFound):
        workflow.update(req.pk, other.pk, 'doctor', details={'hospital': 'X'})
    with pytest.raises(NotFound):
        workflow.cancel(req.pk, other.pk, 'doctor')
    with pytest.raises(NotFound):
        workflow.cancel(req.pk, doctor.pk, 'midwife')


def test_update_locked_once_review_starts(workflow, doctor):
    req = submit(workflow, doctor)
    review(workflow, req, 'under_review')
    with pytest.raises(InvalidState):
        workflow.update(req.pk, doctor.pk, 'doctor', details={'hospital': 'X'})


def test_cancel_under_review_fails_and_keeps_record(workflow, doctor):
    req = submit(workflow, doctor)
    review(workflow, req, 'under_review')
    with pytest.raises(InvalidState):
        workflow.cancel(req.pk, doctor.pk, 'doctor')
    assert workflow.get(req.pk).status == 'under_review'


def test_cancel_pending_deletes(workflow, doctor):
    req = submit(workflow, doctor)
    workflow.cancel(req.pk, doctor.pk, 'doctor')
    assert not PermissionRequest.objects.filter(pk=req.pk).exists()


def test_set_status_stamps_reviewer(workflow, relay, doctor):
    req = submit(workflow, doctor)
    req = review(workflow, req, 'under_review')
    assert req.reviewed_by_id == '1'
    assert req.reviewed_by_name == 'root'
    assert req.review_date is not None
    room, event, payload = relay.events[-1]
    assert (room, event) == (f'user_{doctor.pk}', 'permission_request_updated')
    assert payload['status'] == 'under_review'


def test_set_status_rejects_unknown_status_and_id(workflow, doctor):
    req = submit(workflow, doctor)
    with pytest.raises(InvalidStatus):
        review(workflow, req, 'archived')
    with pytest.raises(NotFound):
        workflow.set_status(999999, admin_id=1, admin_name='root', status='approved')


def test_rejection_reason_only_kept_for_rejected(workflow, doctor, make_account):
    req = submit(workflow, doctor)
    review(workflow, req, 'approved', rejection_reason='ignored')
    assert workflow.get(req.pk).rejection_reason == ''

    other = make_account('other@example.com', role=Account.ROLE_DOCTOR)
    req = submit(workflow, other)
    review(workflow, req, 'rejected', rejection_reason='License could not be verified')
    assert workflow.get(req.pk).rejection_reason == 'License could not be verified'


def test_approval_sets_requester_flag(workflow, doctor):
    req = submit(workflow, doctor)
    review(workflow, req, 'approved')
    doctor.refresh_from_db()
    assert doctor.is_approved is True


def test_approval_survives_identity_store_failure(relay, doctor):
    workflow = ReviewWorkflow(requests=PermissionRequest.objects, accounts=BrokenAccounts(), relay=relay)
    req = submit(workflow, doctor)
    req = review(workflow, req, 'approved')
    assert req.status == 'approved'
    assert PermissionRequest.objects.get(pk=req.pk).status == 'approved'
    doctor.refresh_from_db()
    assert doctor.is_approved is False


def test_approval_for_deleted_requester_still_succeeds(workflow, doctor):
    req = submit(workflow, doctor)
    doctor.delete()
    assert review(workflow, req, 'approved').status == 'approved'


def test_notes_are_append_only(workflow, doctor):
    req = submit(workflow, doctor)
    workflow.add_note(req.pk, admin_id=1, admin_name='root', text='Checked licence')
    workflow.add_note(req.pk, admin_id=1, admin_name='root', text='Checked licence')
    notes = list(workflow.get(req.pk).notes.all())
    assert [n.text for n in notes] == ['Checked licence', 'Checked licence']
    assert notes[0].pk != notes[1].pk
    assert workflow.get(req.pk).status == 'pending'


def test_note_text_is_sanitized(workflow, doctor):
    req = submit(workflow, doctor)
    workflow.add_note(req.pk, admin_id=1, admin_name='root', text='<script>x</script>ok <b>fine</b>')
    text = workflow.get(req.pk).notes.get().text
    assert '<' not in text
    assert 'fine' in text


def test_add_note_to_missing_request(workflow):
    with pytest.raises(NotFound):
        workflow.add_note(424242, admin_id=1, admin_name='root', text='hello')


def test_bulk_update_moves_all_listed(workflow, make_account):
    ids = [submit(workflow, make_account(f'd{i}@example.com', role='doctor')).pk for i in range(3)]
    result = workflow.bulk_set_status(ids, admin_id=1, admin_name='root', status='under_review')
    assert result == {'modifiedCount': 3, 'requestedCount': 3}
    items, total = workflow.list_for_admin(status='under_review')
    assert total == 3
    assert sorted(r.pk for r in items) == sorted(ids)


def test_bulk_update_overwrites_any_status_and_counts_missing(workflow, make_account):
    a = submit(workflow, make_account('a@example.com', role='doctor'))
    b = submit(workflow, make_account('b@example.com', role='doctor'))
    review(workflow, a, 'approved')
    result = workflow.bulk_set_status([a.pk, b.pk, 987654], admin_id=1, admin_name='root',
                                      status='rejected', rejection_reason='Incomplete', note='Batch review')
    assert result == {'modifiedCount': 2, 'requestedCount': 3}
    for pk in (a.pk, b.pk):
        req = workflow.get(pk)
        assert req.status == 'rejected'
        assert req.rejection_reason == 'Incomplete'
        assert [n.text for n in req.notes.all()] == ['Batch review']


def test_bulk_approve_leaves_approval_flags(workflow, doctor):
    req = submit(workflow, doctor)
    workflow.bulk_set_status([req.pk], admin_id=1, admin_name='root', status='approved')
    doctor.refresh_from_db()
    assert doctor.is_approved is False


def test_bulk_rejects_unknown_status(workflow):
    with pytest.raises(InvalidStatus):
        workflow.bulk_set_status([1], admin_id=1, admin_name='root', status='done')


def test_admin_list_filters_orders_and_pages(workflow, make_account):
    stamp = timezone.now()
    made = []
    for i in range(5):
        acc = make_account(f'p{i}@example.com', role='service_provider')
        req = workflow.submit(requester_id=acc.pk, requester_email=acc.email, role='service_provider',
                              details={'businessName': f'Shop {i}'}, priority='high' if i % 2 else 'low')
        made.append(req.pk)
    # identical timestamps fall back to id order
    PermissionRequest.objects.update(created_at=stamp)

    page1, total = workflow.list_for_admin(page=1, limit=2)
    page3, _ = workflow.list_for_admin(page=3, limit=2)
    assert total == 5
    assert [r.pk for r in page1] == sorted(made, reverse=True)[:2]
    assert [r.pk for r in page3] == [min(made)]

    high, total_high = workflow.list_for_admin(priority='high')
    assert total_high == 2
    assert all(r.priority == 'high' for r in high)
    assert workflow.list_for_admin(role='doctor')[1] == 0


def test_stats(workflow, make_account):
    a = submit(workflow, make_account('a@example.com', role='doctor'))
    submit(workflow, make_account('b@example.com', role='doctor'))
    workflow.submit(requester_id=99, requester_email='m@example.com', role='midwife',
                    details={'certificationNumber': 'C-9'}, priority='urgent', is_urgent=True)
    review(workflow, a, 'approved')
    PermissionRequest.objects.filter(pk=a.pk).update(created_at=timezone.now() - timedelta(days=30))

    stats = workflow.stats()
    assert stats['total'] == 3
    assert stats['byStatus'] == {'pending': 2, 'under_review': 0, 'approved': 1, 'rejected': 0}
    assert stats['byRole'] == {'doctor': 2, 'midwife': 1, 'service_provider': 0}
    assert stats['byPriority']['urgent'] == 1
    assert stats['byPriority']['medium'] == 2
    assert stats['urgent'] == 1
    assert stats['recent'] == 2


def test_list_for_requester_only_returns_own(workflow, doctor, make_account):
    mine = submit(workflow, doctor)
    submit(workflow, make_account('x@example.com', role='doctor'))
    assert [r.pk for r in workflow.list_for_requester(doctor.pk, 'doctor')] == [mine.pk]


def test_list_for_requester_loads_notes_up_front(workflow, doctor, django_assert_num_queries):
    for role in ('doctor', 'midwife', 'service_provider'):
        req = submit(workflow, doctor, role=role, summary='x')
        workflow.add_note(req.pk, admin_id=1, admin_name='root', text=f'{role} note')
    with django_assert_num_queries(2):
        items = workflow.list_for_requester(doctor.pk)
        assert sorted(n.text for r in items for n in r.notes.all()) == [
            'doctor note', 'midwife note', 'service_provider note',
        ]


def test_relay_failure_is_swallowed(monkeypatch, doctor):
    def broken_layer(alias='default'):
        raise ConnectionError('redis down')

    monkeypatch.setattr('care.services.relay.get_channel_layer', broken_layer)
    workflow = ReviewWorkflow(requests=PermissionRequest.objects, accounts=Account.objects,
                              relay=NotificationRelay())
    req = submit(workflow, doctor)
    assert review(workflow, req, 'approved').status == 'approved'
