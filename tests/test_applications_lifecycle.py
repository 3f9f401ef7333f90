import re
import uuid

import pytest

from nyay_sahayak.exceptions import (
    ApplicationNotFoundError,
    ApplicationValidationError,
    InvalidTransitionError,
    MissingRemarksError,
    OfficerMismatchError,
)
from nyay_sahayak.lifecycle import AMOUNT_BEARING_STATUSES, ApplicationStatus, ReviewAction, can_transition
from tests._payloads import create_payload, make_application

pytestmark = pytest.mark.anyio


async def test_atrocity_relief_approve_flow_over_http(client, emitter):
    beneficiary_id = str(uuid.uuid4())
    officer_id = str(uuid.uuid4())

    r = await client.post("/api/v1/applications", json=create_payload("ATROCITY_RELIEF", beneficiary_id=beneficiary_id))
    assert r.status_code == 201, r.text
    application_id = r.json()["application_id"]

    r = await client.post(f"/api/v1/applications/{application_id}/submit")
    assert r.status_code == 200, r.text
    assert r.json()["application_status"] == "SUBMITTED"
    assert r.json()["submitted_at"] is not None

    r = await client.post(f"/api/v1/applications/{application_id}/assign", json={"officer_id": officer_id})
    assert r.status_code == 200, r.text
    assert r.json()["assigned_officer"] == officer_id
    assert r.json()["application_status"] == "SUBMITTED"

    r = await client.post(
        f"/api/v1/applications/{application_id}/decision",
        json={"action": "APPROVE", "officer_id": officer_id, "amount": 200000},
    )
    assert r.status_code == 200, r.text

    data = r.json()
    assert data["application_id"] == application_id
    assert data["application_status"] == "APPROVED"
    assert data["approved_amount"] == 200000
    assert data["assigned_officer"] == officer_id
    assert data["reviewed_at"] is not None
    assert data["rejection_reason"] is None

    assert len(emitter.events) == 1
    event = emitter.events[0]
    assert event["application_id"] == application_id
    assert event["old_status"] == "SUBMITTED"
    assert event["new_status"] == "APPROVED"
    assert event["approved_amount"] == 200000.0


async def test_marriage_reject_flow(store, workflow, session):
    app = await make_application(store, session)
    assert re.fullmatch(r"MAR_\d{4}_\d{6}", app.application_id)

    app = await store.submit(session, app.application_id)
    app = await workflow.decide(
        session,
        app.application_id,
        ReviewAction.REJECT,
        officer_id=uuid.uuid4(),
        remarks="Invalid registration",
    )

    assert app.application_status == ApplicationStatus.REJECTED.value
    assert app.rejection_reason == "Invalid registration"
    assert app.approved_amount is None
    assert app.reviewed_at is not None


async def test_decide_on_draft_is_invalid_transition_and_leaves_draft(store, workflow, session):
    app = await make_application(store, session)

    with pytest.raises(InvalidTransitionError):
        await workflow.decide(session, app.application_id, "APPROVE", officer_id=uuid.uuid4(), amount=1000)

    app = await store.get(session, app.application_id)
    assert app.application_status == ApplicationStatus.DRAFT.value
    assert app.reviewed_at is None


async def test_decide_on_draft_over_http_is_409(client):
    r = await client.post("/api/v1/applications", json=create_payload())
    application_id = r.json()["application_id"]

    r = await client.post(
        f"/api/v1/applications/{application_id}/decision",
        json={"action": "APPROVE", "officer_id": str(uuid.uuid4()), "amount": 10},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "InvalidTransition"

    r = await client.get(f"/api/v1/applications/{application_id}")
    assert r.json()["application_status"] == "DRAFT"


async def test_create_then_submit_keeps_id_and_stamps_submitted_at(store, session):
    for application_type in ("INTERCASTE_MARRIAGE", "ATROCITY_RELIEF"):
        app = await make_application(store, session, application_type=application_type)
        application_id = app.application_id

        app = await store.submit(session, application_id)
        assert app.application_id == application_id
        assert app.application_status == ApplicationStatus.SUBMITTED.value
        assert app.submitted_at is not None


async def test_submit_twice_is_invalid_transition(store, session):
    app = await make_application(store, session, submit=True)
    submitted_at = app.submitted_at

    with pytest.raises(InvalidTransitionError):
        await store.submit(session, app.application_id)

    app = await store.get(session, app.application_id)
    assert app.submitted_at == submitted_at


@pytest.mark.parametrize("remarks", ["", "   ", None])
async def test_reject_without_remarks_fails_for_every_status(store, workflow, session, remarks):
    officer_id = uuid.uuid4()
    draft = await make_application(store, session)
    submitted = await make_application(store, session, submit=True)
    approved = await make_application(store, session, submit=True)
    await workflow.decide(session, approved.application_id, "APPROVE", officer_id=officer_id, amount=5)

    for app in (draft, submitted, approved):
        before = (await store.get(session, app.application_id)).application_status

        with pytest.raises(MissingRemarksError):
            await workflow.decide(session, app.application_id, "REJECT", officer_id=officer_id, remarks=remarks)

        after = await store.get(session, app.application_id)
        assert after.application_status == before


async def test_reject_without_remarks_over_http_is_422(client):
    r = await client.post("/api/v1/applications", json=create_payload())
    application_id = r.json()["application_id"]

    r = await client.post(
        f"/api/v1/applications/{application_id}/decision",
        json={"action": "REJECT", "officer_id": str(uuid.uuid4()), "remarks": ""},
    )
    assert r.status_code == 422
    assert r.json()["error"] == "MissingRemarks"


@pytest.mark.parametrize("amount", [None, -1, "abc"])
async def test_approve_requires_non_negative_amount(store, workflow, session, amount):
    app = await make_application(store, session, submit=True)

    with pytest.raises(ApplicationValidationError):
        await workflow.decide(session, app.application_id, "APPROVE", officer_id=uuid.uuid4(), amount=amount)

    app = await store.get(session, app.application_id)
    assert app.application_status == ApplicationStatus.SUBMITTED.value


async def test_approve_with_zero_amount(store, workflow, session):
    app = await make_application(store, session, submit=True)
    app = await workflow.decide(session, app.application_id, "APPROVE", officer_id=uuid.uuid4(), amount=0)

    assert app.application_status == ApplicationStatus.APPROVED.value
    assert app.approved_amount == 0


async def test_unknown_action_is_validation_error(store, workflow, session):
    app = await make_application(store, session, submit=True)

    with pytest.raises(ApplicationValidationError):
        await workflow.decide(session, app.application_id, "ESCALATE", officer_id=uuid.uuid4())


async def test_decide_by_other_officer_is_rejected(store, workflow, session):
    owner = uuid.uuid4()
    app = await make_application(store, session, submit=True)
    await store.assign(session, app.application_id, owner)

    with pytest.raises(OfficerMismatchError):
        await workflow.decide(session, app.application_id, "APPROVE", officer_id=uuid.uuid4(), amount=100)

    app = await store.get(session, app.application_id)
    assert app.application_status == ApplicationStatus.SUBMITTED.value


async def test_unassigned_application_is_self_assigned_on_decision(store, workflow, session):
    officer_id = uuid.uuid4()
    app = await make_application(store, session, submit=True)

    app = await workflow.decide(session, app.application_id, "APPROVE", officer_id=officer_id, amount=50000)
    assert app.assigned_officer == officer_id


async def test_assign_requires_pending_status(store, session):
    draft = await make_application(store, session)

    with pytest.raises(InvalidTransitionError):
        await store.assign(session, draft.application_id, uuid.uuid4())

    app = await store.get(session, draft.application_id)
    assert app.assigned_officer is None


async def test_reassign_under_review(store, workflow, session):
    first, second = uuid.uuid4(), uuid.uuid4()
    app = await make_application(store, session, submit=True)
    await workflow.start_review(session, app.application_id, officer_id=first)

    app = await store.assign(session, app.application_id, second)
    assert app.application_status == ApplicationStatus.UNDER_REVIEW.value
    assert app.assigned_officer == second


async def test_start_review_moves_submitted_to_under_review(store, workflow, session, emitter):
    officer_id = uuid.uuid4()
    app = await make_application(store, session, submit=True)

    app = await workflow.start_review(session, app.application_id, officer_id=officer_id)
    assert app.application_status == ApplicationStatus.UNDER_REVIEW.value
    assert app.assigned_officer == officer_id
    assert emitter.events[-1]["new_status"] == "UNDER_REVIEW"

    with pytest.raises(InvalidTransitionError):
        await workflow.start_review(session, app.application_id, officer_id=officer_id)

    app = await workflow.decide(
        session, app.application_id, "REJECT", officer_id=officer_id, remarks="FIR not registered"
    )
    assert app.application_status == ApplicationStatus.REJECTED.value


async def test_unknown_application_is_not_found(store, workflow, session):
    with pytest.raises(ApplicationNotFoundError):
        await store.get(session, "MAR_2025_000000")

    with pytest.raises(ApplicationNotFoundError):
        await workflow.decide(session, "MAR_2025_000000", "APPROVE", officer_id=uuid.uuid4(), amount=1)


async def test_decided_records_satisfy_amount_and_reason_invariants(store, workflow, session):
    beneficiary_id = uuid.uuid4()
    officer_id = uuid.uuid4()

    approved = await make_application(store, session, beneficiary_id=beneficiary_id, submit=True)
    rejected = await make_application(store, session, beneficiary_id=beneficiary_id, submit=True)
    await make_application(store, session, beneficiary_id=beneficiary_id)

    await workflow.decide(session, approved.application_id, "APPROVE", officer_id=officer_id, amount="75000.50")
    await workflow.decide(session, rejected.application_id, "REJECT", officer_id=officer_id, remarks="Duplicate claim")

    records = await store.find_by_beneficiary(session, beneficiary_id)
    assert len(records) == 3

    for record in records:
        status = ApplicationStatus(record.application_status)
        if status in AMOUNT_BEARING_STATUSES:
            assert record.approved_amount is not None and record.approved_amount >= 0
        else:
            assert record.approved_amount is None

        if status == ApplicationStatus.REJECTED:
            assert record.rejection_reason and record.rejection_reason.strip()
        else:
            assert record.rejection_reason is None


async def test_rejection_reason_is_stored_as_given(store, workflow, session):
    app = await make_application(store, session, submit=True)

    app = await workflow.decide(
        session, app.application_id, "REJECT", officer_id=uuid.uuid4(), remarks="  Invalid registration\n"
    )
    assert app.rejection_reason == "  Invalid registration\n"


def test_lifecycle_only_moves_forward():
    assert can_transition("DRAFT", "SUBMITTED")
    assert can_transition("SUBMITTED", "APPROVED")
    assert can_transition("UNDER_REVIEW", "REJECTED")
    assert can_transition("APPROVED", "PAYMENT_INITIATED")

    assert not can_transition("DRAFT", "APPROVED")
    assert not can_transition("APPROVED", "SUBMITTED")
    assert not can_transition("REJECTED", "UNDER_REVIEW")
    assert not can_transition("COMPLETED", "PAYMENT_INITIATED")
    assert not can_transition("SUBMITTED", "ARCHIVED")
