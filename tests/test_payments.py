import uuid

import pytest

from nyay_sahayak.exceptions import ApplicationValidationError, InvalidTransitionError
from nyay_sahayak.lifecycle import ApplicationStatus
from tests._payloads import make_application

pytestmark = pytest.mark.anyio


async def _approved(store, workflow, session, amount=200000):
    app = await make_application(store, session, application_type="ATROCITY_RELIEF", submit=True)
    return await workflow.decide(session, app.application_id, "APPROVE", officer_id=uuid.uuid4(), amount=amount)


async def test_payment_initiated_then_completed(store, workflow, session, emitter):
    app = await _approved(store, workflow, session)

    app = await workflow.initiate_payment(session, app.application_id, transaction_id="DBT-0001")
    assert app.application_status == ApplicationStatus.PAYMENT_INITIATED.value
    assert app.approved_amount == 200000

    app = await workflow.complete_payment(session, app.application_id, transaction_id="DBT-0001")
    assert app.application_status == ApplicationStatus.COMPLETED.value
    assert app.approved_amount == 200000

    assert [e["new_status"] for e in emitter.events] == ["APPROVED", "PAYMENT_INITIATED", "COMPLETED"]
    assert emitter.events[-1]["transaction_id"] == "DBT-0001"


async def test_payment_steps_are_ordered(store, workflow, session):
    submitted = await make_application(store, session, submit=True)
    with pytest.raises(InvalidTransitionError):
        await workflow.initiate_payment(session, submitted.application_id, transaction_id="DBT-1")

    app = await _approved(store, workflow, session)
    with pytest.raises(InvalidTransitionError):
        await workflow.complete_payment(session, app.application_id, transaction_id="DBT-2")

    await workflow.initiate_payment(session, app.application_id, transaction_id="DBT-2")
    await workflow.complete_payment(session, app.application_id, transaction_id="DBT-2")

    # COMPLETED is terminal.
    with pytest.raises(InvalidTransitionError):
        await workflow.complete_payment(session, app.application_id, transaction_id="DBT-2")
    with pytest.raises(InvalidTransitionError):
        await workflow.decide(session, app.application_id, "REJECT", officer_id=uuid.uuid4(), remarks="late")


async def test_payment_requires_transaction_id(store, workflow, session):
    app = await _approved(store, workflow, session)

    with pytest.raises(ApplicationValidationError):
        await workflow.initiate_payment(session, app.application_id, transaction_id="  ")


async def test_rejected_application_cannot_be_paid(store, workflow, session):
    app = await make_application(store, session, submit=True)
    await workflow.decide(session, app.application_id, "REJECT", officer_id=uuid.uuid4(), remarks="Ineligible")

    with pytest.raises(InvalidTransitionError):
        await workflow.initiate_payment(session, app.application_id, transaction_id="DBT-9")


async def test_payment_endpoints(client, store, workflow, session):
    app = await _approved(store, workflow, session, amount=50000)

    r = await client.post(
        f"/api/v1/applications/{app.application_id}/payment/initiate", json={"transaction_id": "DBT-77"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["application_status"] == "PAYMENT_INITIATED"

    r = await client.post(
        f"/api/v1/applications/{app.application_id}/payment/initiate", json={"transaction_id": "DBT-77"}
    )
    assert r.status_code == 409

    r = await client.post(
        f"/api/v1/applications/{app.application_id}/payment/complete", json={"transaction_id": "DBT-77"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["application_status"] == "COMPLETED"
    assert r.json()["approved_amount"] == 50000
