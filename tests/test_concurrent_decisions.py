import asyncio
import uuid

import pytest

from nyay_sahayak.crud.application import get_application, transition_application
from nyay_sahayak.exceptions import InvalidTransitionError
from nyay_sahayak.lifecycle import ApplicationStatus
from tests._payloads import make_application

pytestmark = pytest.mark.anyio


async def test_duplicate_decision_from_second_session_loses(store, workflow, session_factory):
    officer_id = uuid.uuid4()

    async with session_factory() as setup:
        app = await make_application(store, setup, submit=True)
    application_id = app.application_id

    async with session_factory() as first, session_factory() as second:
        # Both reviewers have the SUBMITTED record open.
        assert (await store.get(first, application_id)).application_status == "SUBMITTED"
        assert (await store.get(second, application_id)).application_status == "SUBMITTED"

        await workflow.decide(first, application_id, "APPROVE", officer_id=officer_id, amount=1000)

        with pytest.raises(InvalidTransitionError):
            await workflow.decide(second, application_id, "REJECT", officer_id=officer_id, remarks="late")

    async with session_factory() as check:
        final = await store.get(check, application_id)
        assert final.application_status == ApplicationStatus.APPROVED.value
        assert final.rejection_reason is None


async def test_conditional_update_rejects_stale_status(store, session_factory):
    async with session_factory() as setup:
        app = await make_application(store, setup, submit=True)
    application_id = app.application_id

    async with session_factory() as first, session_factory() as second:
        winner = await get_application(first, application_id=application_id)
        loser = await get_application(second, application_id=application_id)

        await transition_application(
            first,
            app=winner,
            target=ApplicationStatus.REJECTED,
            values={"rejection_reason": "first"},
            action="APPLICATION_REJECTED",
        )

        # `loser` still carries the SUBMITTED status it observed.
        assert loser.application_status == ApplicationStatus.SUBMITTED.value
        with pytest.raises(InvalidTransitionError):
            await transition_application(
                second,
                app=loser,
                target=ApplicationStatus.APPROVED,
                values={"approved_amount": 10},
                action="APPLICATION_APPROVED",
            )

    async with session_factory() as check:
        final = await store.get(check, application_id)
        assert final.application_status == ApplicationStatus.REJECTED.value
        assert final.rejection_reason == "first"
        assert final.approved_amount is None


async def test_conditional_update_checks_expected_officer(store, session_factory):
    async with session_factory() as setup:
        app = await make_application(store, setup, submit=True)
    application_id = app.application_id

    async with session_factory() as first, session_factory() as second:
        unassigned = await get_application(second, application_id=application_id)
        await store.assign(first, application_id, uuid.uuid4())

        with pytest.raises(InvalidTransitionError):
            await transition_application(
                second,
                app=unassigned,
                target=ApplicationStatus.APPROVED,
                values={"approved_amount": 10},
                action="APPLICATION_APPROVED",
                expected_officer=None,
            )


async def test_simultaneous_decisions_have_exactly_one_winner(store, workflow, session_factory):
    officer_id = uuid.uuid4()

    async with session_factory() as setup:
        app = await make_application(store, setup, submit=True)
    application_id = app.application_id

    async def _decide(action, **kwargs):
        async with session_factory() as s:
            return await workflow.decide(s, application_id, action, officer_id=officer_id, **kwargs)

    results = await asyncio.gather(
        _decide("APPROVE", amount=1000),
        _decide("REJECT", remarks="Duplicate claim"),
        _decide("APPROVE", amount=2000),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 2
    assert all(isinstance(e, InvalidTransitionError) for e in losers), losers

    async with session_factory() as check:
        final = await store.get(check, application_id)
        assert final.application_status == winners[0].application_status


async def test_conditional_update_refuses_transition_outside_lifecycle(store, session_factory):
    async with session_factory() as s:
        app = await make_application(store, s)
        application_id = app.application_id

        with pytest.raises(InvalidTransitionError):
            await transition_application(
                s,
                app=app,
                target=ApplicationStatus.APPROVED,
                values={"approved_amount": 10},
                action="APPLICATION_APPROVED",
            )

    async with session_factory() as check:
        final = await store.get(check, application_id)
        assert final.application_status == ApplicationStatus.DRAFT.value
        assert final.approved_amount is None
