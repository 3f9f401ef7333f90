from __future__ import annotations

import logging
from typing import Any

from nyay_sahayak.worker.celery_app import celery_app


logger = logging.getLogger(__name__)

SCHEME_NAMES = {
    "ATROCITY_RELIEF": "Relief for Atrocity Victims",
    "INTERCASTE_MARRIAGE": "Inter-Caste Marriage Incentive",
}

STATUS_MESSAGES = {
    "SUBMITTED": "Application {application_id} for {scheme} has been submitted successfully.",
    "UNDER_REVIEW": "Application {application_id} for {scheme} is under review by district authorities.",
    "APPROVED": (
        "Application {application_id} for {scheme} has been approved. "
        "DBT payment of Rs {approved_amount} will be processed to your Aadhaar-linked account."
    ),
    "REJECTED": "Application {application_id} for {scheme} has been rejected. Reason: {rejection_reason}",
    "PAYMENT_INITIATED": (
        "DBT payment of Rs {approved_amount} for application {application_id} has been initiated. "
        "Ref: {transaction_id}"
    ),
    "COMPLETED": "Rs {approved_amount} for application {application_id} has been credited. Ref: {transaction_id}",
}


def render_status_message(event: dict[str, Any]) -> str | None:
    """Beneficiary-facing text for a status-change event, or None if the status has no template."""

    template = STATUS_MESSAGES.get(event.get("new_status") or "")
    if template is None:
        return None

    amount = event.get("approved_amount")
    return template.format(
        application_id=event.get("application_id"),
        scheme=SCHEME_NAMES.get(event.get("application_type") or "", event.get("application_type")),
        approved_amount=f"{amount:,.2f}" if isinstance(amount, (int, float)) else "-",
        rejection_reason=event.get("rejection_reason") or "Not specified",
        transaction_id=event.get("transaction_id") or "-",
    )


@celery_app.task(name="nyay_sahayak.application_status_changed")
def application_status_changed(event: dict[str, Any]) -> str | None:
    """Consume a status-change event.

    SMS / email delivery belongs to the notification gateway; this task
    renders the beneficiary message and hands it off through the log stream.
    """

    message = render_status_message(event)
    logger.info(
        "application_status_changed application_id=%s %s -> %s message=%r",
        event.get("application_id"),
        event.get("old_status"),
        event.get("new_status"),
        message,
    )
    return message
