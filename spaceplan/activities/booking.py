"""Consultation booking: the lead submitted to unlock the full report."""

from __future__ import annotations

from typing import Protocol

import structlog

from spaceplan.models.contracts import ContactInfo, ProjectFacts, ReportResult

logger = structlog.get_logger()


class BookingService(Protocol):
    async def submit(
        self, contact: ContactInfo, facts: ProjectFacts, report: ReportResult
    ) -> None: ...


def mask_phone(phone: str) -> str:
    digits = phone.replace("-", "")
    return f"{digits[:3]}-****-{digits[-4:]}"


class LoggingBookingService:
    """Records leads as structured log events; LOG_FILE keeps a durable JSON-lines copy.

    Nothing is held in memory, so contact details live only in the log output.
    """

    async def submit(self, contact: ContactInfo, facts: ProjectFacts, report: ReportResult) -> None:
        logger.info(
            "booking_lead_received",
            name=contact.name,
            phone=mask_phone(contact.phone),
            email=contact.email,
            budget=facts.budget,
            accommodation=facts.accommodation_type,
            region=facts.location.region,
            recommended=report.scenarios[0].id,
        )
