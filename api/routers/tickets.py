"""Review queue for drafted tickets."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, Request

from api.schemas import CreatedTicketBody, EditBody, RejectBody, ReviewBody
from core.exceptions import ReviewError
from core.models import DraftedTicket
from pipeline.review import (
    ReviewFilters,
    approve,
    attach_created_ticket,
    compute_queue_stats,
    edit,
    filter_tickets,
    reject,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


def _get_ticket(request: Request, ticket_id: str) -> DraftedTicket:
    ticket = request.app.state.tickets.get(ticket_id)
    if ticket is None:
        raise HTTPException(404, f"Unknown ticket: {ticket_id}")
    return ticket


def _apply(request: Request, ticket_id: str, action, *args, **kwargs) -> dict:
    ticket = _get_ticket(request, ticket_id)
    try:
        action(ticket, *args, **kwargs)
    except ReviewError as exc:
        raise HTTPException(409, str(exc)) from exc
    log.info("Ticket %s is now %s", ticket.id, ticket.status)
    return ticket.to_dict()


@router.get("")
async def list_tickets(
    request: Request,
    status: str = Query("all", pattern="^(all|pending|approved|rejected|edited)$"),
    category: str = "all",
    priority: str = "all",
    source: str = "all",
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    tickets = request.app.state.tickets.all()
    filters = ReviewFilters(
        status=status,
        category=category,
        priority=priority,
        source=source,
        search=search,
        start=start,
        end=end,
    )
    return {
        "tickets": [t.to_dict() for t in filter_tickets(tickets, filters)],
        "stats": compute_queue_stats(tickets),
    }


@router.get("/{ticket_id}")
async def get_ticket(ticket_id: str, request: Request):
    return _get_ticket(request, ticket_id).to_dict()


@router.post("/{ticket_id}/approve")
async def approve_ticket(ticket_id: str, request: Request, body: ReviewBody | None = None):
    return _apply(request, ticket_id, approve, (body or ReviewBody()).reviewer)


@router.post("/{ticket_id}/reject")
async def reject_ticket(ticket_id: str, request: Request, body: RejectBody | None = None):
    body = body or RejectBody()
    return _apply(request, ticket_id, reject, body.reason, body.reviewer)


@router.post("/{ticket_id}/edit")
async def edit_ticket(ticket_id: str, body: EditBody, request: Request):
    return _apply(
        request,
        ticket_id,
        edit,
        title=body.title,
        description=body.description,
        priority=body.priority,
        labels=body.labels,
        reviewer=body.reviewer,
    )


@router.post("/{ticket_id}/created-ticket")
async def created_ticket(ticket_id: str, body: CreatedTicketBody, request: Request):
    return _apply(request, ticket_id, attach_created_ticket, body.platform, body.ticket_id, body.ticket_url)
