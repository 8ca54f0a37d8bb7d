import pytest

from credx.rules.actions.base import ActionContext
from credx.rules.actions.escalate_action import EscalateAction
from credx.rules.schemas import Escalate


@pytest.mark.asyncio
@pytest.mark.parametrize("current, expected", [
    ("low", "medium"),
    ("medium", "high"),
    ("high", "urgent"),
])
async def test_escalates_one_level(db_session, make_rule, make_ticket, current, expected):
    ticket = make_ticket(priority=current)
    rule = make_rule(name="Escalate stale")

    outcome = await EscalateAction().execute(Escalate(), ActionContext(ticket, rule, db_session))

    assert outcome == {"type": "escalate", "status": "applied", "from": current, "to": expected}
    assert ticket.priority == expected
    assert ticket.ticket_metadata["previous_priority"] == current
    assert ticket.ticket_metadata["escalated_by_rule"] == "Escalate stale"


@pytest.mark.asyncio
async def test_urgent_is_left_alone(db_session, make_rule, make_ticket):
    ticket = make_ticket(priority="urgent")

    outcome = await EscalateAction().execute(Escalate(), ActionContext(ticket, make_rule(), db_session))

    assert outcome["status"] == "skipped"
    assert ticket.priority == "urgent"
    assert ticket.ticket_metadata == {}


@pytest.mark.asyncio
async def test_escalates_to_explicit_level(db_session, make_rule, make_ticket):
    ticket = make_ticket(priority="low")

    outcome = await EscalateAction().execute(
        Escalate(to_priority="urgent"), ActionContext(ticket, make_rule(), db_session)
    )

    assert outcome["to"] == "urgent"
    assert ticket.priority == "urgent"


@pytest.mark.asyncio
async def test_never_lowers_priority(db_session, make_rule, make_ticket):
    ticket = make_ticket(priority="high")

    outcome = await EscalateAction().execute(
        Escalate(to_priority="low"), ActionContext(ticket, make_rule(), db_session)
    )

    assert outcome["status"] == "skipped"
    assert ticket.priority == "high"
