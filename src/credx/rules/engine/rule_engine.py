import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar
from uuid import uuid4

from prometheus_client import Counter, Histogram
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from credx.platform.config import settings
from credx.platform.logging import rule_log_context
from credx.rules import schemas
from credx.rules.engine.evaluator import ConditionEvaluator
from credx.rules.engine.executor import ActionExecutor, ExecutionResult
from credx.rules.errors import EvaluationError, NotFound, PersistenceError, RuleEngineError
from credx.rules.execution_log import ExecutionLog
from credx.rules.models import RuleExecutionModel, RuleModel
from credx.rules.repository import RuleRepository
from credx.storage.models import TicketModel
from credx.storage.repositories.ticket_repository import TicketRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

RULE_EXECUTIONS = Counter(
    "credx_rule_executions_total", "Rule executions recorded, by outcome", ["status"]
)
RULE_DURATION = Histogram(
    "credx_rule_duration_seconds", "Time spent evaluating and executing one rule against one ticket"
)


@dataclass
class EngineResult:
    """The ticket after a pass, with the executions the pass recorded."""

    ticket: TicketModel
    executions: List[RuleExecutionModel] = field(default_factory=list)


class RuleEngine:
    """
    Routes tickets through the active rules.

    Each pass is stateless: rules are loaded fresh, evaluated in precedence
    order against a snapshot of the ticket taken at the start of the pass, and
    every matching rule runs. A rule that raises or times out is recorded as a
    failed execution and the pass moves on to the next rule.
    """

    def __init__(
        self,
        rule_repository: Optional[RuleRepository] = None,
        ticket_repository: Optional[TicketRepository] = None,
        execution_log: Optional[ExecutionLog] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        executor: Optional[ActionExecutor] = None,
        timeout: Optional[float] = None,
        manual_run_limit: Optional[int] = None,
    ):
        self.rules = rule_repository or RuleRepository()
        self.tickets = ticket_repository or TicketRepository()
        self.execution_log = execution_log or ExecutionLog()
        self.evaluator = evaluator or ConditionEvaluator()
        self.executor = executor or ActionExecutor()
        self.timeout = timeout if timeout is not None else settings.RULE_EXECUTION_TIMEOUT_SECONDS
        self.manual_run_limit = manual_run_limit or settings.MANUAL_RUN_TICKET_LIMIT

    async def create_ticket(
        self, session: Session, ticket_create: schemas.TicketCreate, created_by: Optional[str] = None
    ) -> EngineResult:
        """Persist a new ticket and route it through the active rules."""
        ticket = TicketModel(
            id=str(uuid4()),
            title=ticket_create.title,
            description=ticket_create.description,
            category=ticket_create.category,
            priority=ticket_create.priority,
            status=ticket_create.status,
            created_by=created_by or ticket_create.created_by,
            ticket_metadata=dict(ticket_create.metadata),
        )
        try:
            ticket = self.tickets.create(session, ticket)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create ticket: {e}") from e

        logger.info(f"Ticket {ticket.id} created ({ticket.priority}/{ticket.category})")
        return await self.on_fact_created(session, ticket)

    async def on_fact_created(self, session: Session, ticket: TicketModel) -> EngineResult:
        """
        Evaluate every active rule against a new or updated ticket.

        Never raises: failures are recorded as failed executions.
        """
        try:
            rules = self.rules.list_active(session)
        except SQLAlchemyError as e:
            logger.error(f"Could not load active rules for ticket {ticket.id}: {e}")
            return EngineResult(ticket=ticket)

        logger.debug(f"Evaluating {len(rules)} active rules for ticket {ticket.id}")
        snapshot = ticket.to_fact()
        executions = []
        for rule in rules:
            with rule_log_context(rule_id=rule.id, ticket_id=ticket.id):
                execution = await self._run_rule(session, rule, ticket, snapshot)
            if execution is not None:
                executions.append(execution)

        return EngineResult(ticket=ticket, executions=executions)

    async def _run_rule(
        self, session: Session, rule: RuleModel, ticket: TicketModel, snapshot: dict
    ) -> Optional[RuleExecutionModel]:
        start = time.perf_counter()
        try:
            outcome = await self._in_savepoint(
                session, lambda: self._evaluate_and_execute(session, rule, ticket, snapshot)
            )
        except asyncio.TimeoutError:
            logger.error(f"Rule {rule.id} timed out after {self.timeout}s on ticket {ticket.id}")
            outcome = ExecutionResult()
            outcome.fail(EvaluationError(f"Rule timed out after {self.timeout}s"))
        except RuleEngineError as e:
            logger.error(f"Failed to evaluate/execute rule {rule.id}: {e}")
            outcome = ExecutionResult()
            outcome.fail(e)
        except SQLAlchemyError as e:
            logger.error(f"Store failed while running rule {rule.id}: {e}")
            outcome = ExecutionResult()
            outcome.fail(PersistenceError(str(e)))
        except Exception as e:
            logger.error(f"Failed to evaluate/execute rule {rule.id}: {e}", exc_info=True)
            outcome = ExecutionResult()
            outcome.fail(EvaluationError(str(e)))
        finally:
            RULE_DURATION.observe(time.perf_counter() - start)

        if outcome is None:
            logger.debug(f"Rule '{rule.name}' condition did not match ticket {ticket.id}")
            return None

        payload = outcome.to_payload()
        payload["rule_name"] = rule.name
        payload["latency_ms"] = round((time.perf_counter() - start) * 1000, 3)
        return self._record(session, rule, ticket.id, outcome.success, payload)

    async def _in_savepoint(self, session: Session, work: Callable[[], Awaitable[T]]) -> T:
        """
        Await ``work`` under the rule timeout inside a savepoint.

        If the work times out or raises, everything it wrote is rolled back so
        the session stays usable for the failed execution record and later rules.
        """
        savepoint = session.begin_nested()
        try:
            outcome = await asyncio.wait_for(work(), timeout=self.timeout)
        except BaseException:
            if savepoint.is_active:
                savepoint.rollback()
            raise
        savepoint.commit()
        return outcome

    async def _evaluate_and_execute(
        self, session: Session, rule: RuleModel, ticket: TicketModel, snapshot: dict
    ) -> Optional[ExecutionResult]:
        if not self.evaluator.evaluate(rule.conditions, snapshot):
            return None
        logger.info(f"Rule '{rule.name}' matched ticket {ticket.id}")
        return await self.executor.execute(rule.actions, ticket, rule, session)

    def _record(
        self, session: Session, rule: RuleModel, fact_id: Optional[str], success: bool, result: dict
    ) -> Optional[RuleExecutionModel]:
        status = "success" if success else "failed"
        execution = RuleExecutionModel(rule_id=rule.id, fact_id=fact_id, status=status, result=result)
        try:
            execution = self.execution_log.append(session, execution)
        except PersistenceError as e:
            logger.error(f"Execution of rule {rule.id} could not be logged: {e}")
            return None
        RULE_EXECUTIONS.labels(status=status).inc()
        return execution

    async def execute_rule(self, session: Session, rule_id: str, dry_run: bool = True) -> RuleExecutionModel:
        """
        Manually fire one rule, active or not, over the unresolved tickets.

        With ``dry_run`` only matches are counted; otherwise the rule's actions
        are applied to every matching ticket. Exactly one execution is logged,
        not bound to any single ticket.
        """
        rule = self.rules.get(session, rule_id)
        if rule is None:
            raise NotFound(rule_id)

        tickets = self.tickets.list_by_status(session, limit=self.manual_run_limit)
        processed = 0
        errors = []
        for ticket in tickets:
            try:
                if not self.evaluator.evaluate(rule.conditions, ticket.to_fact()):
                    continue
                processed += 1
                if dry_run:
                    continue
                outcome = await self._in_savepoint(
                    session, lambda: self.executor.execute(rule.actions, ticket, rule, session)
                )
                if not outcome.success:
                    errors.append({"ticket_id": ticket.id, "error": outcome.error})
            except asyncio.TimeoutError:
                errors.append({"ticket_id": ticket.id, "error": f"Timed out after {self.timeout}s"})
            except RuleEngineError as e:
                errors.append({"ticket_id": ticket.id, "error": str(e)})
            except SQLAlchemyError as e:
                errors.append({"ticket_id": ticket.id, "error": f"Store failed: {e}"})

        result = {
            "rule_name": rule.name,
            "dry_run": dry_run,
            "tickets_scanned": len(tickets),
            "tickets_processed": processed,
            "tickets_failed": len(errors),
            "success": not errors,
        }
        if errors:
            result["errors"] = errors[:10]

        logger.info(
            f"Manual run of rule '{rule.name}' (dry_run={dry_run}): "
            f"{processed}/{len(tickets)} tickets matched, {len(errors)} failed"
        )
        status = "failed" if errors else "success"
        execution = self.execution_log.append(
            session, RuleExecutionModel(rule_id=rule.id, fact_id=None, status=status, result=result)
        )
        RULE_EXECUTIONS.labels(status=status).inc()
        return execution
