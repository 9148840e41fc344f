"""
Negotiation lifecycle orchestration.

``NegotiationService`` ties the engine components to the record store and
the mailer. Every debt mutation is a read-modify-write against the debt
``version``; a lost race is retried once with fresh state. Follow-up work
(strategy after intake, counter letter after a reply) runs inside the same
call, never as a detached task.
"""

import logging
from typing import Callable, Dict, List, Optional

from tenacity import after_log, retry, retry_if_exception_type, stop_after_attempt

from src.api.errors import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    InvalidTransitionError,
    MailDeliveryError,
    UnfilledVariablesError,
    ValidationError,
)
from src.api.models.domain import (
    ApprovalRecord,
    AuditLogEntry,
    ClassificationRecord,
    ConversationMessage,
    Debt,
    DebtExtension,
    DeliveryRecord,
    FinancialOutcomeRecord,
    IntakeRecord,
    LetterRecord,
    NegotiationPlan,
    Variable,
)
from src.api.models.enums import AuditAction, DebtStatus, Direction, MessageType
from src.api.models.requests import (
    CounterOfferContext,
    InboundEmail,
    ResponseClassificationInput,
    StrategyRequest,
)
from src.api.models.responses import (
    ExtractedTerms,
    InboundEmailResult,
    OptOutResult,
    ResponseAnalysis,
    SendResult,
)
from src.mail import MailDelivery, resolve_recipient
from src.store import AUDIT_LOGS, DEBTS, MESSAGES, VARIABLES, RecordStore

from .base import EngineComponent
from .classifier import analysis_summary
from .financial import DEFAULT_ANNUAL_DISCOUNT_RATE, calculate_financial_outcome
from .state_machine import REPLY_STATUSES, decide_reply, ensure_transition, is_terminal
from .variables import reconcile_variables, render_letter

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_NOTE = "Approved without sending email"


class _AlreadyProcessed(Exception):
    """The inbound message id was already applied to the debt."""


class NegotiationService:
    """Runs a debt from first notice to a terminal outcome."""

    def __init__(
        self,
        store: RecordStore,
        mailer: MailDelivery,
        classifier: EngineComponent,
        opt_out_detector: EngineComponent,
        strategy_generator: EngineComponent,
        debt_parser: EngineComponent,
        auto_counter_confidence: float = 0.8,
        annual_discount_rate: float = DEFAULT_ANNUAL_DISCOUNT_RATE,
    ):
        self.store = store
        self.mailer = mailer
        self.classifier = classifier
        self.opt_out_detector = opt_out_detector
        self.strategy_generator = strategy_generator
        self.debt_parser = debt_parser
        self.auto_counter_confidence = auto_counter_confidence
        self.annual_discount_rate = annual_discount_rate

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(ConcurrencyConflictError),
        after=after_log(logger, logging.INFO),
        reraise=True,
    )
    def _update_debt(self, debt_id: str, mutate: Callable[[Debt], Dict]) -> Debt:
        """Apply ``mutate`` to the freshest debt and store it with a version check."""
        debt = self.store.get_debt(debt_id)
        patch = mutate(debt)
        return self.store.update(DEBTS, debt_id, patch, expected_version=debt.version)

    def _audit(self, debt_id: str, action: AuditAction, **details) -> None:
        self.store.append_audit(AuditLogEntry(debt_id=debt_id, action=action, details=details))

    @staticmethod
    def _extension(debt: Debt, **records) -> DebtExtension:
        return debt.extension.model_copy(update=records)

    def _store_message(
        self,
        debt: Debt,
        message_type: MessageType,
        direction: Direction,
        subject: str,
        body: str,
        from_email: str,
        to_email: str,
        message_id: str,
    ) -> ConversationMessage:
        return self.store.insert(
            MESSAGES,
            ConversationMessage(
                debt_id=debt.id,
                message_type=message_type,
                direction=direction,
                subject=subject,
                body=body,
                from_email=from_email,
                to_email=to_email,
                message_id=message_id,
            ),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_debt(self, debt_id: str) -> Debt:
        return self.store.get_debt(debt_id)

    def list_messages(self, debt_id: str) -> List[ConversationMessage]:
        self.store.get_debt(debt_id)
        return sorted(self.store.list_by(MESSAGES, debt_id=debt_id), key=lambda m: m.created_at)

    def list_audit(self, debt_id: str) -> List[AuditLogEntry]:
        self.store.get_debt(debt_id)
        return self.store.list_by(AUDIT_LOGS, debt_id=debt_id)

    def get_variables(self, debt_id: str) -> Dict[str, str]:
        self.store.get_debt(debt_id)
        return {v.name: v.value for v in self.store.list_by(VARIABLES, debt_id=debt_id)}

    def _find_debt(self, email: InboundEmail, statuses) -> Optional[Debt]:
        """Most recently updated debt between this owner and sender in one of ``statuses``."""
        candidates = [
            debt
            for debt in self.store.list_by(
                DEBTS, owner_email=email.to_email, creditor_email=email.from_email
            )
            if debt.status in statuses
        ]
        return max(candidates, key=lambda d: d.updated_at) if candidates else None

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _sync_variables(self, debt_id: str, subject: str, body: str) -> Dict[str, str]:
        """Make the stored variables match the placeholders in ``subject`` and ``body``."""
        existing = self.store.list_by(VARIABLES, debt_id=debt_id)
        current = {v.name: v.value for v in existing}
        reconciled = reconcile_variables(current, body, subject)

        for variable in existing:
            if variable.name not in reconciled:
                self.store.delete(VARIABLES, variable.id)
        for name in reconciled:
            if name not in current:
                self.store.insert(VARIABLES, Variable(debt_id=debt_id, name=name))
        return reconciled

    def set_variables(self, debt_id: str, values: Dict[str, str]) -> Dict[str, str]:
        """Fill variable values; only names present in the current letter are accepted."""
        self.store.get_debt(debt_id)
        existing = {v.name: v for v in self.store.list_by(VARIABLES, debt_id=debt_id)}
        unknown = sorted(set(values) - set(existing))
        if unknown:
            raise ValidationError(
                "Unknown template variables",
                details={"unknown_variables": unknown, "known_variables": list(existing)},
            )
        for name, value in values.items():
            self.store.update(VARIABLES, existing[name].id, {"value": value})
        return self.get_variables(debt_id)

    # ------------------------------------------------------------------
    # Inbound email
    # ------------------------------------------------------------------

    async def handle_inbound_email(self, email: InboundEmail) -> InboundEmailResult:
        """
        Entry point for every inbound email.

        Order: duplicate check, opt-out check, reply to an in-flight
        negotiation, otherwise a new debt.
        """
        if not email.body.strip():
            raise ValidationError("Email body is required", details={"field": "body"})

        duplicate = self._duplicate_result(email.message_id)
        if duplicate is not None:
            return duplicate

        opt_out = await self.opt_out_detector.run(email)
        if opt_out.is_opt_out:
            open_debt = self._find_debt(
                email, [s for s in DebtStatus if not is_terminal(s) and s != DebtStatus.ACCEPTED]
            )
            if open_debt is not None:
                return self._opt_out_existing(open_debt.id, email, opt_out)
            return self._opt_out_new(email, opt_out)

        in_flight = self._find_debt(email, REPLY_STATUSES)
        if in_flight is not None:
            return await self.process_reply(in_flight.id, email)

        return await self._intake(email)

    def _duplicate_result(
        self, message_id: str, debt_id: Optional[str] = None
    ) -> Optional[InboundEmailResult]:
        seen = self.store.list_by(MESSAGES, message_id=message_id)
        if seen:
            debt_id = seen[0].debt_id
        if debt_id is None:
            return None
        debt = self.store.get_debt(debt_id)
        logger.info(f"Ignoring already processed message {message_id} for debt {debt.id}")
        self._audit(debt.id, AuditAction.DUPLICATE_IGNORED, message_id=message_id)
        return InboundEmailResult(action="duplicate", debt_id=debt.id, status=debt.status)

    def _new_debt_records(self, debt: Debt, email: InboundEmail) -> Optional[InboundEmailResult]:
        """Store the first message then the debt; returns a duplicate result on a lost race."""
        try:
            self._store_message(
                debt,
                MessageType.INITIAL_DEBT,
                Direction.INBOUND,
                email.subject,
                email.body,
                email.from_email,
                email.to_email,
                email.message_id,
            )
        except DuplicateRecordError:
            return self._duplicate_result(email.message_id)
        self.store.insert(DEBTS, debt)
        return None

    def _opt_out_new(self, email: InboundEmail, opt_out: OptOutResult) -> InboundEmailResult:
        debt = Debt(
            owner_email=email.to_email,
            vendor=email.from_email,
            creditor_email=email.from_email,
            amount=0.0,
            raw_email=email.body,
            status=DebtStatus.OPTED_OUT,
            conversation_count=1,
            processed_message_ids=[email.message_id],
        )
        duplicate = self._new_debt_records(debt, email)
        if duplicate is not None:
            return duplicate

        logger.info(f"Opt-out from {email.from_email} recorded as debt {debt.id}")
        self._audit(
            debt.id,
            AuditAction.OPT_OUT_LOGGED,
            from_email=email.from_email,
            reason=opt_out.reason,
            confidence=opt_out.confidence,
            source=opt_out.source,
        )
        return InboundEmailResult(action="opted_out", debt_id=debt.id, status=debt.status)

    def _opt_out_existing(
        self, debt_id: str, email: InboundEmail, opt_out: OptOutResult
    ) -> InboundEmailResult:
        def mutate(debt: Debt) -> Dict:
            if email.message_id in debt.processed_message_ids:
                raise _AlreadyProcessed()
            ensure_transition(debt.status, DebtStatus.OPTED_OUT)
            return {
                "status": DebtStatus.OPTED_OUT,
                "conversation_count": debt.conversation_count + 1,
                "processed_message_ids": debt.processed_message_ids + [email.message_id],
            }

        try:
            debt = self._update_debt(debt_id, mutate)
        except _AlreadyProcessed:
            return self._duplicate_result(email.message_id, debt_id)

        self._store_message(
            debt,
            MessageType.RESPONSE_RECEIVED,
            Direction.INBOUND,
            email.subject,
            email.body,
            email.from_email,
            email.to_email,
            email.message_id,
        )
        logger.info(f"Debt {debt.id} opted out by {email.from_email}")
        self._audit(
            debt.id,
            AuditAction.OPT_OUT_LOGGED,
            from_email=email.from_email,
            reason=opt_out.reason,
            confidence=opt_out.confidence,
            source=opt_out.source,
        )
        return InboundEmailResult(action="opted_out", debt_id=debt.id, status=debt.status)

    async def _intake(self, email: InboundEmail) -> InboundEmailResult:
        notice = await self.debt_parser.run(email)
        if not notice.successfully_parsed and notice.amount <= 0:
            raise ValidationError(
                "Could not parse debt information from email",
                details={"message_id": email.message_id, "source": notice.source},
            )

        debt = Debt(
            owner_email=email.to_email,
            vendor=notice.vendor,
            creditor_email=email.from_email,
            amount=notice.amount,
            description=notice.description,
            due_date=notice.due_date,
            raw_email=email.body,
            status=DebtStatus.RECEIVED,
            conversation_count=1,
            processed_message_ids=[email.message_id],
            extension=DebtExtension(
                intake=IntakeRecord(
                    subject=email.subject,
                    from_email=email.from_email,
                    to_email=email.to_email,
                    is_debt_collection=notice.is_debt_collection,
                    parse_source=notice.source,
                )
            ),
        )
        duplicate = self._new_debt_records(debt, email)
        if duplicate is not None:
            return duplicate

        logger.info(
            f"Debt {debt.id} received from {notice.vendor}: ${notice.amount:,.2f} "
            f"(collection={notice.is_debt_collection}, source={notice.source})"
        )
        self._audit(
            debt.id,
            AuditAction.EMAIL_RECEIVED,
            from_email=email.from_email,
            subject=email.subject,
            amount=notice.amount,
            vendor=notice.vendor,
            parse_source=notice.source,
        )

        generated = False
        if notice.amount > 0 and notice.is_debt_collection:
            debt = await self.generate_negotiation(debt.id)
            generated = True

        return InboundEmailResult(
            action="created",
            debt_id=debt.id,
            status=debt.status,
            negotiation_generated=generated,
        )

    # ------------------------------------------------------------------
    # Strategy and letter
    # ------------------------------------------------------------------

    def _strategy_request(
        self, debt: Debt, negotiation_round: int, counter: Optional[CounterOfferContext] = None
    ) -> StrategyRequest:
        return StrategyRequest(
            debt_id=debt.id,
            amount=debt.amount,
            vendor=debt.vendor,
            description=debt.description,
            due_date=debt.due_date,
            notice_excerpt=debt.raw_email,
            negotiation_round=negotiation_round,
            counter_context=counter,
        )

    async def generate_negotiation(self, debt_id: str) -> Debt:
        """Generate (or regenerate) the letter and move the debt to ``negotiating``."""
        debt = self.store.get_debt(debt_id)
        ensure_transition(debt.status, DebtStatus.NEGOTIATING)

        plan: NegotiationPlan = await self.strategy_generator.run(
            self._strategy_request(debt, debt.negotiation_round)
        )

        def mutate(current: Debt) -> Dict:
            ensure_transition(current.status, DebtStatus.NEGOTIATING)
            letter = LetterRecord(
                **plan.model_dump(), negotiation_round=current.negotiation_round
            )
            return {
                "status": DebtStatus.NEGOTIATING,
                "projected_savings": plan.projected_savings,
                "extension": self._extension(current, letter=letter, approval=None),
            }

        debt = self._update_debt(debt_id, mutate)
        self._sync_variables(debt_id, plan.subject, plan.body)

        logger.info(
            f"Negotiation generated for debt {debt_id}: {plan.strategy.value} "
            f"(savings ${plan.projected_savings:,.2f}, source={plan.source})"
        )
        self._audit(
            debt_id,
            AuditAction.NEGOTIATION_GENERATED,
            strategy=plan.strategy.value,
            confidence=plan.confidence,
            projected_savings=plan.projected_savings,
            source=plan.source,
        )
        return debt

    def update_letter(self, debt_id: str, subject: str, body: str) -> Debt:
        """User edit of the letter text; an approved letter goes back to ``negotiating``."""

        def mutate(debt: Debt) -> Dict:
            ensure_transition(debt.status, DebtStatus.NEGOTIATING)
            if debt.extension.letter is None:
                raise ValidationError("Debt has no letter to edit", details={"debt_id": debt_id})
            letter = debt.extension.letter.model_copy(update={"subject": subject, "body": body})
            return {
                "status": DebtStatus.NEGOTIATING,
                "extension": self._extension(debt, letter=letter, approval=None),
            }

        debt = self._update_debt(debt_id, mutate)
        variables = self._sync_variables(debt_id, subject, body)
        self._audit(debt_id, AuditAction.LETTER_EDITED, variables=list(variables))
        return debt

    def approve(self, debt_id: str, note: Optional[str] = None) -> Debt:
        """Freeze the letter as currently rendered and move to ``approved``."""
        variables = self.get_variables(debt_id)

        def mutate(debt: Debt) -> Dict:
            ensure_transition(debt.status, DebtStatus.APPROVED)
            letter = debt.extension.letter
            if letter is None:
                raise ValidationError(
                    "Debt has no letter to approve", details={"debt_id": debt_id}
                )
            rendered = render_letter(letter.subject, letter.body, variables)
            approval = ApprovalRecord(
                note=note or DEFAULT_APPROVAL_NOTE,
                strategy=letter.strategy,
                finalized_subject=rendered.subject,
                finalized_body=rendered.body,
            )
            return {
                "status": DebtStatus.APPROVED,
                "extension": self._extension(debt, approval=approval),
            }

        debt = self._update_debt(debt_id, mutate)
        self._audit(
            debt_id,
            AuditAction.DEBT_APPROVED,
            strategy=debt.extension.approval.strategy.value,
            note=debt.extension.approval.note,
        )
        return debt

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver(
        self, debt: Debt, subject: str, body: str, kind: str
    ) -> Optional[str]:
        """Send one email; a delivery failure is audited and reported as None."""
        to_email = resolve_recipient(debt.creditor_email, debt.vendor)
        try:
            return await self.mailer.send(debt.owner_email, to_email, subject, body)
        except MailDeliveryError as e:
            logger.error(f"Delivery of {kind} for debt {debt.id} failed: {e.message}")
            self._audit(
                debt.id,
                AuditAction.EMAIL_SEND_FAILED,
                kind=kind,
                to_email=to_email,
                error=e.message,
                details=e.details,
            )
            return None

    def _record_outbound(
        self,
        debt: Debt,
        message_type: MessageType,
        subject: str,
        body: str,
        delivery_id: str,
    ) -> None:
        self._store_message(
            debt,
            message_type,
            Direction.OUTBOUND,
            subject,
            body,
            debt.owner_email,
            resolve_recipient(debt.creditor_email, debt.vendor),
            delivery_id,
        )

    async def send(self, debt_id: str) -> SendResult:
        """Deliver the approved letter. Delivery failures leave the debt ``approved``."""
        debt = self.store.get_debt(debt_id)
        ensure_transition(debt.status, DebtStatus.SENT)
        approval = debt.extension.approval
        if approval is None:
            raise ValidationError("Debt has no approved letter", details={"debt_id": debt_id})

        rendered = render_letter(
            approval.finalized_subject, approval.finalized_body, self.get_variables(debt_id)
        )
        if rendered.has_unfilled:
            raise UnfilledVariablesError(debt_id, rendered.unfilled)

        delivery_id = await self._deliver(debt, rendered.subject, rendered.body, "negotiation")
        if delivery_id is None:
            return SendResult(
                debt_id=debt_id,
                delivered=False,
                status=debt.status,
                error="Delivery failed; see audit log",
            )

        delivery = DeliveryRecord(
            delivery_id=delivery_id,
            to_email=resolve_recipient(debt.creditor_email, debt.vendor),
            from_email=debt.owner_email,
            subject=rendered.subject,
        )

        def mutate(current: Debt) -> Dict:
            ensure_transition(current.status, DebtStatus.SENT)
            return {
                "status": DebtStatus.SENT,
                "conversation_count": current.conversation_count + 1,
                "prospected_savings": current.projected_savings,
                "extension": self._extension(current, delivery=delivery),
            }

        debt = self._update_debt(debt_id, mutate)
        self._record_outbound(
            debt, MessageType.NEGOTIATION_SENT, rendered.subject, rendered.body, delivery_id
        )
        self._audit(
            debt_id, AuditAction.EMAIL_SENT, delivery_id=delivery_id, to_email=delivery.to_email
        )
        return SendResult(
            debt_id=debt_id, delivered=True, status=debt.status, delivery_id=delivery_id
        )

    async def submit_manual_response(self, debt_id: str, subject: str, body: str) -> SendResult:
        """Send the user's own reply and wait for the creditor again."""
        debt = self.store.get_debt(debt_id)
        ensure_transition(debt.status, DebtStatus.AWAITING_RESPONSE)

        rendered = render_letter(subject, body, self.get_variables(debt_id))
        if rendered.has_unfilled:
            raise UnfilledVariablesError(debt_id, rendered.unfilled)

        delivery_id = await self._deliver(debt, rendered.subject, rendered.body, "manual_response")
        if delivery_id is None:
            return SendResult(
                debt_id=debt_id,
                delivered=False,
                status=debt.status,
                error="Delivery failed; see audit log",
            )

        def mutate(current: Debt) -> Dict:
            ensure_transition(current.status, DebtStatus.AWAITING_RESPONSE)
            return {
                "status": DebtStatus.AWAITING_RESPONSE,
                "conversation_count": current.conversation_count + 1,
            }

        debt = self._update_debt(debt_id, mutate)
        self._record_outbound(
            debt, MessageType.MANUAL_RESPONSE, rendered.subject, rendered.body, delivery_id
        )
        self._audit(debt_id, AuditAction.MANUAL_RESPONSE_SENT, delivery_id=delivery_id)
        return SendResult(
            debt_id=debt_id, delivered=True, status=debt.status, delivery_id=delivery_id
        )

    def mark_failed(self, debt_id: str, reason: str) -> Debt:
        def mutate(debt: Debt) -> Dict:
            ensure_transition(debt.status, DebtStatus.FAILED)
            return {"status": DebtStatus.FAILED}

        debt = self._update_debt(debt_id, mutate)
        logger.warning(f"Debt {debt_id} marked failed: {reason}")
        self._audit(debt_id, AuditAction.DEBT_FAILED, reason=reason)
        return debt

    def confirm_acceptance(
        self, debt_id: str, terms: Optional[ExtractedTerms] = None, note: Optional[str] = None
    ) -> Debt:
        """
        User confirms that the creditor accepted, from ``requires_manual_review``.

        The outcome is computed from ``terms`` when given, otherwise from the
        terms extracted from the last creditor reply.
        """
        debt = self.store.get_debt(debt_id)
        ensure_transition(debt.status, DebtStatus.ACCEPTED)
        record = debt.extension.last_response
        if record is None:
            raise ValidationError(
                "Debt has no creditor reply to confirm", details={"debt_id": debt_id}
            )

        analysis = record.analysis
        if terms is not None:
            analysis = analysis.model_copy(update={"extracted_terms": terms})

        logger.info(f"Acceptance confirmed by user for debt {debt_id}")
        return self._settle(debt_id, analysis, record, confirmed_by_user=True, note=note)

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    async def preview_analysis(self, request: ResponseClassificationInput) -> ResponseAnalysis:
        """Classify without touching any record."""
        return await self.classifier.run(request)

    async def process_reply(self, debt_id: str, email: InboundEmail) -> InboundEmailResult:
        """
        Register a creditor reply, classify it and act on the classification.

        A reply to a debt under manual review is stored and classified but
        triggers nothing else.
        """
        if not email.body.strip():
            raise ValidationError("Email body is required", details={"field": "body"})

        # Message ids are unique across the store; checked before the debt changes
        if self.store.list_by(MESSAGES, message_id=email.message_id):
            return self._duplicate_result(email.message_id)

        under_review = False

        def register(debt: Debt) -> Dict:
            nonlocal under_review
            if email.message_id in debt.processed_message_ids:
                raise _AlreadyProcessed()
            under_review = debt.status == DebtStatus.REQUIRES_MANUAL_REVIEW
            patch = {
                "conversation_count": debt.conversation_count + 1,
                "processed_message_ids": debt.processed_message_ids + [email.message_id],
            }
            if not under_review:
                if debt.status not in REPLY_STATUSES:
                    raise InvalidTransitionError(
                        debt.status.value,
                        DebtStatus.COUNTER_NEGOTIATING.value,
                        "no negotiation letter is awaiting a reply",
                    )
                ensure_transition(debt.status, DebtStatus.COUNTER_NEGOTIATING)
                patch["status"] = DebtStatus.COUNTER_NEGOTIATING
            return patch

        try:
            debt = self._update_debt(debt_id, register)
        except _AlreadyProcessed:
            return self._duplicate_result(email.message_id, debt_id)

        message = self._store_message(
            debt,
            MessageType.RESPONSE_RECEIVED,
            Direction.INBOUND,
            email.subject,
            email.body,
            email.from_email,
            email.to_email,
            email.message_id,
        )

        analysis: ResponseAnalysis = await self.classifier.run(
            ResponseClassificationInput(
                from_email=email.from_email,
                subject=email.subject,
                body=email.body,
                letter=debt.extension.letter,
                original_amount=debt.amount,
            )
        )
        decision = decide_reply(analysis, self.auto_counter_confidence)
        record = ClassificationRecord(
            analysis=analysis,
            message_id=email.message_id,
            from_email=email.from_email,
            subject=email.subject,
        )

        self.store.update(
            MESSAGES,
            message.id,
            {"classification": analysis, "message_type": decision.message_type},
        )
        self._audit(
            debt_id,
            AuditAction.RESPONSE_ANALYZED,
            message_id=email.message_id,
            decision=decision.action,
            reason=decision.reason,
            **analysis_summary(analysis),
        )

        if under_review:
            debt = self._update_debt(
                debt_id, lambda d: {"extension": self._extension(d, last_response=record)}
            )
            return self._reply_result(debt, analysis)

        if decision.action == "settle":
            debt = self._settle(debt_id, analysis, record)
            return self._reply_result(debt, analysis)

        if decision.action == "auto_counter":
            return await self._auto_counter(debt_id, email, analysis, record)

        debt = self._move(debt_id, decision.next_status, last_response=record)
        if decision.action == "reject":
            self._audit(debt_id, AuditAction.OFFER_REJECTED, reason=decision.reason)
        elif decision.action == "escalate":
            self._audit(debt_id, AuditAction.ESCALATED_FOR_REVIEW, reason=decision.reason)
        return self._reply_result(debt, analysis)

    @staticmethod
    def _reply_result(
        debt: Debt, analysis: ResponseAnalysis, delivery_id: Optional[str] = None
    ) -> InboundEmailResult:
        return InboundEmailResult(
            action="reply_processed",
            debt_id=debt.id,
            status=debt.status,
            analysis=analysis,
            outbound_delivery_id=delivery_id,
        )

    def _move(self, debt_id: str, status: DebtStatus, **records) -> Debt:
        def mutate(debt: Debt) -> Dict:
            ensure_transition(debt.status, status)
            patch = {"status": status}
            if records:
                patch["extension"] = self._extension(debt, **records)
            return patch

        return self._update_debt(debt_id, mutate)

    def _settle(
        self,
        debt_id: str,
        analysis: ResponseAnalysis,
        record: ClassificationRecord,
        **audit_details,
    ) -> Debt:
        def accept(debt: Debt) -> Dict:
            ensure_transition(debt.status, DebtStatus.ACCEPTED)
            savings_basis = (
                debt.prospected_savings
                if debt.prospected_savings is not None
                else debt.projected_savings
            )
            outcome = calculate_financial_outcome(
                debt.amount,
                analysis.extracted_terms,
                savings_basis,
                annual_rate=self.annual_discount_rate,
            )
            return {
                "status": DebtStatus.ACCEPTED,
                "actual_savings": outcome.actual_savings,
                "extension": self._extension(
                    debt,
                    last_response=record,
                    financial_outcome=FinancialOutcomeRecord(**outcome.model_dump()),
                ),
            }

        debt = self._update_debt(debt_id, accept)
        outcome = debt.extension.financial_outcome
        self._audit(
            debt_id,
            AuditAction.OFFER_ACCEPTED,
            accepted_amount=outcome.accepted_amount,
            actual_savings=outcome.actual_savings,
            **audit_details,
        )

        debt = self._move(debt_id, DebtStatus.SETTLED)
        logger.info(
            f"Debt {debt_id} settled: accepted ${outcome.accepted_amount:,.2f}, "
            f"saved ${outcome.actual_savings:,.2f} ({outcome.benefit_type})"
        )
        self._audit(
            debt_id,
            AuditAction.DEBT_SETTLED,
            benefit_type=outcome.benefit_type,
            outcome=outcome.model_dump(mode="json"),
        )
        return debt

    async def _auto_counter(
        self,
        debt_id: str,
        email: InboundEmail,
        analysis: ResponseAnalysis,
        record: ClassificationRecord,
    ) -> InboundEmailResult:
        """Generate, render and deliver a counter letter; escalate if any step cannot finish."""
        debt = self.store.get_debt(debt_id)
        previous = debt.extension.letter
        if previous is None:
            debt = self._move(debt_id, DebtStatus.REQUIRES_MANUAL_REVIEW, last_response=record)
            self._audit(
                debt_id, AuditAction.ESCALATED_FOR_REVIEW, reason="no previous letter on record"
            )
            return self._reply_result(debt, analysis)

        next_round = debt.negotiation_round + 1
        plan: NegotiationPlan = await self.strategy_generator.run(
            self._strategy_request(
                debt,
                next_round,
                CounterOfferContext(
                    previous_letter=previous,
                    creditor_reply=email.body,
                    extracted_terms=analysis.extracted_terms,
                    analysis=analysis,
                ),
            )
        )
        letter = LetterRecord(**plan.model_dump(), negotiation_round=next_round)
        variables = self._sync_variables(debt_id, plan.subject, plan.body)
        rendered = render_letter(plan.subject, plan.body, variables)

        delivery_id = None
        if rendered.has_unfilled:
            reason = f"counter letter has unfilled variables: {rendered.unfilled}"
        else:
            delivery_id = await self._deliver(debt, rendered.subject, rendered.body, "counter_offer")
            reason = "counter letter delivery failed"

        if delivery_id is None:
            debt = self._move(
                debt_id, DebtStatus.REQUIRES_MANUAL_REVIEW, last_response=record, letter=letter
            )
            self._audit(debt_id, AuditAction.ESCALATED_FOR_REVIEW, reason=reason)
            return self._reply_result(debt, analysis)

        delivery = DeliveryRecord(
            delivery_id=delivery_id,
            to_email=resolve_recipient(debt.creditor_email, debt.vendor),
            from_email=debt.owner_email,
            subject=rendered.subject,
        )

        def mutate(current: Debt) -> Dict:
            ensure_transition(current.status, DebtStatus.COUNTER_NEGOTIATING)
            return {
                "status": DebtStatus.COUNTER_NEGOTIATING,
                "negotiation_round": current.negotiation_round + 1,
                "conversation_count": current.conversation_count + 1,
                "projected_savings": plan.projected_savings,
                "prospected_savings": plan.projected_savings,
                "extension": self._extension(
                    current,
                    letter=letter.model_copy(
                        update={"negotiation_round": current.negotiation_round + 1}
                    ),
                    delivery=delivery,
                    last_response=record,
                ),
            }

        debt = self._update_debt(debt_id, mutate)
        self._record_outbound(
            debt, MessageType.NEGOTIATION_SENT, rendered.subject, rendered.body, delivery_id
        )
        logger.info(f"Auto counter-offer sent for debt {debt_id}, round {debt.negotiation_round}")
        self._audit(
            debt_id,
            AuditAction.AUTO_COUNTER_TRIGGERED,
            negotiation_round=debt.negotiation_round,
            strategy=plan.strategy.value,
            confidence=analysis.confidence,
        )
        self._audit(
            debt_id, AuditAction.EMAIL_SENT, delivery_id=delivery_id, to_email=delivery.to_email
        )
        return self._reply_result(debt, analysis, delivery_id)
