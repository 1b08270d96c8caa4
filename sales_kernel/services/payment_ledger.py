"""
PaymentLedger -- append-only payments that drive invoice status.

Responsibility:
    Records payments against issued invoices and rewrites the invoice's
    paid amount, balance and status from the complete payment history after
    every append.

Architecture position:
    Kernel > Services.  The only writer of ``part_paid`` and ``paid``.

Invariants enforced:
    - Payments are appended, never edited or removed.
    - 0 < amount <= balance at the moment of recording, with the balance
      recomputed from history under the invoice row lock.
    - Status is a pure function of (total, payment history); the invoice
      row only caches it.
    - Ledger positions are 1, 2, 3, ... per invoice.

Failure modes:
    - InvalidInputError: non-positive amount, float amount, more decimal
      places than the currency allows, unknown method.
    - InvalidTransitionError: invoice is draft, paid or void.
    - ExceedsBalanceError: amount larger than the outstanding balance.
    - InvoiceNotFoundError for unknown ids.
"""

from decimal import Decimal
from uuid import UUID

from sales_kernel.db.types import currency_decimal_places, round_money
from sales_kernel.domain.dtos import InvoiceStatus, PaymentMethod, PaymentRecord
from sales_kernel.domain.pricing import to_decimal
from sales_kernel.domain.settlement import Settlement, derive_settlement
from sales_kernel.domain.workflow import INVOICE_WORKFLOW
from sales_kernel.exceptions import (
    ExceedsBalanceError,
    InvalidInputError,
    InvalidTransitionError,
    SalesKernelError,
)
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.models import Invoice, Payment
from sales_kernel.services.base import BaseService

logger = get_logger("services.payment_ledger")

PAYABLE_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PART_PAID)


class PaymentLedger(BaseService):
    """Appends payments and settles invoices."""

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal | str | int,
        method: PaymentMethod | str,
        reference: str,
        actor_id: UUID,
    ) -> PaymentRecord:
        """
        Append a payment and recompute the invoice's status.

        Postconditions:
            - paid_amount == sum of all payments; balance == total - paid_amount.
            - status is paid when balance == 0, otherwise part_paid.

        Raises:
            InvalidInputError: Malformed amount or method.
            InvalidTransitionError: Invoice does not accept payments.
            ExceedsBalanceError: ``amount`` is larger than the balance.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            try:
                value = to_decimal(amount, "amount")
                if value <= 0:
                    raise InvalidInputError("amount", amount, "payment amount must be positive")
                payment_method = self._validate_method(method)

                with self.atomic():
                    invoice = self.gateway.get_invoice(invoice_id, for_update=True)
                    if invoice.status not in PAYABLE_STATUSES:
                        logger.warning(
                            "payment_rejected_invoice_not_payable",
                            extra={"status": invoice.status},
                        )
                        raise InvalidTransitionError(
                            entity_type=INVOICE_WORKFLOW.name,
                            entity_id=str(invoice.id),
                            from_state=invoice.status,
                            action="record_payment",
                        )

                    places = currency_decimal_places(invoice.currency)
                    if round_money(value, places) != value:
                        raise InvalidInputError(
                            "amount", amount,
                            f"{invoice.currency} amounts have at most {places} decimal places",
                        )

                    history = self.gateway.list_payments_for_invoice(invoice.id)
                    before = derive_settlement(
                        invoice.total, [p.to_entry() for p in history], invoice.status
                    )
                    if value > before.balance:
                        raise ExceedsBalanceError(
                            invoice_id=str(invoice.id),
                            amount=value,
                            balance=before.balance,
                        )

                    payment = self.gateway.create_payment(
                        Payment(
                            invoice_id=invoice.id,
                            amount=value,
                            method=payment_method,
                            reference=reference or "",
                            recorded_at=self.clock.now(),
                            ledger_position=max((p.ledger_position for p in history), default=0) + 1,
                            created_by_id=actor_id,
                        )
                    )
                    settlement = self._apply_settlement(invoice, history + [payment], actor_id)
            except SalesKernelError as exc:
                logger.warning(
                    "payment_rejected",
                    extra={
                        "amount": str(amount),
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                raise

            logger.info(
                "payment_recorded",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "amount": value,
                    "method": payment_method,
                    "ledger_position": payment.ledger_position,
                    "paid_amount": settlement.paid_amount,
                    "balance": settlement.balance,
                    "status": settlement.status,
                },
            )
            return payment.to_dto()

    def payments_for_invoice(self, invoice_id: UUID) -> list[PaymentRecord]:
        """Payment history in ledger order."""
        self.gateway.get_invoice(invoice_id)
        return [p.to_dto() for p in self.gateway.list_payments_for_invoice(invoice_id)]

    def replay(self, invoice_id: UUID, actor_id: UUID) -> Settlement:
        """
        Recompute and rewrite an invoice's cached status from its history.

        Returns:
            The settlement derived from the full payment history.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            with self.atomic():
                invoice = self.gateway.get_invoice(invoice_id, for_update=True)
                history = self.gateway.list_payments_for_invoice(invoice.id)
                if invoice.status not in (*PAYABLE_STATUSES, InvoiceStatus.PAID):
                    return derive_settlement(
                        invoice.total, [p.to_entry() for p in history], invoice.status
                    )
                settlement = self._apply_settlement(invoice, history, actor_id)
            logger.info(
                "invoice_settlement_replayed",
                extra={
                    "payment_count": len(history),
                    "balance": settlement.balance,
                    "status": settlement.status,
                },
            )
            return settlement

    def _apply_settlement(
        self,
        invoice: Invoice,
        payments: list[Payment],
        actor_id: UUID,
    ) -> Settlement:
        settlement = derive_settlement(
            invoice.total, [p.to_entry() for p in payments], invoice.status
        )
        if settlement.status != invoice.status:
            INVOICE_WORKFLOW.require(
                invoice.id, invoice.status, "settle", settlement.status, automatic=True
            )
        invoice.status = settlement.status
        invoice.paid_amount = settlement.paid_amount
        invoice.balance = settlement.balance
        invoice.updated_by_id = actor_id
        self.gateway.save_invoice(invoice)
        return settlement

    @staticmethod
    def _validate_method(method: PaymentMethod | str) -> PaymentMethod:
        try:
            return PaymentMethod(method)
        except ValueError as exc:
            raise InvalidInputError(
                "method", method, f"must be one of {[m.value for m in PaymentMethod]}"
            ) from exc
