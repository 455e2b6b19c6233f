# balances/tests/test_balances.py

from datetime import date
from decimal import Decimal

from django.test import TestCase

from balances.services.balance_service import (
    balances_total,
    compute_balances,
    counterparty_statement,
)
from documents.models import CommercialDocument
from documents.services.document_service import cancel_document
from documents.services.exceptions import NotFoundError
from payments.models import Payment
from payments.services.allocation import apply_payment
from tenants.tests.factories import (
    make_customer,
    make_document,
    make_invoice,
    make_supplier,
    make_tenant,
    service_line,
)

Kind = CommercialDocument.Kind
CUSTOMER = Payment.Direction.CUSTOMER
SUPPLIER = Payment.Direction.SUPPLIER

REF = date(2024, 4, 1)


class CustomerBalanceTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.alpha = make_customer(self.tenant, name="Alpha")
        self.beta = make_customer(self.tenant, name="Beta")
        self.gamma = make_customer(self.tenant, name="Gamma")

    def _by_id(self, balances):
        return {b.counterparty_id: b for b in balances}

    def test_every_customer_is_listed(self):
        make_invoice(self.tenant, self.alpha, "100", date=date(2024, 3, 1))

        balances = compute_balances(tenant=self.tenant, direction=CUSTOMER, reference_date=REF)

        self.assertEqual(len(balances), 3)
        by_id = self._by_id(balances)
        self.assertEqual(by_id[str(self.alpha.id)].balance_due, Decimal("100.00"))
        self.assertEqual(by_id[str(self.beta.id)].balance_due, Decimal("0.00"))
        self.assertEqual(by_id[str(self.gamma.id)].balance_due, Decimal("0.00"))

    def test_archived_customers_without_documents_are_left_out(self):
        make_customer(self.tenant, name="Gone", is_archived=True)

        balances = compute_balances(tenant=self.tenant, direction=CUSTOMER, reference_date=REF)

        self.assertEqual(len(balances), 3)

    def test_aging_and_open_invoices(self):
        # due 2024-01-31 (30 days default), 61 days late on REF
        old = make_invoice(self.tenant, self.alpha, "300", date=date(2024, 1, 1))
        # due 2024-03-31, 1 day late
        make_invoice(self.tenant, self.alpha, "200", date=date(2024, 3, 1))
        apply_payment(
            tenant=self.tenant,
            direction=CUSTOMER,
            counterparty_id=self.alpha.id,
            lines=[{"invoice_id": old.id, "amount": Decimal("100")}],
        )

        balance = compute_balances(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=self.alpha.id, reference_date=REF
        )[0]

        self.assertEqual(balance.balance_due, Decimal("400.00"))
        self.assertEqual(balance.buckets["61-90"], Decimal("200.00"))
        self.assertEqual(balance.buckets["0-30"], Decimal("200.00"))
        self.assertEqual(len(balance.open_invoices), 2)
        oldest = [inv for inv in balance.open_invoices if inv.invoice_id == str(old.id)][0]
        self.assertEqual(oldest.paid, Decimal("100.00"))
        self.assertEqual(oldest.remaining, Decimal("200.00"))
        self.assertEqual(oldest.days_past_due, 61)

    def test_fully_paid_invoices_are_not_listed(self):
        invoice = make_invoice(self.tenant, self.alpha, "100", date=date(2024, 3, 1))
        apply_payment(
            tenant=self.tenant,
            direction=CUSTOMER,
            counterparty_id=self.alpha.id,
            lines=[{"invoice_id": invoice.id, "amount": Decimal("100")}],
        )

        balance = compute_balances(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=self.alpha.id, reference_date=REF
        )[0]

        self.assertEqual(balance.balance_due, Decimal("0.00"))
        self.assertEqual(balance.open_invoices, [])

    def test_cancelled_invoices_do_not_count(self):
        invoice = make_invoice(self.tenant, self.alpha, "100", date=date(2024, 3, 1))
        cancel_document(tenant=self.tenant, document_id=invoice.id)

        balance = compute_balances(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=self.alpha.id, reference_date=REF
        )[0]
        self.assertEqual(balance.balance_due, Decimal("0.00"))

    def test_credit_notes_are_subtracted_but_not_aged(self):
        make_invoice(self.tenant, self.alpha, "500", date=date(2024, 1, 1))
        make_document(
            self.tenant,
            kind=Kind.CREDIT_NOTE,
            customer=self.alpha,
            lines=[service_line("120", quantity="-1")],
            date=date(2024, 1, 20),
        )
        make_document(
            self.tenant,
            kind=Kind.CREDIT_NOTE,
            customer=self.beta,
            lines=[service_line("40", quantity="-1")],
        )

        by_id = self._by_id(compute_balances(tenant=self.tenant, direction=CUSTOMER, reference_date=REF))

        alpha = by_id[str(self.alpha.id)]
        self.assertEqual(alpha.balance_due, Decimal("380.00"))
        self.assertEqual(alpha.credit_notes_total, Decimal("120.00"))
        self.assertEqual(alpha.buckets["61-90"], Decimal("500.00"))
        self.assertEqual(sum(alpha.buckets.values()), Decimal("500.00"))

        beta = by_id[str(self.beta.id)]
        self.assertEqual(beta.balance_due, Decimal("-40.00"))

    def test_sort_order_and_grand_total(self):
        make_invoice(self.tenant, self.alpha, "100", date=date(2024, 3, 1))
        make_invoice(self.tenant, self.beta, "300", date=date(2024, 3, 1))
        delta = make_customer(self.tenant, name="Delta")
        epsilon = make_customer(self.tenant, name="Epsilon")
        make_document(self.tenant, kind=Kind.CREDIT_NOTE, customer=delta, lines=[service_line("-50")])
        make_document(self.tenant, kind=Kind.CREDIT_NOTE, customer=epsilon, lines=[service_line("-10")])

        balances = compute_balances(tenant=self.tenant, direction=CUSTOMER, reference_date=REF)

        self.assertEqual(
            [b.name for b in balances],
            ["Beta", "Alpha", "Gamma", "Epsilon", "Delta"],
        )
        self.assertEqual(balances_total(balances), Decimal("400.00"))

    def test_advance_is_informational_only(self):
        invoice = make_invoice(self.tenant, self.alpha, "1000", date=date(2024, 3, 1))
        apply_payment(
            tenant=self.tenant,
            direction=CUSTOMER,
            counterparty_id=self.alpha.id,
            lines=[{"on_account": True, "amount": Decimal("500")}],
        )
        apply_payment(
            tenant=self.tenant,
            direction=CUSTOMER,
            counterparty_id=self.alpha.id,
            advance_used=Decimal("200"),
            lines=[{"invoice_id": invoice.id, "amount": Decimal("200")}],
        )

        balance = compute_balances(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=self.alpha.id, reference_date=REF
        )[0]

        self.assertEqual(balance.net_advance_balance, Decimal("300.00"))
        self.assertEqual(balance.open_invoices[0].remaining, Decimal("800.00"))
        # the 300 of remaining credit is NOT taken off a second time
        self.assertEqual(balance.balance_due, Decimal("800.00"))

    def test_archived_customer_is_returned_when_asked_for(self):
        gone = make_customer(self.tenant, name="Gone")
        make_invoice(self.tenant, gone, "70", date=date(2024, 3, 1))
        gone.is_archived = True
        gone.save()

        balance = compute_balances(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=gone.id, reference_date=REF
        )[0]
        self.assertEqual(balance.balance_due, Decimal("70.00"))

        # and still appears in the full report because it carries documents
        names = [b.name for b in compute_balances(tenant=self.tenant, direction=CUSTOMER, reference_date=REF)]
        self.assertIn("Gone", names)

    def test_unknown_counterparty(self):
        with self.assertRaises(NotFoundError):
            compute_balances(tenant=self.tenant, direction=CUSTOMER, counterparty_id=make_supplier(self.tenant).id)

    def test_statement_running_balance(self):
        invoice = make_invoice(self.tenant, self.alpha, "1000", date=date(2024, 1, 10))
        apply_payment(
            tenant=self.tenant,
            direction=CUSTOMER,
            counterparty_id=self.alpha.id,
            payment_date=date(2024, 2, 1),
            lines=[{"invoice_id": invoice.id, "amount": Decimal("400")}],
        )

        statement = counterparty_statement(
            tenant=self.tenant, direction=CUSTOMER, counterparty_id=self.alpha.id, reference_date=REF
        )

        self.assertEqual([e["balance"] for e in statement["entries"]], ["1000.00", "600.00"])
        self.assertEqual(statement["closing_balance"], "600.00")


class SupplierBalanceTests(TestCase):
    def test_purchase_invoices_feed_supplier_balances(self):
        tenant = make_tenant()
        supplier = make_supplier(tenant, name="Mill")
        make_supplier(tenant, name="Quarry")
        make_document(
            tenant,
            kind=Kind.PURCHASE_INVOICE,
            supplier=supplier,
            lines=[service_line("250")],
            date=date(2024, 3, 1),
        )

        balances = compute_balances(tenant=tenant, direction=SUPPLIER, reference_date=REF)

        self.assertEqual([b.name for b in balances], ["Mill", "Quarry"])
        self.assertEqual(balances[0].balance_due, Decimal("250.00"))
        self.assertEqual(balances_total(balances), Decimal("250.00"))
