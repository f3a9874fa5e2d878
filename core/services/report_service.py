from __future__ import annotations

from typing import Dict, List, NamedTuple

from pydantic import BaseModel, Field

from core.errors import NotFoundError
from core.models.client import Client
from core.models.invoice import FinalInvoice
from core.services.client_service import ClientService
from core.services.invoice_service import InvoiceService


class ClientTaxSummary(BaseModel):
    client_id: str
    client_name: str
    taxid: str = ""
    subtotal_cent: int = 0
    tax_total_cent: int = 0
    total_cent: int = 0


class Etat104Report(BaseModel):
    """Récapitulatif mensuel des ventes par client (déclaration État 104)."""
    year: int
    month: int
    rows: List[ClientTaxSummary] = Field(default_factory=list)
    subtotal_cent: int = 0
    tax_total_cent: int = 0
    total_cent: int = 0


class ClientDebt(NamedTuple):
    client: Client
    total_debt_cent: int
    unpaid_count: int


class ClientDebtDetail(NamedTuple):
    client: Client
    invoices: List[FinalInvoice]
    total_invoiced_cent: int
    total_paid_cent: int
    total_debt_cent: int
    unpaid_count: int


class ReportService:
    def __init__(self, clients: ClientService, invoices: InvoiceService) -> None:
        self.clients = clients
        self.invoices = invoices

    def etat_104(self, year: int, month: int) -> Etat104Report:
        clients = {c.id: c for c in self.clients.list_clients()}
        summaries: Dict[str, ClientTaxSummary] = {}
        for inv in self.invoices.list_invoices():
            if inv.issue_date.year != year or inv.issue_date.month != month:
                continue
            client = clients.get(inv.client_id)
            if client is None:
                continue
            s = summaries.get(client.id)
            if s is None:
                s = summaries[client.id] = ClientTaxSummary(
                    client_id=client.id, client_name=client.name, taxid=client.taxid
                )
            s.subtotal_cent += inv.subtotal_cent
            s.tax_total_cent += inv.tax_total_cent
            s.total_cent += inv.total_cent

        rows = sorted(summaries.values(), key=lambda s: s.client_name.casefold())
        return Etat104Report(
            year=year,
            month=month,
            rows=rows,
            subtotal_cent=sum(r.subtotal_cent for r in rows),
            tax_total_cent=sum(r.tax_total_cent for r in rows),
            total_cent=sum(r.total_cent for r in rows),
        )

    def client_debts(self) -> List[ClientDebt]:
        by_client: Dict[str, List[FinalInvoice]] = {}
        for inv in self.invoices.list_invoices():
            by_client.setdefault(inv.client_id, []).append(inv)

        out: List[ClientDebt] = []
        for c in self.clients.list_clients():
            invs = by_client.get(c.id)
            if not invs:
                continue
            out.append(ClientDebt(
                client=c,
                total_debt_cent=sum(i.client_debt_cent for i in invs),
                unpaid_count=sum(1 for i in invs if i.client_debt_cent > 0),
            ))
        return sorted(out, key=lambda d: d.total_debt_cent, reverse=True)

    def client_debt_detail(self, client_id: str) -> ClientDebtDetail:
        client = self.clients.get_by_id(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        invs = sorted(self.invoices.list_by_client(client_id), key=lambda i: i.issue_date, reverse=True)
        return ClientDebtDetail(
            client=client,
            invoices=invs,
            total_invoiced_cent=sum(i.total_cent for i in invs),
            total_paid_cent=sum(i.amount_paid_cent for i in invs),
            total_debt_cent=sum(i.client_debt_cent for i in invs),
            unpaid_count=sum(1 for i in invs if i.client_debt_cent > 0),
        )
