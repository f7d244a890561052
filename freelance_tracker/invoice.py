"""HTML invoices for one week of tracked time."""
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .aggregation import WeekBucket
from .utils import format_date, format_money, ms_to_hours

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DEFAULT_CLIENT_NAME = "Client Name"
DEFAULT_CLIENT_EMAIL = "client@example.com"
DEFAULT_INVOICE_NUMBER = "INV-001"

env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass
class ClientMeta:
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.client_name or DEFAULT_CLIENT_NAME

    @property
    def display_email(self) -> str:
        return self.client_email or DEFAULT_CLIENT_EMAIL

    @property
    def display_number(self) -> str:
        return self.invoice_number or DEFAULT_INVOICE_NUMBER


def invoice_filename(client_meta: ClientMeta) -> str:
    return f"invoice-{client_meta.display_number}.html"


def render_invoice(bucket: WeekBucket, client_meta: ClientMeta, issued_on: Optional[date] = None) -> str:
    """Render a self-contained invoice document.

    Line items follow the order in which projects first appear in the
    week. Apart from the invoice date, which defaults to today, the output
    depends only on the arguments.
    """
    if issued_on is None:
        issued_on = date.today()

    items = [
        {
            "name": sub.name,
            "hours": f"{ms_to_hours(sub.duration):.2f}",
            "rate": format_money(sub.hourly_rate),
            "amount": format_money(sub.earnings),
        }
        for sub in bucket.projects.values()
    ]

    template = env.get_template("invoice.html")
    return template.render(
        invoice_number=client_meta.display_number,
        client_name=client_meta.display_name,
        client_email=client_meta.display_email,
        period_start=format_date(bucket.start_date),
        period_end=format_date(bucket.end_date),
        issued_on=format_date(issued_on),
        items=items,
        total=format_money(bucket.total_earnings),
        notes=client_meta.notes,
    )
