"""
PDF rendering of a persisted invoice.

The renderer receives an ``InvoiceRead`` snapshot and only lays it out: all
amounts and the status come from the snapshot as stored.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from fastapi.logger import logger
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT, TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Flowable, HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle,
)

from invoicedesk.common.exceptions import PdfRenderError
from invoicedesk.common.utils.datetime import get_current_datetime
from invoicedesk.invoices.constants import PaymentType
from invoicedesk.invoices.pdf.assets import AssetFetcher
from invoicedesk.invoices.pdf.config import PdfConfig
from invoicedesk.invoices.schemas.invoice import InvoiceRead

BRAND_BLUE = colors.HexColor("#2E3B82")
BRAND_GREEN = colors.HexColor("#4CAF50")
PENDING_ORANGE = colors.HexColor("#FF9800")
PENDING_RED = colors.HexColor("#FF5722")
MUTED_GREY = colors.HexColor("#666666")


def _text(value: str) -> str:
    """Escape user text for Paragraph markup, keeping line breaks"""
    return escape(value or "").replace("\n", "<br/>")


def _date(value) -> str:
    return value.strftime("%d/%m/%Y")


class InvoicePdfRenderer:
    def __init__(self, config: Optional[PdfConfig] = None, fetcher: Optional[AssetFetcher] = None):
        self.config = config or PdfConfig()
        self.fetcher = fetcher or AssetFetcher(self.config)
        self.styles = self._build_styles()

    def render(self, invoice: InvoiceRead, generated_at: Optional[datetime] = None) -> bytes:
        """Lay out the invoice on A4 and return the PDF bytes"""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=A4,
            leftMargin=15 * mm, rightMargin=15 * mm, topMargin=15 * mm, bottomMargin=15 * mm,
            title=f"Invoice {invoice.invoice_number}", author=self.config.company_name,
        )
        elements: List[Flowable] = []
        elements.extend(self._header(invoice, doc.width))
        elements.extend(self._bill_to(invoice))
        elements.append(self._status_banner(invoice, doc.width))
        elements.append(Spacer(1, 6 * mm))
        elements.append(self._items_table(invoice, doc.width))
        elements.append(Spacer(1, 6 * mm))
        elements.append(self._summary_table(invoice, doc.width))
        if invoice.notes.strip():
            elements.append(Spacer(1, 6 * mm))
            elements.append(Paragraph("<b>Notes:</b>", self.styles["Normal"]))
            elements.append(Paragraph(_text(invoice.notes), self.styles["Normal"]))
        elements.append(Spacer(1, 12 * mm))
        elements.append(self._footer(generated_at or get_current_datetime(), doc.width))

        doc.build(elements)
        return buffer.getvalue()

    def _build_styles(self):
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle("Company", parent=styles["Normal"], fontName="Helvetica-Bold",
                                  fontSize=16, leading=20, textColor=BRAND_BLUE))
        styles.add(ParagraphStyle("Muted", parent=styles["Normal"], fontSize=8.5, leading=11,
                                  textColor=MUTED_GREY))
        styles.add(ParagraphStyle("InvoiceNumber", parent=styles["Normal"], fontName="Helvetica-Bold",
                                  fontSize=15, leading=19, textColor=BRAND_BLUE, alignment=TA_RIGHT))
        styles.add(ParagraphStyle("MutedRight", parent=styles["Muted"], alignment=TA_RIGHT))
        styles.add(ParagraphStyle("SectionTitle", parent=styles["Normal"], fontName="Helvetica-Bold",
                                  fontSize=11, leading=14, textColor=BRAND_BLUE, spaceAfter=3))
        styles.add(ParagraphStyle("Banner", parent=styles["Normal"], fontName="Helvetica-Bold",
                                  fontSize=13, leading=16, alignment=TA_CENTER))
        styles.add(ParagraphStyle("Cell", parent=styles["Normal"], fontSize=9, leading=11))
        styles.add(ParagraphStyle("CellRight", parent=styles["Cell"], alignment=TA_RIGHT))
        return styles

    def _money(self, amount: float) -> str:
        return f"{self.config.currency_symbol}{amount:,.2f}"

    def _header(self, invoice: InvoiceRead, width: float) -> List[Flowable]:
        logo = self.fetcher.load_image(self.config.logo, "LOGO", 60 * mm, 20 * mm)
        company = [
            logo,
            Spacer(1, 2 * mm),
            Paragraph(_text(self.config.company_name), self.styles["Company"]),
            Paragraph(f"{_text(self.config.company_address)}<br/>"
                      f"{_text(self.config.company_website)}, {_text(self.config.company_phone)}",
                      self.styles["Muted"]),
        ]
        dates = f"Invoice Date: {_date(invoice.invoice_date)}"
        if invoice.payment_type == PaymentType.INITIAL_PAYMENT and invoice.due_date:
            dates += f"<br/>Due Date: {_date(invoice.due_date)}"
        details = [
            Paragraph(f"INVOICE # {_text(invoice.invoice_number)}", self.styles["InvoiceNumber"]),
            Paragraph(dates, self.styles["MutedRight"]),
        ]
        table = Table([[company, details]], colWidths=[width * 0.6, width * 0.4])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return [table, Spacer(1, 3 * mm),
                HRFlowable(width="100%", thickness=2.5, color=BRAND_GREEN), Spacer(1, 6 * mm)]

    def _bill_to(self, invoice: InvoiceRead) -> List[Flowable]:
        lines = [f"<b>{_text(invoice.client_name)}</b>", f"Phone: {_text(invoice.client_phone)}"]
        if invoice.client_email.strip():
            lines.append(f"Email: {_text(invoice.client_email)}")
        if invoice.client_address.strip():
            lines.append(_text(invoice.client_address))
        return [
            Paragraph("Bill To:", self.styles["SectionTitle"]),
            Paragraph("<br/>".join(lines), self.styles["Normal"]),
            Spacer(1, 6 * mm),
        ]

    def _status_banner(self, invoice: InvoiceRead, width: float) -> Table:
        if invoice.payment_type == PaymentType.FULL_PAYMENT:
            label, color = "FULL PAYMENT - PAID", BRAND_GREEN
        elif invoice.pending_amount > 0:
            label, color = "INITIAL PAYMENT - PENDING BALANCE", PENDING_ORANGE
        else:
            label, color = "INITIAL PAYMENT - COMPLETED", BRAND_GREEN
        style = ParagraphStyle("BannerColored", parent=self.styles["Banner"], textColor=color)
        banner = Table([[Paragraph(label, style)]], colWidths=[width])
        banner.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#E8F5E8")),
            ("BOX", (0, 0), (-1, -1), 1.5, BRAND_GREEN),
            ("TOPPADDING", (0, 0), (-1, -1), 8),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ]))
        return banner

    def _items_table(self, invoice: InvoiceRead, width: float) -> Table:
        data = [["Service", "Description", "Amount"]]
        for item in invoice.items:
            service = item.description.split(" ")[0] or "Service"
            data.append([
                Paragraph(f"<b>{_text(service)}</b>", self.styles["Cell"]),
                Paragraph(_text(item.description), self.styles["Cell"]),
                Paragraph(f"<b>{self._money(item.rate * item.quantity)}</b>", self.styles["CellRight"]),
            ])
        table = Table(data, colWidths=[width * 0.25, width * 0.5, width * 0.25], repeatRows=1)
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("GRID", (0, 0), (-1, -1), 0.75, colors.HexColor("#333333")),
            ("BOX", (0, 0), (-1, -1), 1.5, colors.HexColor("#333333")),
            ("ALIGN", (2, 0), (2, 0), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        return table

    def _summary_table(self, invoice: InvoiceRead, width: float) -> Table:
        total_project_value = invoice.collected_amount + invoice.pending_amount
        rows = [["Amount Collected", self._money(invoice.collected_amount)]]
        styles = [("TEXTCOLOR", (1, 0), (1, 0), BRAND_GREEN)]
        if invoice.pending_amount > 0:
            rows.append(["Pending Amount", self._money(invoice.pending_amount)])
            styles.append(("TEXTCOLOR", (1, len(rows) - 1), (1, len(rows) - 1), PENDING_RED))
        if invoice.tax_percentage > 0:
            tax = total_project_value * invoice.tax_percentage / 100
            rows.append([f"Tax ({invoice.tax_percentage:g}%)", self._money(tax)])
        rows.append(["Total Project Value", self._money(total_project_value)])

        last = len(rows) - 1
        table = Table(rows, colWidths=[width * 0.7, width * 0.3])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#F8F9FA")),
            ("LINEBEFORE", (0, 0), (0, -1), 3, BRAND_GREEN),
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTNAME", (1, 0), (1, -1), "Helvetica-Bold"),
            ("TEXTCOLOR", (0, 0), (0, last - 1), MUTED_GREY),
            ("LINEABOVE", (0, last), (-1, last), 1.5, BRAND_GREEN),
            ("FONTNAME", (0, last), (-1, last), "Helvetica-Bold"),
            ("FONTSIZE", (0, last), (-1, last), 12),
            ("TEXTCOLOR", (0, last), (-1, last), BRAND_BLUE),
            *styles,
        ]))
        return table

    def _footer(self, generated_at: datetime, width: float) -> Table:
        left = Paragraph(
            f"<b>Thank you for choosing {_text(self.config.company_name)}!</b><br/>"
            f"Generated on {generated_at.strftime('%d/%m/%Y at %H:%M')}<br/>"
            f"For support: {_text(self.config.company_phone)} | {_text(self.config.company_website)}",
            self.styles["Muted"])
        signature = self.fetcher.load_image(self.config.signature, "SIGNATURE", 40 * mm, 14 * mm)
        right = [signature, Paragraph(f"<b>{_text(self.config.signatory)}</b>", self.styles["MutedRight"])]
        table = Table([[left, right]], colWidths=[width * 0.65, width * 0.35])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "BOTTOM"),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ("LINEABOVE", (0, 0), (-1, 0), 1.5, colors.HexColor("#EEEEEE")),
            ("TOPPADDING", (0, 0), (-1, -1), 10),
        ]))
        return table


def render_invoice_pdf(invoice: InvoiceRead, renderer: Optional[InvoicePdfRenderer] = None,
                       timeout: Optional[float] = None) -> bytes:
    """
    Render the invoice with an upper bound on wall time.

    Raises:
        PdfRenderError: rendering failed or did not finish within the timeout
    """
    renderer = renderer or InvoicePdfRenderer()
    timeout = timeout or renderer.config.render_timeout_seconds
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="invoice-pdf")
    future = executor.submit(renderer.render, invoice)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise PdfRenderError(
            f"Rendering invoice {invoice.invoice_number} timed out after {timeout}s") from e
    except Exception as e:
        logger.error(f"Rendering invoice {invoice.invoice_number} failed: {e}")
        raise PdfRenderError(f"Rendering invoice {invoice.invoice_number} failed: {e}") from e
    finally:
        executor.shutdown(wait=False)
