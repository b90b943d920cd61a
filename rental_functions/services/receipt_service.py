from fpdf import FPDF
from fpdf.enums import XPos, YPos
from datetime import datetime
import re
import unicodedata

from rental_functions.constants import PAYMENT_METHOD_LABELS, PAYMENT_TYPE_LABELS
from rental_functions.schemas import Property, RentPayment, Tenant
from rental_functions.utils.date_utils import format_date, month_name
from rental_functions.utils.money_utils import format_currency

PRIMARY_COLOR = (59, 130, 246)
GRAY_COLOR = (107, 114, 128)

# The core PDF fonts only cover Latin-1
TYPOGRAPHIC_REPLACEMENTS = str.maketrans({
    "\u2013": "-", "\u2014": "-", "\u2018": "'", "\u2019": "'",
    "\u201c": "\"", "\u201d": "\"", "\u2026": "...", "\u00a0": " ",
})


def pdf_text(value) -> str:
    """Makes free text printable with the built-in fonts; unknown characters become '?'."""
    text = str(value) if value is not None else ''
    return text.translate(TYPOGRAPHIC_REPLACEMENTS).encode('latin-1', 'replace').decode('latin-1')


def payment_method_label(method) -> str:
    return PAYMENT_METHOD_LABELS.get(method, method or '-')


def payment_type_label(payment_type) -> str:
    return PAYMENT_TYPE_LABELS.get(payment_type, payment_type or '-')


def receipt_reference(payment: RentPayment) -> str:
    return payment.id[:8].upper()


def receipt_file_name(payment: RentPayment, tenant: Tenant) -> str:
    """ASCII download name, e.g. Recibo_Juan_Mar-2024.pdf."""
    ascii_name = unicodedata.normalize('NFKD', tenant.name).encode('ascii', 'ignore').decode('ascii')
    first_name = (re.sub(r'[^A-Za-z0-9]+', ' ', ascii_name).split() or ['Inquilino'])[0]
    return f"Recibo_{first_name}_{month_name(payment.payment_month.month)[:3]}-{payment.payment_month.year}.pdf"


def generate_receipt_pdf(payment: RentPayment, prop: Property, tenant: Tenant, issued_at: datetime = None) -> bytes:
    """
    Generates a rent payment receipt PDF.
    """
    issued_at = issued_at or datetime.now()
    pdf = FPDF()
    # Single-page layout with an absolutely positioned footer
    pdf.set_auto_page_break(auto=False)
    pdf.add_page()

    # Title
    pdf.set_font("helvetica", "B", 22)
    pdf.set_text_color(*PRIMARY_COLOR)
    pdf.cell(0, 12, "RECIBO DE PAGO", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("helvetica", size=10)
    pdf.set_text_color(*GRAY_COLOR)
    pdf.cell(0, 5, f"Fecha de Emisión: {issued_at.strftime('%d/%m/%Y %H:%M')}", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.cell(0, 5, f"No. Referencia: {pdf_text(receipt_reference(payment))}", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    # Separator
    pdf.set_draw_color(200, 200, 200)
    pdf.line(20, 38, 190, 38)

    # Tenant (left) and property (right)
    pdf.set_text_color(0, 0, 0)
    pdf.set_xy(20, 45)
    pdf.set_font("helvetica", "B", 12)
    pdf.cell(85, 7, "Recibido de:", new_x=XPos.LEFT, new_y=YPos.NEXT)
    pdf.set_font("helvetica", size=12)
    pdf.cell(85, 7, pdf_text(tenant.name), new_x=XPos.LEFT, new_y=YPos.NEXT)
    pdf.cell(85, 7, f"Cédula: {pdf_text(tenant.identity_number or 'N/A')}")

    pdf.set_xy(110, 45)
    pdf.set_font("helvetica", "B", 12)
    pdf.cell(80, 7, "Por concepto de alquiler:", new_x=XPos.LEFT, new_y=YPos.NEXT)
    pdf.set_font("helvetica", size=12)
    pdf.cell(80, 7, pdf_text(prop.name), new_x=XPos.LEFT, new_y=YPos.NEXT)
    pdf.multi_cell(80, 7, pdf_text(prop.address))

    # Payment details table
    rows = [
        ("Mes Pagado", f"{month_name(payment.payment_month.month)} {payment.payment_month.year}".upper()),
        ("Fecha de Pago", format_date(payment.payment_date) or '-'),
        ("Método de Pago", pdf_text(payment_method_label(payment.payment_method))),
        ("Tipo de Pago", pdf_text(payment_type_label(payment.payment_type))),
        ("Referencia / Nota", pdf_text(payment.reference or payment.notes or '-')),
    ]
    pdf.set_xy(20, 85)
    pdf.set_font("helvetica", "B", 11)
    pdf.set_fill_color(*PRIMARY_COLOR)
    pdf.set_text_color(255, 255, 255)
    pdf.cell(60, 9, "Concepto", border=1, fill=True)
    pdf.cell(110, 9, "Detalle", border=1, fill=True, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("helvetica", size=11)
    pdf.set_text_color(0, 0, 0)
    pdf.set_fill_color(245, 247, 250)
    for index, (concept, detail) in enumerate(rows):
        pdf.set_x(20)
        striped = index % 2 == 1
        pdf.cell(60, 9, concept, border=1, fill=striped)
        pdf.cell(110, 9, detail, border=1, fill=striped, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    # Totals
    final_y = pdf.get_y() + 10
    pdf.set_fill_color(245, 247, 250)
    pdf.rect(120, final_y, 70, 25, style="F")

    pdf.set_xy(125, final_y + 3)
    pdf.set_font("helvetica", "B", 14)
    pdf.cell(60, 7, "Total Pagado:")
    pdf.set_xy(125, final_y + 12)
    pdf.set_font("helvetica", "B", 16)
    pdf.set_text_color(*PRIMARY_COLOR)
    pdf.cell(60, 8, pdf_text(format_currency(payment.amount_paid)), align="R")

    if payment.remaining_balance > 0:
        pdf.set_xy(125, final_y + 26)
        pdf.set_font("helvetica", size=10)
        pdf.set_text_color(220, 38, 38)
        pdf.cell(60, 6, pdf_text(f"Pendiente: {format_currency(payment.remaining_balance)}"), align="R")

    # Footer
    pdf.set_xy(10, 275)
    pdf.set_font("helvetica", size=9)
    pdf.set_text_color(150, 150, 150)
    pdf.cell(0, 5, "Este documento es un comprobante de pago válido emitido por el sistema.", align="C")

    return bytes(pdf.output())
