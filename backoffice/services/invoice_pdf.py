# services/invoice_pdf.py
import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


class InvoicePDFGenerator:
    """Renders a one-page A4 invoice for an approved payment."""

    BRAND_PRIMARY = colors.HexColor("#212121")
    BRAND_GRAY = colors.HexColor("#666666")
    TABLE_HEADER = colors.HexColor("#F0F0F0")

    def __init__(self, institution_name, contact_email, currency_symbol):
        self.institution_name = institution_name
        self.contact_email = contact_email
        self.currency_symbol = currency_symbol

    def render(self, invoice_number, issued_at, payment):
        """
        Build the invoice document.

        Args:
            invoice_number: e.g. 'INV-20250101-0001'
            issued_at: datetime the invoice is generated
            payment: Payment with its enrollment, batch, course and student loaded

        Returns:
            bytes: the PDF document
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            topMargin=0.6 * inch,
            bottomMargin=0.6 * inch,
            title=f"Invoice {invoice_number}",
            author=self.institution_name,
        )

        styles = self._create_styles()
        elements = []
        elements.extend(self._build_header(styles, invoice_number, issued_at))
        elements.append(self._build_billing_info(styles, payment))
        elements.append(Spacer(1, 0.3 * inch))
        elements.append(self._build_line_items(styles, payment))
        elements.append(Spacer(1, 0.4 * inch))
        elements.append(Paragraph(
            f"Questions about this invoice? Contact {self.contact_email}.", styles["Footer"]
        ))

        doc.build(elements)
        return buffer.getvalue()

    def _create_styles(self):
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(
            name="InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=20,
            textColor=self.BRAND_PRIMARY,
            spaceAfter=6,
        ))
        styles.add(ParagraphStyle(
            name="Meta",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.BRAND_GRAY,
        ))
        styles.add(ParagraphStyle(
            name="Footer",
            parent=styles["Normal"],
            fontSize=9,
            textColor=self.BRAND_GRAY,
        ))
        return styles

    def _build_header(self, styles, invoice_number, issued_at):
        return [
            Paragraph(self.institution_name, styles["InvoiceTitle"]),
            Paragraph(f"Invoice No: {invoice_number}", styles["Meta"]),
            Paragraph(f"Date: {issued_at.strftime('%d %B %Y')}", styles["Meta"]),
            Spacer(1, 0.15 * inch),
            HRFlowable(width="100%", thickness=1, color=self.BRAND_PRIMARY),
            Spacer(1, 0.2 * inch),
        ]

    def _build_billing_info(self, styles, payment):
        enrollment = payment.enrollment
        student = payment.student
        data = [
            ["Billed To:", student.name if student else payment.student_id],
            ["Email:", student.email if student else ""],
            ["Course:", enrollment.batch.course.title],
            ["Batch:", enrollment.batch.name],
            ["Transaction ID:", payment.transaction_id],
            ["Payment Method:", payment.payment_method or "-"],
        ]
        table = Table(data, colWidths=[1.6 * inch, 4.6 * inch])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]))
        return table

    def _build_line_items(self, styles, payment):
        amount = f"{self.currency_symbol} {payment.amount:,.2f}"
        data = [
            ["Description", "Amount"],
            [f"Course fee: {payment.enrollment.batch.course.title}", amount],
            ["Total", amount],
        ]
        table = Table(data, colWidths=[4.7 * inch, 1.5 * inch])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), self.TABLE_HEADER),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("LINEABOVE", (0, -1), (-1, -1), 1, self.BRAND_PRIMARY),
            ("GRID", (0, 0), (-1, -2), 0.5, colors.lightgrey),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        return table
