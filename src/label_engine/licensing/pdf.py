"""License contract PDF (reportlab platypus)."""

import logging
from datetime import datetime, timezone
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Image,
    KeepTogether,
    ListFlowable,
    ListItem,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from label_engine.common.exceptions import RenderError
from label_engine.common.models import as_utc
from label_engine.licensing.models import IssuedLicenseModel
from label_engine.licensing.templates import format_limit
from label_engine.ticketing.generator import render_qr_png

logger = logging.getLogger(__name__)

ACCENT = colors.HexColor("#ff003c")
MUTED = colors.HexColor("#666666")

GRANTED_RIGHTS = [
    "Grabar y producir composiciones musicales",
    "Distribuir el contenido en plataformas digitales",
    "Monetizar el contenido según los límites establecidos",
    "Realizar actuaciones con el contenido creado",
]


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("title", parent=base["Title"], textColor=ACCENT, fontSize=22),
        "subtitle": ParagraphStyle("subtitle", parent=base["Normal"], alignment=TA_CENTER, fontSize=12),
        "muted": ParagraphStyle("muted", parent=base["Normal"], alignment=TA_CENTER, fontSize=9, textColor=MUTED),
        "section": ParagraphStyle(
            "section", parent=base["Heading3"], textColor=ACCENT, spaceBefore=10, spaceAfter=4
        ),
        "body": ParagraphStyle("body", parent=base["Normal"], alignment=TA_JUSTIFY, fontSize=10, leading=13),
        "small": ParagraphStyle("small", parent=base["Normal"], alignment=TA_CENTER, fontSize=8, textColor=MUTED),
    }


def _bullets(items: list[str], style: ParagraphStyle) -> ListFlowable:
    return ListFlowable(
        [ListItem(Paragraph(escape(item), style), leftIndent=12) for item in items],
        bulletType="bullet",
        start="•",
        leftIndent=12,
    )


def _allowed(flag: bool) -> str:
    return "Permitido" if flag else "No permitido"


def _details_table(license: IssuedLicenseModel, style: ParagraphStyle) -> Table:
    rows = [
        ["Beat", license.beat_title],
        ["Tipo de Licencia", license.tier],
        ["Productor", license.producer_name],
        ["Licenciatario", license.buyer_legal_name],
        ["Email", license.buyer_email],
    ]
    if license.beat_bpm:
        rows.append(["BPM", str(license.beat_bpm)])
    if license.beat_key:
        rows.append(["Key", license.beat_key])

    table = Table(
        [[Paragraph(f"<b>{escape(k)}</b>", style), Paragraph(escape(v), style)] for k, v in rows],
        colWidths=[45 * mm, None],
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f5f5f5")),
                ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    return table


def _footer(license: IssuedLicenseModel, styles: dict[str, ParagraphStyle]) -> KeepTogether:
    qr = Image(BytesIO(render_qr_png(license.verify_url)), width=35 * mm, height=35 * mm)
    generated = datetime.now(timezone.utc).strftime("%d/%m/%Y %H:%M UTC")
    return KeepTogether(
        [
            Spacer(1, 8 * mm),
            Paragraph("VERIFICACIÓN DE AUTENTICIDAD", styles["muted"]),
            Spacer(1, 2 * mm),
            qr,
            Spacer(1, 2 * mm),
            Paragraph(f"License ID: {escape(license.license_id)}", styles["small"]),
            Paragraph(f"Hash: {escape(license.document_hash[:32])}...", styles["small"]),
            Paragraph(f"Verifica en: {escape(license.verify_url)}", styles["small"]),
            Spacer(1, 3 * mm),
            Paragraph("Este documento fue generado electrónicamente y es válido sin firma.", styles["small"]),
            Paragraph(f"Generado el {generated}", styles["small"]),
        ]
    )


def _story(license: IssuedLicenseModel) -> list:
    styles = _styles()
    body = styles["body"]
    limits = license.limits_snapshot or {}
    split = license.publishing_split_snapshot or {}
    producer = escape(license.producer_name)
    licensee = escape(license.buyer_legal_name)
    issued_at = as_utc(license.issued_at)

    story = [
        Paragraph("CONTRATO DE LICENCIA DE BEAT", styles["title"]),
        Paragraph(f"Número de Licencia: {escape(license.license_number)}", styles["subtitle"]),
        Paragraph(f"Fecha de emisión: {issued_at:%d/%m/%Y}", styles["muted"]),
        Spacer(1, 6 * mm),
        _details_table(license, body),
        Paragraph("1. PARTES", styles["section"]),
        Paragraph(
            f'Este contrato se establece entre {producer} (en adelante, "el Productor") '
            f'y {licensee} (en adelante, "el Licenciatario").',
            body,
        ),
        Paragraph("2. PROPIEDAD INTELECTUAL", styles["section"]),
        Paragraph(
            f'El Productor retiene todos los derechos de propiedad intelectual sobre el beat '
            f'"{escape(license.beat_title)}". Esta licencia otorga derechos de uso específicos '
            f"pero no transfiere la propiedad del beat.",
            body,
        ),
        Paragraph("3. DERECHOS OTORGADOS", styles["section"]),
        Paragraph("El Licenciatario tiene derecho a:", body),
        _bullets(GRANTED_RIGHTS, body),
        Paragraph("4. LIMITACIONES Y RESTRICCIONES", styles["section"]),
        Paragraph("Esta licencia está sujeta a las siguientes limitaciones:", body),
        _bullets(
            [
                f"Reproducciones en streaming: {format_limit(limits.get('max_streams', 0))}",
                f"Videos monetizados: {format_limit(limits.get('max_monetized_videos', 0))}",
                f"Copias físicas: {format_limit(limits.get('max_physical_copies', 0))}",
                f"Content ID: {_allowed(limits.get('content_id_allowed', False))}",
                f"Actuaciones con ánimo de lucro: {_allowed(limits.get('for_profit_performances', False))}",
                f"Radiodifusión: {_allowed(limits.get('radio_broadcasting', False))}",
            ],
            body,
        ),
        Paragraph("5. CRÉDITOS", styles["section"]),
        Paragraph(
            "El Licenciatario debe acreditar al Productor en todas las publicaciones con: "
            f'"{escape(license.credits_required)}"',
            body,
        ),
        Paragraph("6. DERECHOS DE AUTOR Y PUBLISHING", styles["section"]),
        Paragraph("Los derechos de autor (publishing) se dividen de la siguiente manera:", body),
        _bullets(
            [
                f"Productor ({license.producer_name}): {split.get('producer', 0)}%",
                f"Licenciatario ({license.buyer_legal_name}): {split.get('licensee', 0)}%",
            ],
            body,
        ),
        Paragraph("7. DERECHOS DE MASTER", styles["section"]),
        Paragraph(
            "El Productor retiene el 100% de los derechos de master del beat original. "
            "El Licenciatario posee los derechos de la grabación vocal y la composición final.",
            body,
        ),
        Paragraph("8. JURISDICCIÓN", styles["section"]),
        Paragraph(f"Este contrato se rige por las leyes de {escape(license.jurisdiction)}.", body),
        _footer(license, styles),
    ]
    return story


def render_license_pdf(license: IssuedLicenseModel) -> bytes:
    """Render the license contract. Raises RenderError; never returns a partial document."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Licencia {license.license_number}",
        author=license.producer_name,
        invariant=1,
        pageCompression=0,
    )
    try:
        doc.build(_story(license))
    except Exception as exc:
        logger.exception("License PDF rendering failed", extra={"license_number": license.license_number})
        raise RenderError(f"Could not render license {license.license_number}: {exc}") from exc
    return buffer.getvalue()
