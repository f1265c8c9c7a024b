"""Transactional email for paid goods: SendGrid / Resend over HTTP.

Delivery is best effort. Every public ``send_*`` method returns True when the
provider accepted the message and False otherwise; none of them raise, so an
outage at the email provider never fails a payment webhook.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"

    def b64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


def _format_limit(value: Any) -> str:
    return "ilimitado" if value in (0, None) else str(value)


class EmailSender:
    """Sends beat deliveries and ticket bundles.

    Falls back to logging if no provider is configured.
    """

    def __init__(
        self,
        provider: str = "",
        api_key: str = "",
        from_email: str = "tickets@otprecords.com",
        from_name: str = "OTHER PEOPLE RECORDS",
        timeout: float = 30,
    ):
        self.provider = provider.lower()  # "sendgrid" or "resend"
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    async def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> bool:
        attachments = attachments or []
        if self.provider == "sendgrid" and self.api_key:
            return await self._send_sendgrid(to_email, subject, body, attachments)
        elif self.provider == "resend" and self.api_key:
            return await self._send_resend(to_email, subject, body, attachments)
        else:
            logger.info(
                "No email provider configured; skipped '%s' to %s (%d attachments)",
                subject,
                to_email,
                len(attachments),
            )
            return False

    async def send_beat_delivery(
        self,
        to_email: str,
        customer_name: str,
        beat_title: str,
        offer_name: str,
        files: dict[str, str],
        terms: dict[str, Any],
        license_number: Optional[str] = None,
        verify_url: Optional[str] = None,
        license_pdf: Optional[bytes] = None,
    ) -> bool:
        """Download links for the purchased formats, the terms, and the license PDF."""
        subject = f"Tu beat {beat_title} ({offer_name})"
        lines = [
            f"Hola {customer_name},",
            "",
            f"Gracias por tu compra de \"{beat_title}\" con la licencia {offer_name}.",
            "",
            "Descarga tus archivos:",
        ]
        lines += [f"  {fmt}: {url}" for fmt, url in files.items()]

        if terms:
            lines += ["", "Términos de la licencia:"]
            lines += [f"  {key}: {_format_limit(value)}" for key, value in terms.items()]

        if license_number:
            lines += ["", f"Número de licencia: {license_number}"]
        if verify_url:
            lines.append(f"Verifica tu licencia en: {verify_url}")

        lines += ["", f"- {self.from_name}"]

        attachments = []
        if license_pdf:
            name = f"licencia-{license_number}.pdf" if license_number else "licencia.pdf"
            attachments.append(Attachment(filename=name, content=license_pdf))

        return await self.send(to_email, subject, "\n".join(lines), attachments)

    async def send_ticket_bundle(
        self,
        to_email: str,
        customer_name: str,
        event_name: str,
        ticket_codes: list[str],
        tickets_pdf: Optional[bytes] = None,
        event_date: Optional[str] = None,
        event_location: Optional[str] = None,
    ) -> bool:
        """One email per order with every seat in a single PDF."""
        count = len(ticket_codes)
        subject = f"Tus entradas para {event_name}" if count > 1 else f"Tu entrada para {event_name}"
        lines = [
            f"Hola {customer_name},",
            "",
            f"Aquí tienes {count} entrada(s) para {event_name}.",
        ]
        if event_date:
            lines.append(f"Fecha: {event_date}")
        if event_location:
            lines.append(f"Lugar: {event_location}")
        lines += ["", "Códigos:"]
        lines += [f"  {i}. {code}" for i, code in enumerate(ticket_codes, start=1)]
        lines += [
            "",
            "Muestra el código QR de cada entrada en la puerta. Cada código solo es válido una vez.",
            "",
            f"- {self.from_name}",
        ]

        attachments = []
        if tickets_pdf:
            attachments.append(Attachment(filename="entradas.pdf", content=tickets_pdf))

        return await self.send(to_email, subject, "\n".join(lines), attachments)

    async def _send_sendgrid(self, to: str, subject: str, body: str, attachments: list[Attachment]) -> bool:
        """Send via SendGrid v3 API."""
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        if attachments:
            payload["attachments"] = [
                {
                    "content": a.b64(),
                    "filename": a.filename,
                    "type": a.mime_type,
                    "disposition": "attachment",
                }
                for a in attachments
            ]
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    "https://api.sendgrid.com/v3/mail/send",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=self.timeout,
                )
                if resp.status_code in (200, 202):
                    logger.info("SendGrid email sent to %s", to)
                    return True
                logger.warning("SendGrid error: %s %s", resp.status_code, resp.text)
                return False
        except Exception:
            logger.exception("SendGrid send failed")
            return False

    async def _send_resend(self, to: str, subject: str, body: str, attachments: list[Attachment]) -> bool:
        """Send via Resend API."""
        payload: dict[str, Any] = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [to],
            "subject": subject,
            "text": body,
        }
        if attachments:
            payload["attachments"] = [{"filename": a.filename, "content": a.b64()} for a in attachments]
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=self.timeout,
                )
                if resp.status_code in (200, 201):
                    logger.info("Resend email sent to %s", to)
                    return True
                logger.warning("Resend error: %s %s", resp.status_code, resp.text)
                return False
        except Exception:
            logger.exception("Resend send failed")
            return False
