"""SMTP delivery adapter for the email channel.

Each chunk becomes one email. When a newsletter needs several emails the
subject carries "(Part i of n)". Posters travel as inline related parts
referenced from the HTML by ``cid:``.
"""

from __future__ import annotations

import logging
import os
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formatdate
from typing import Optional

from adapters.email_renderer import DEFAULT_BODY_TEMPLATE
from core.models import Chunk
from core.newsletter import NewsletterResult
from settings import EmailChannelConfig

LOGGER = logging.getLogger(__name__)


def chunk_html(chunk: Chunk, body_template: str) -> str:
    """Serialize a chunk's headers and entries into the body template."""

    entry_data = "".join(str(part.content) for part in chunk.parts)
    return body_template.replace("{EntryData}", entry_data)


def part_subject(subject: str, part: int, total: int) -> str:
    if total > 1:
        return f"{subject} (Part {part} of {total})"
    return subject


def build_message(
    config: EmailChannelConfig,
    chunk: Chunk,
    body_template: str,
    part: int,
    total: int,
) -> EmailMessage:
    """Build the MIME message for one chunk."""

    message = EmailMessage()
    message["Subject"] = part_subject(config.subject, part, total)
    message["From"] = config.from_addr
    message["To"] = config.visible_to_addr or config.from_addr
    # Real recipients stay hidden in Bcc, like a mailing list.
    message["Bcc"] = ", ".join(config.to_addrs)
    message["Date"] = formatdate(localtime=True)

    message.set_content("This newsletter needs an HTML capable mail client.")
    message.add_alternative(chunk_html(chunk, body_template), subtype="html")

    html_part = message.get_payload()[-1]
    for image in chunk.images:
        maintype, _, subtype = image.content_type.partition("/")
        html_part.add_related(
            image.data,
            maintype=maintype,
            subtype=subtype or "jpeg",
            cid=f"<{image.name}>",
            filename=image.name,
        )
    return message


class SmtpSender:
    """ChannelSender that mails each chunk through one SMTP configuration."""

    def __init__(
        self,
        config: EmailChannelConfig,
        password: str,
        body_template: str = DEFAULT_BODY_TEMPLATE,
        newsletter_dir: Optional[str] = None,
    ) -> None:
        self.name = f"email:{config.name}"
        self._config = config
        self._password = password
        self._body_template = body_template
        self._newsletter_dir = newsletter_dir

    def _connect(self) -> smtplib.SMTP:
        config = self._config
        if config.smtp_ssl:
            return smtplib.SMTP_SSL(config.smtp_server, config.smtp_port, timeout=60)
        smtp = smtplib.SMTP(config.smtp_server, config.smtp_port, timeout=60)
        if config.smtp_starttls:
            smtp.starttls()
        return smtp

    def _deliver(self, message: EmailMessage) -> None:
        # Blocking SMTP is fine for a once-per-cycle job.
        with self._connect() as smtp:
            if self._config.smtp_user:
                smtp.login(self._config.smtp_user, self._password)
            smtp.send_message(message)

    def _save_copy(self, html_body: str) -> None:
        if not self._newsletter_dir:
            return
        os.makedirs(self._newsletter_dir, exist_ok=True)
        filename = f"Newsletter_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.html"
        path = os.path.join(self._newsletter_dir, filename)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(html_body)
        LOGGER.info("Saved newsletter copy to %s", path)

    async def send(self, result: NewsletterResult) -> bool:
        """Mail every chunk in order; raises on the first SMTP failure."""

        total = len(result.chunks)
        for part, chunk in enumerate(result.chunks, start=1):
            message = build_message(self._config, chunk, self._body_template, part, total)
            try:
                self._deliver(message)
            except (smtplib.SMTPException, OSError) as exc:
                raise RuntimeError(f"SMTP error on part {part} of {total}: {exc}") from exc
            LOGGER.info("[%s] Sent part %s of %s (%s bytes)", self.name, part, total, chunk.byte_total)
            if part == total:
                self._save_copy(chunk_html(chunk, self._body_template))
        return total > 0
