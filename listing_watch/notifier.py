"""
通知服務模組

以 SMTP 寄送 HTML 摘要郵件，每輪最多寄送一封，依來源分組列出新增與更新的刊登。
"""

import html
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

from listing_watch.batcher import NotificationBatch, render
from listing_watch.errors import ConfigError, DeliveryError

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


class EmailNotifier:
    """Email 通知服務"""

    def __init__(
        self,
        user: Optional[str] = None,
        password: Optional[str] = None,
        to: Optional[List[str]] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        sender_name: str = "OLX Monitor",
    ):
        self.user = user or os.getenv("EMAIL_USER")
        self.password = password or os.getenv("EMAIL_PASS")
        if to is None:
            to = [addr.strip() for addr in os.getenv("EMAIL_TO", "").split(",") if addr.strip()]
        self.to = to
        self.host = host or os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.sender_name = sender_name

        if port is None:
            raw_port = os.getenv("SMTP_PORT", "587")
            try:
                port = int(raw_port)
            except ValueError:
                raise ConfigError(f"SMTP_PORT must be an integer, got {raw_port!r}")
        self.port = port

        if not self.user or not self.password or not self.to:
            raise ConfigError("EMAIL_USER, EMAIL_PASS and EMAIL_TO must be set")

    def _format_item(self, item: Dict[str, str]) -> str:
        """格式化單一刊登"""
        e = {key: html.escape(value or "", quote=True) for key, value in item.items()}
        image = f'<img src="{e["image_url"]}" width="200"/><br>\n' if item.get("image_url") else ""
        return (
            "<p>\n"
            f"<b>[{e['change_type']}] {e['title']}</b><br>\n"
            f"Price: {e['price']}<br>\n"
            f"Condition: {e['condition']}<br>\n"
            f"Location: {e['location_date']}<br>\n"
            f'<a href="{e["link"]}">View on OLX</a><br>\n'
            f"{image}"
            "</p><hr/>"
        )

    def build_html(self, payload: Dict) -> str:
        """
        將 render() 的結果轉為 HTML 郵件內容

        Args:
            payload: render(batch) 的返回值

        Returns:
            HTML 字串
        """
        sections = []
        for group in payload["sources"]:
            source_url = html.escape(group["source_url"], quote=True)
            items = "\n".join(self._format_item(item) for item in group["items"])
            sections.append(
                f'<h3>{len(group["items"])} change(s) at <a href="{source_url}">{source_url}</a></h3>\n'
                f"{items}"
            )
        return "\n".join(sections)

    def build_message(self, batch: NotificationBatch) -> MIMEMultipart:
        """建立郵件物件"""
        payload = render(batch)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = payload["subject"]
        msg["From"] = f'"{self.sender_name}" <{self.user}>'
        msg["To"] = ", ".join(self.to)
        msg.attach(MIMEText(self.build_html(payload), "html", "utf-8"))
        return msg

    def _disconnect(self, server: smtplib.SMTP) -> None:
        """結束 SMTP 連線，QUIT 失敗時直接關閉 socket"""
        try:
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug(f"Ignoring error while closing SMTP connection: {e}")
            server.close()

    def deliver(self, batch: NotificationBatch) -> None:
        """
        寄送整輪的通知批次

        Args:
            batch: 本輪的通知批次

        Raises:
            DeliveryError: 連線、認證或寄送失敗
        """
        msg = self.build_message(batch)
        try:
            if self.port == 465:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
            try:
                if self.port != 465:
                    server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.user, self.to, msg.as_string())
            finally:
                self._disconnect(server)
        # 非 ASCII 的帳號密碼會在 login 時拋出 UnicodeEncodeError (ValueError 的子類別)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            raise DeliveryError(f"Failed to send email via {self.host}:{self.port}: {e}") from e

        logger.info(f"Sent email with {len(batch)} new/updated listings.")
