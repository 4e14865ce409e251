"""Customer email notifications for return request status changes."""

from dataclasses import dataclass
from html import escape
from typing import Callable

import structlog

from trocas.integrations.resend import ResendClient, get_email_client
from trocas.models.return_request import ReturnStatus

logger = structlog.get_logger()

_FOOTER = (
    '<hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">'
    '<p style="color: #666; font-size: 12px;">Este email foi enviado por {store_name}</p>'
)

_APPROVED_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #22c55e;">Solicitação Aprovada ✓</h1>
  <p>Olá <strong>{customer_name}</strong>,</p>
  <p>Sua solicitação de troca/devolução para o pedido <strong>#{order_number}</strong>
  foi <strong style="color: #22c55e;">aprovada</strong>.</p>
  <p>Próximos passos:</p>
  <ol>
    <li>Embale o(s) produto(s) de forma segura</li>
    <li>Aguarde o contato da loja com instruções de envio</li>
    <li>Envie o(s) produto(s) conforme orientação</li>
  </ol>
  <p>Em caso de dúvidas, entre em contato com a loja.</p>
  {footer}
</div>
"""

_REJECTED_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #ef4444;">Solicitação Não Aprovada</h1>
  <p>Olá <strong>{customer_name}</strong>,</p>
  <p>Infelizmente, sua solicitação de troca/devolução para o pedido
  <strong>#{order_number}</strong> não pôde ser aprovada no momento.</p>
  <p>Isso pode ter ocorrido por diversos motivos, como:</p>
  <ul>
    <li>Prazo de devolução excedido</li>
    <li>Produto não elegível para troca/devolução</li>
    <li>Informações incompletas</li>
  </ul>
  <p>Para mais informações, entre em contato diretamente com a loja.</p>
  {footer}
</div>
"""

_COMPLETED_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #3b82f6;">Processo Concluído ✓</h1>
  <p>Olá <strong>{customer_name}</strong>,</p>
  <p>O processo de troca/devolução do pedido <strong>#{order_number}</strong> foi
  <strong style="color: #3b82f6;">concluído com sucesso</strong>.</p>
  <p>Caso tenha optado por:</p>
  <ul>
    <li><strong>Reembolso:</strong> O valor será creditado em até 10 dias úteis</li>
    <li><strong>Crédito na loja:</strong> Já está disponível para uso</li>
  </ul>
  <p>Agradecemos pela preferência!</p>
  {footer}
</div>
"""

TEMPLATES: dict[str, tuple[str, str]] = {
    ReturnStatus.APPROVED: (
        "Sua solicitação de troca/devolução foi aprovada - Pedido #{order_number}",
        _APPROVED_HTML,
    ),
    ReturnStatus.REJECTED: (
        "Atualização sobre sua solicitação - Pedido #{order_number}",
        _REJECTED_HTML,
    ),
    ReturnStatus.COMPLETED: (
        "Troca/devolução concluída - Pedido #{order_number}",
        _COMPLETED_HTML,
    ),
}


@dataclass(frozen=True)
class StatusNotification:
    """Data needed to tell a customer about a status change."""

    status: str
    customer_email: str
    customer_name: str
    order_number: str
    store_name: str


def render_email(notification: StatusNotification) -> tuple[str, str]:
    """
    Pick the template for the new status and fill it in.

    Returns:
        Tuple of (subject, html)
    """
    if notification.status not in TEMPLATES:
        raise ValueError(f"No email template for status {notification.status!r}")

    subject_template, html_template = TEMPLATES[notification.status]
    subject = subject_template.format(order_number=notification.order_number)
    html = html_template.format(
        customer_name=escape(notification.customer_name),
        order_number=escape(notification.order_number),
        footer=_FOOTER.format(store_name=escape(notification.store_name)),
    )
    return subject, html


class NotificationDispatcher:
    """
    Best-effort sender of status emails.

    :meth:`send_status_update` never raises: callers schedule it as a background
    task after the status change is committed, and a failed email only leaves a
    log entry.
    """

    def __init__(self, client_factory: Callable[[], ResendClient] | None = None):
        self._client_factory = client_factory

    async def send_status_update(self, notification: StatusNotification) -> bool:
        """Send the email; returns False when it could not be delivered."""
        try:
            subject, html = render_email(notification)
            client = (self._client_factory or get_email_client)()
            try:
                response = await client.send_email(
                    to=[notification.customer_email],
                    subject=subject,
                    html=html,
                )
            finally:
                await client.close()
        except Exception as e:
            logger.error(
                "status_notification_failed",
                status=notification.status,
                order_number=notification.order_number,
                error=str(e),
            )
            return False

        logger.info(
            "status_notification_sent",
            status=notification.status,
            order_number=notification.order_number,
            email_id=response.get("id"),
        )
        return True


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get notification dispatcher (FastAPI dependency)."""
    return NotificationDispatcher()
