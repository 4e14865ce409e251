"""External service integrations."""

from trocas.integrations.melhor_envio import MelhorEnvioClient, get_carrier_client
from trocas.integrations.nuvemshop import NuvemshopClient, exchange_code_for_token
from trocas.integrations.resend import ResendClient, get_email_client

__all__ = [
    "NuvemshopClient",
    "exchange_code_for_token",
    "MelhorEnvioClient",
    "get_carrier_client",
    "ResendClient",
    "get_email_client",
]
