"""Nuvemshop OAuth connect flow.

The ``state`` parameter round-trips through Nuvemshop, so it is signed with the
application secret and carries its issue time; a state that was tampered with,
is too old, or belongs to another owner is rejected.
"""

import base64
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.config import settings
from trocas.exceptions import ConfigurationError, InvalidOAuthState, UpstreamError
from trocas.integrations.nuvemshop import NuvemshopClient, exchange_code_for_token, localized_name
from trocas.models.store import Store
from trocas.services.stores import default_settings

logger = structlog.get_logger()

TokenExchanger = Callable[[str], Any]


@dataclass(frozen=True)
class OAuthState:
    owner_id: str
    store_name: str
    issued_at: int


@dataclass(frozen=True)
class ConnectedStore:
    store_id: str
    store_name: str
    updated: bool


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _signature(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), payload.encode(), hashlib.sha256).digest()
    return _b64encode(digest)


def sign_state(
    owner_id: str,
    store_name: str,
    secret: str | None = None,
    now: Callable[[], float] = time.time,
) -> str:
    """Encode ``{ownerId, storeName, iat}`` as ``<payload>.<signature>``."""
    body = json.dumps(
        {"ownerId": owner_id, "storeName": store_name, "iat": int(now())},
        separators=(",", ":"),
    )
    payload = _b64encode(body.encode())
    return f"{payload}.{_signature(payload, secret or settings.app_secret_key)}"


def verify_state(
    token: str,
    secret: str | None = None,
    ttl_seconds: int | None = None,
    now: Callable[[], float] = time.time,
) -> OAuthState:
    """
    Check signature and age of a state token.

    Raises:
        InvalidOAuthState: Malformed, forged or expired token
    """
    ttl = settings.oauth_state_ttl_seconds if ttl_seconds is None else ttl_seconds

    payload, _, signature = token.partition(".")
    if not payload or not signature:
        raise InvalidOAuthState()

    expected = _signature(payload, secret or settings.app_secret_key)
    if not hmac.compare_digest(signature, expected):
        logger.warning("oauth_state_bad_signature")
        raise InvalidOAuthState()

    try:
        data = json.loads(_b64decode(payload))
        state = OAuthState(
            owner_id=str(data["ownerId"]),
            store_name=str(data.get("storeName") or ""),
            issued_at=int(data["iat"]),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise InvalidOAuthState() from e

    if now() - state.issued_at > ttl:
        logger.warning("oauth_state_expired", owner_id=state.owner_id)
        raise InvalidOAuthState("Estado expirado. Inicie a conexão novamente.")
    return state


def build_install_url(owner_id: str, store_name: str) -> str:
    """Nuvemshop authorization URL for this app, carrying a signed state."""
    if not settings.nuvemshop_client_id:
        raise ConfigurationError("Client ID da Nuvemshop não configurado")

    state = sign_state(owner_id, store_name)
    base = settings.nuvemshop_authorize_url.rstrip("/")
    logger.info("oauth_install_url_generated", owner_id=owner_id)
    return f"{base}/{settings.nuvemshop_client_id}/authorize?state={quote(state, safe='')}"


def slugify(name: str) -> str:
    """Lowercase, whitespace to ``-``, anything outside ``[a-z0-9-]`` dropped."""
    slug = re.sub(r"\s+", "-", name.lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


async def unique_slug(session: AsyncSession, name: str) -> str:
    """Slug for a new store, with a numeric suffix when already taken."""
    base = slugify(name) or "loja"
    result = await session.execute(
        select(Store.slug).where((Store.slug == base) | Store.slug.like(f"{base}-%"))
    )
    taken = set(result.scalars().all())
    if base not in taken:
        return base

    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


async def _fetch_store_name(api_url: str, access_token: str, fallback: str) -> str:
    client = NuvemshopClient(api_url=api_url, access_token=access_token)
    try:
        data = await client.get_store()
    except UpstreamError as e:
        logger.warning("oauth_store_info_failed", api_url=api_url, error=str(e))
        return fallback
    finally:
        await client.close()
    return localized_name(data.get("name"), fallback)


async def connect_store(
    session: AsyncSession,
    owner_id: str,
    code: str,
    state_token: str,
    exchange: TokenExchanger = exchange_code_for_token,
    fetch_store_name: Callable[[str, str, str], Any] = _fetch_store_name,
) -> ConnectedStore:
    """
    Finish the OAuth flow: exchange the code, then create or refresh the store.

    A store already connected by the same owner (same Nuvemshop id) gets its
    token and name updated; otherwise a store with default settings is created.
    """
    state = verify_state(state_token)
    if state.owner_id != owner_id:
        logger.warning("oauth_state_owner_mismatch", owner_id=owner_id)
        raise InvalidOAuthState()

    token = await exchange(code)
    access_token = token["access_token"]
    nuvemshop_store_id = str(token["user_id"])
    api_url = f"{settings.nuvemshop_api_url.rstrip('/')}/{nuvemshop_store_id}"

    store_name = await fetch_store_name(api_url, access_token, state.store_name)

    result = await session.execute(
        select(Store).where(
            Store.owner_id == owner_id,
            Store.nuvemshop_store_id == nuvemshop_store_id,
        )
    )
    store = result.scalar_one_or_none()

    if store is not None:
        store.api_key = access_token
        store.api_url = api_url
        store.name = store_name
        await session.commit()
        logger.info("oauth_store_updated", store_id=store.id, owner_id=owner_id)
        return ConnectedStore(store_id=store.id, store_name=store_name, updated=True)

    store = Store(
        owner_id=owner_id,
        name=store_name,
        slug=await unique_slug(session, store_name),
        api_key=access_token,
        api_url=api_url,
        nuvemshop_store_id=nuvemshop_store_id,
    )
    session.add(store)
    await session.flush()
    session.add(default_settings(store.id))
    await session.commit()

    logger.info(
        "oauth_store_created",
        store_id=store.id,
        owner_id=owner_id,
        slug=store.slug,
        nuvemshop_store_id=nuvemshop_store_id,
    )
    return ConnectedStore(store_id=store.id, store_name=store_name, updated=False)


_CALLBACK_HTML = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Conectando loja...</title>
    <style>
      body {{ font-family: system-ui, sans-serif; display: flex; align-items: center;
             justify-content: center; height: 100vh; margin: 0;
             background: #0f172a; color: white; }}
      .container {{ text-align: center; padding: 2rem; }}
    </style>
  </head>
  <body>
    <div class="container">
      <h2>Conectando sua loja...</h2>
      <p>Por favor, aguarde.</p>
    </div>
    <script>
      const message = {message};
      if (window.opener) {{
        window.opener.postMessage(message, "*");
      }}
      setTimeout(() => {{
        document.body.innerHTML =
          '<div class="container"><h2>Loja conectada!</h2>' +
          '<p>Você pode fechar esta janela.</p></div>';
        setTimeout(() => window.close(), 2000);
      }}, 1000);
    </script>
  </body>
</html>
"""

_CALLBACK_ERROR_HTML = """<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>Erro</title></head>
  <body>
    <h1>Erro na autenticação</h1>
    <p>Parâmetros inválidos. Por favor, tente novamente.</p>
    <script>setTimeout(() => window.close(), 3000);</script>
  </body>
</html>
"""


def _script_json(value: dict[str, Any]) -> str:
    # json.dumps leaves "</" intact, which would close the script element
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_callback_page(code: str | None, state: str | None) -> str:
    """Popup page that hands ``code`` and ``state`` to the opener window."""
    if not code or not state:
        return _CALLBACK_ERROR_HTML
    message = {"type": "nuvemshop-oauth-callback", "code": code, "state": state}
    return _CALLBACK_HTML.format(message=_script_json(message))
