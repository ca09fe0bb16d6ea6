"""
Client REST Discord avec gestion du rate limit.

Principes :
- Seul point de sortie réseau du workflow de groupes (aucun autre module n'appelle l'API directement)
- En-têtes d'authentification (`Bot <token>`) et type de contenu JSON ajoutés à chaque appel
- HTTP 429 : attente de `retry_after` secondes (1 par défaut) puis nouvel essai, 3 fois au maximum
- Autres statuts non-2xx : exception `RemoteApiError` (pas de retry)
- Chaque appel borne son attente (timeout aiohttp) indépendamment du poller

Le token n'est jamais journalisé : seuls la méthode, l'endpoint et le statut le sont.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import aiohttp

logger = logging.getLogger(__name__)

API_BASE = "https://discord.com/api/v10"
USER_AGENT = "DiscordBot (https://github.com/Rapptz/discord.py, 2.0) group-formation"
MAX_RETRIES = 3
DEFAULT_RETRY_AFTER = 1.0


class RestError(Exception):
    """Erreur de base pour tout échec d'appel REST."""


class RateLimited(RestError):
    """429 persistant après épuisement des retries."""

    def __init__(self, method: str, endpoint: str, retry_after: float, attempts: int):
        super().__init__(f"{method} {endpoint}: rate limit persistant après {attempts} tentatives")
        self.method = method
        self.endpoint = endpoint
        self.retry_after = retry_after
        self.attempts = attempts


class RemoteApiError(RestError):
    """Réponse non-2xx (hors 429) de l'API Discord."""

    def __init__(self, status: int, body: Any, method: str = "", endpoint: str = ""):
        super().__init__(f"HTTP {status} {method} {endpoint}: {body!r}")
        self.status = status
        self.body = body
        self.method = method
        self.endpoint = endpoint


class NotFound(RemoteApiError):
    """404 : ressource (salon, rôle, message) introuvable."""


class TransportError(RestError):
    """Echec réseau ou timeout avant toute réponse HTTP."""


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_retry_after(body: Any) -> float:
    """Extrait `retry_after` (secondes, fractionnaires possibles) d'un corps 429."""
    value = body.get("retry_after") if isinstance(body, dict) else None
    if isinstance(value, bool):
        return DEFAULT_RETRY_AFTER
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if seconds != seconds or seconds < 0:  # NaN ou négatif
        return DEFAULT_RETRY_AFTER
    return seconds


class RateLimitedClient:
    """
    Client asynchrone minimal pour l'API REST Discord.

    Attributs principaux :
        base_url : racine de l'API (v10 par défaut)
        timeout : durée max (s) de chaque appel HTTP
        retry_count : nombre total de retries effectués (diagnostic / tests)
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = API_BASE,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_retries: int = MAX_RETRIES,
    ):
        if not token:
            raise ValueError("token requis")
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self.retry_count = 0

    def _headers(self, reason: Optional[str]) -> dict:
        headers = {
            "Authorization": f"Bot {self._token}",
            "Content-Type": "application/json; charset=UTF-8",
            "User-Agent": USER_AGENT,
        }
        if reason:
            headers["X-Audit-Log-Reason"] = quote(reason, safe=" ")
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def close(self):
        """Ferme la session HTTP si elle appartient au client."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.info("Session HTTP Discord fermée")

    async def request(self, method: str, endpoint: str, payload: Any = None, *, reason: Optional[str] = None) -> Any:
        """
        Exécute un appel REST et retourne le corps JSON décodé (None si 204 / corps vide).

        Raises :
            RateLimited : 429 répété au-delà de `max_retries`
            NotFound / RemoteApiError : statut non-2xx
            TransportError : erreur réseau ou timeout
        """
        method = method.upper()
        endpoint = endpoint.lstrip("/")
        url = f"{self.base_url}/{endpoint}"
        attempt = 0
        while True:
            attempt += 1
            try:
                session = self._get_session()
                async with session.request(
                    method,
                    url,
                    headers=self._headers(reason),
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    status = resp.status
                    body = _decode_body(await resp.read())
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.error("Echec transport %s %s: %s", method, endpoint, type(exc).__name__)
                raise TransportError(f"{method} {endpoint}: {type(exc).__name__}") from exc

            if status == 429:
                retry_after = parse_retry_after(body)
                if attempt > self.max_retries:
                    logger.error(
                        "Rate limit persistant %s %s (%s tentatives), abandon", method, endpoint, attempt
                    )
                    raise RateLimited(method, endpoint, retry_after, attempt)
                self.retry_count += 1
                logger.warning(
                    "Rate limit %s %s: retry %s/%s dans %.2fs",
                    method, endpoint, attempt, self.max_retries, retry_after,
                )
                await self._sleep(retry_after)
                continue

            if 200 <= status < 300:
                return body

            logger.error("HTTP %s %s %s", status, method, endpoint)
            if status == 404:
                raise NotFound(status, body, method, endpoint)
            raise RemoteApiError(status, body, method, endpoint)


__all__ = [
    "RateLimitedClient", "RestError", "RateLimited", "RemoteApiError", "NotFound", "TransportError",
    "parse_retry_after", "MAX_RETRIES",
]
