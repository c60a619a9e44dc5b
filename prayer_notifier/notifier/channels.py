"""Prayer Notifier — Push Channels.

Two delivery channels behind one interface:
  - Channel A: Firebase Cloud Messaging HTTP v1 (Android devices)
  - Channel B: Apple Push Notification service over HTTP/2 (iOS devices)

PushChannel.send() never raises. Every failure, including a channel that
is not configured or whose circuit breaker is open, comes back as a
DispatchOutcome with success=False and an error_detail string.

Only transport errors, 429 and 5xx responses count against the circuit
breaker. A 4xx rejection of one device token (expired, unregistered)
is that user's problem, not the provider's.

The breakers record outages and log trips, but keep sending while open
unless the channel is configured with skip_when_open.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import google.auth.transport
import google.auth.transport.requests
import httpx
import jwt
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2 import service_account

from prayer_notifier.config import ApnsConfig, FcmConfig
from prayer_notifier.errors import ChannelError
from prayer_notifier.models import CHANNEL_A, CHANNEL_B, ComposedMessage, DeviceTokens, DispatchOutcome
from prayer_notifier.notifier.composer import message_data
from prayer_notifier.utils.logger import get_logger, mask_token
from prayer_notifier.utils.resilience import CircuitBreaker, CircuitOpenError

logger = get_logger(__name__)

NOT_CONFIGURED = "channel not configured"

# ── FCM ──────────────────────────────────────────────────
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"

# ── APNs ─────────────────────────────────────────────────
APNS_PRODUCTION_HOST = "https://api.push.apple.com"
APNS_SANDBOX_HOST = "https://api.sandbox.push.apple.com"
_PROVIDER_TOKEN_LIFETIME = 50 * 60  # Apple rejects tokens older than 60 min


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class PushChannel:
    """Base class for a push delivery channel.

    Subclasses implement configured and _deliver(). _deliver() may raise
    ChannelError or httpx errors; send() converts them into outcomes.

    Attributes:
        channel: "A" or "B".
        name: Provider name for logs and the circuit breaker.
    """

    channel = ""
    name = ""

    def __init__(self, breaker: Optional[CircuitBreaker] = None) -> None:
        self.breaker = breaker or CircuitBreaker(self.name)

    @property
    def configured(self) -> bool:
        raise NotImplementedError

    async def send(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        """Send one message to one device token.

        Returns:
            DispatchOutcome for this channel; never raises.
        """
        if not self.configured:
            return self._failure(NOT_CONFIGURED)
        if not token:
            return self._failure("empty device token")

        try:
            outcome = await self.breaker.call(self._deliver, token, message)
        except CircuitOpenError as e:
            logger.warning("%s skipped for %s: %s", self.name, mask_token(token), e)
            return self._failure(str(e))
        except ChannelError as e:
            logger.error("%s delivery failed for %s: %s", self.name, mask_token(token), e)
            return self._failure(str(e))
        except httpx.HTTPError as e:
            logger.error("%s transport error for %s: %s", self.name, mask_token(token), e)
            return self._failure(f"transport error: {e}")
        except Exception as e:
            logger.exception("%s unexpected error for %s", self.name, mask_token(token))
            return self._failure(f"unexpected error: {e}")

        if outcome.success:
            logger.info(
                "%s delivered %s to %s (id=%s)",
                self.name, message.kind, mask_token(token), outcome.provider_message_id,
            )
        else:
            logger.warning(
                "%s rejected %s: %s", self.name, mask_token(token), outcome.error_detail,
            )
        return outcome

    async def _deliver(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        raise NotImplementedError

    def _failure(self, detail: str) -> DispatchOutcome:
        return DispatchOutcome(channel=self.channel, success=False, error_detail=detail)

    async def close(self) -> None:
        """Release network resources."""


class FcmChannel(PushChannel):
    """Channel A: Firebase Cloud Messaging HTTP v1 API.

    Authenticates with an OAuth2 access token minted by google-auth from a
    service-account key file. The credentials object caches the token and
    is refreshed only once it is no longer valid.
    """

    channel = CHANNEL_A
    name = "fcm"

    def __init__(
        self,
        config: FcmConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        token_provider: Optional[Callable[[], Awaitable[str]]] = None,
        breaker: Optional[CircuitBreaker] = None,
        auth_request: Optional[google.auth.transport.Request] = None,
    ) -> None:
        """Initialize the FCM channel.

        Args:
            config: FcmConfig with project id and credentials path.
            http_client: Pre-built httpx client; created lazily if omitted.
            token_provider: Coroutine returning an access token; replaces
                the service-account credentials (tests).
            breaker: Circuit breaker; built from config if omitted.
            auth_request: google-auth transport used to refresh the
                credentials; a requests-based one if omitted.
        """
        super().__init__(breaker or CircuitBreaker(
            self.name,
            failure_threshold=config.failure_threshold,
            cooldown_seconds=config.cooldown_seconds,
            blocking=config.skip_when_open,
        ))
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._token_provider = token_provider
        self._auth_request = auth_request
        self._credentials: Optional[service_account.Credentials] = None

    @property
    def configured(self) -> bool:
        return bool(
            self.config.enabled
            and self.config.project_id
            and (self._token_provider or self.config.credentials_path)
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    def _get_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            try:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self.config.credentials_path,
                    scopes=[FCM_SCOPE],
                )
            except (OSError, ValueError, KeyError) as e:
                raise ChannelError(
                    self.channel, f"invalid service-account credentials: {e}",
                ) from e
        return self._credentials

    async def _get_access_token(self) -> str:
        if self._token_provider is not None:
            return await self._token_provider()

        credentials = self._get_credentials()
        if not credentials.valid:
            if self._auth_request is None:
                self._auth_request = google.auth.transport.requests.Request()
            try:
                await asyncio.to_thread(credentials.refresh, self._auth_request)
            except (RefreshError, TransportError) as e:
                raise ChannelError(self.channel, f"OAuth token refresh failed: {e}") from e
            logger.debug("FCM access token refreshed")
        return credentials.token

    def build_payload(self, token: str, message: ComposedMessage) -> dict[str, Any]:
        return {
            "message": {
                "token": token,
                "notification": {
                    "title": message.title,
                    "body": message.body,
                },
                "data": message_data(message),
                "android": {
                    "priority": "HIGH",
                    "notification": {
                        "icon": "ic_mosque",
                        "color": "#4CAF50",
                        "sound": message.sound,
                        "channel_id": message.channel_group,
                    },
                },
            }
        }

    async def _deliver(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        access_token = await self._get_access_token()
        resp = await self._get_client().post(
            FCM_SEND_URL.format(project_id=self.config.project_id),
            json=self.build_payload(token, message),
            headers={"Authorization": f"Bearer {access_token}"},
        )

        if resp.status_code == 200:
            return DispatchOutcome(
                channel=self.channel,
                success=True,
                provider_message_id=resp.json().get("name"),
            )

        if resp.status_code == 401 and self._credentials is not None:
            self._credentials.token = None

        detail = _fcm_error_detail(resp)
        if _is_retryable(resp.status_code):
            raise ChannelError(self.channel, detail, resp.status_code)
        return self._failure(detail)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def _fcm_error_detail(resp: httpx.Response) -> str:
    try:
        error = resp.json().get("error", {})
        status = error.get("status", "")
        text = error.get("message", "")
        if status or text:
            return f"HTTP {resp.status_code} {status}: {text}".strip()
    except ValueError:
        pass
    return f"HTTP {resp.status_code}"


class ApnsChannel(PushChannel):
    """Channel B: Apple Push Notification service, token-based auth.

    Sends one request per device token. Outcomes carry sent/failed counts
    so multi-recipient callers can tell partial delivery apart; for a
    single token that is always 1/0 or 0/1.
    """

    channel = CHANNEL_B
    name = "apns"

    def __init__(
        self,
        config: ApnsConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        token_signer: Optional[Callable[[], str]] = None,
        breaker: Optional[CircuitBreaker] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the APNs channel.

        Args:
            config: ApnsConfig with key, team and bundle identifiers.
            http_client: Pre-built httpx client; an HTTP/2 client is
                created lazily if omitted.
            token_signer: Returns a provider token; replaces ES256 signing
                of the configured key (tests).
            breaker: Circuit breaker; built from config if omitted.
            clock: Wall-clock seconds, used for token age.
        """
        super().__init__(breaker or CircuitBreaker(
            self.name,
            failure_threshold=config.failure_threshold,
            cooldown_seconds=config.cooldown_seconds,
            blocking=config.skip_when_open,
        ))
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._token_signer = token_signer
        self._clock = clock
        self._provider_token: Optional[str] = None
        self._provider_token_issued: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(
            self.config.enabled
            and self.config.bundle_id
            and (self._token_signer or (
                self.config.key_path and self.config.key_id and self.config.team_id
            ))
        )

    @property
    def host(self) -> str:
        return APNS_PRODUCTION_HOST if self.config.production else APNS_SANDBOX_HOST

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(http2=True, timeout=self.config.timeout_seconds)
        return self._client

    def _get_provider_token(self) -> str:
        if self._token_signer is not None:
            return self._token_signer()

        now = self._clock()
        if self._provider_token and now - self._provider_token_issued < _PROVIDER_TOKEN_LIFETIME:
            return self._provider_token

        try:
            key = Path(self.config.key_path).read_text(encoding="utf-8")
            self._provider_token = jwt.encode(
                {"iss": self.config.team_id, "iat": int(now)},
                key,
                algorithm="ES256",
                headers={"kid": self.config.key_id},
            )
        except (OSError, ValueError) as e:
            raise ChannelError(self.channel, f"cannot sign provider token: {e}") from e

        self._provider_token_issued = now
        logger.debug("APNs provider token refreshed")
        return self._provider_token

    def build_payload(self, message: ComposedMessage) -> dict[str, Any]:
        data = message_data(message)
        return {
            "aps": {
                "alert": {"title": message.title, "body": message.body},
                "badge": 1,
                "sound": message.sound,
                "thread-id": message.channel_group,
                "category": message.tap_action,
            },
            "type": data["type"],
            "prayer": data["prayer"],
            "eventId": data["eventId"],
        }

    async def _deliver(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        resp = await self._get_client().post(
            f"{self.host}/3/device/{token}",
            json=self.build_payload(message),
            headers={
                "authorization": f"bearer {self._get_provider_token()}",
                "apns-topic": self.config.bundle_id,
                "apns-push-type": "alert",
                "apns-priority": "10",
            },
        )

        if resp.status_code == 200:
            return DispatchOutcome(
                channel=self.channel,
                success=True,
                provider_message_id=resp.headers.get("apns-id"),
                sent_count=1,
                failed_count=0,
            )

        reason = _apns_reason(resp)
        if reason == "ExpiredProviderToken":
            self._provider_token = None

        detail = f"HTTP {resp.status_code}: {reason}"
        if _is_retryable(resp.status_code):
            raise ChannelError(self.channel, detail, resp.status_code)
        return DispatchOutcome(
            channel=self.channel,
            success=False,
            error_detail=detail,
            sent_count=0,
            failed_count=1,
        )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def _apns_reason(resp: httpx.Response) -> str:
    try:
        return resp.json().get("reason", "unknown")
    except ValueError:
        return "unknown"


class ChannelDispatcher:
    """Routes a message to channel A and channel B.

    Attributes:
        channel_a: Android channel (FCM).
        channel_b: iOS channel (APNs).
    """

    def __init__(self, channel_a: PushChannel, channel_b: PushChannel) -> None:
        self.channel_a = channel_a
        self.channel_b = channel_b

    async def send_to_channel_a(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        return await self.channel_a.send(token, message)

    async def send_to_channel_b(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        return await self.channel_b.send(token, message)

    async def send_all(
        self,
        tokens: DeviceTokens,
        message: ComposedMessage,
    ) -> list[DispatchOutcome]:
        """Attempt every configured token, A first, then B.

        The second attempt happens whatever the first one returned.

        Returns:
            One outcome per token attempted (empty if no tokens).
        """
        outcomes: list[DispatchOutcome] = []
        if tokens.channel_a:
            outcomes.append(await self.send_to_channel_a(tokens.channel_a, message))
        if tokens.channel_b:
            outcomes.append(await self.send_to_channel_b(tokens.channel_b, message))
        return outcomes

    async def close(self) -> None:
        await self.channel_a.close()
        await self.channel_b.close()
