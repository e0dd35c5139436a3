"""
Event loop hosting for the Streamlit front end.

Streamlit reruns page scripts on its own threads, while sessions, realtime
callbacks and viewer timers all live on one asyncio loop. The loop runs on a
daemon thread shared by the process; each browser session gets an AppRuntime
that submits coroutines to it and keeps its open screen sessions.
"""

import asyncio
import concurrent.futures
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from .config import get_env, get_realtime_heartbeat_seconds, get_supabase_anon_key, get_supabase_url, is_development
from .core.viewer import AsyncioScheduler
from .error_handling import PairGallerySystemError
from .logging_config import get_logger
from .services.auth import AuthService, get_auth_service
from .services.chat import ChatSession
from .services.events import EventsSession
from .services.feedback import CommentThread, ReactionBoard
from .services.gallery import GallerySession
from .services.gateway import RemoteDataGateway, RestGateway
from .services.media_upload import MediaUploadService, get_media_upload_service
from .services.memory_gateway import InMemoryGateway
from .services.preferences import AppSettings, load_settings
from .services.profiles import ProfileService
from .services.session import LedgerSession
from .services.vault import VaultGate, VaultSession

logger = get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S", bound=LedgerSession)


class BackgroundLoop:
    """An asyncio loop running forever on a daemon thread."""

    def __init__(self, name: str = "pairgallery-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self.loop.is_closed()

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self, timeout: float = 5.0) -> None:
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        self.loop.close()


_background_loop: BackgroundLoop | None = None
_development_gateway: InMemoryGateway | None = None
_lock = threading.Lock()


def get_background_loop() -> BackgroundLoop:
    """Get the process-wide background loop, starting it on first use."""
    global _background_loop
    with _lock:
        if _background_loop is None or not _background_loop.running:
            _background_loop = BackgroundLoop()
            logger.info("background_loop_started")
        return _background_loop


def get_development_gateway() -> InMemoryGateway:
    """
    Get the process-wide in-memory gateway.

    Browser sessions share it so two tabs behave like two partners. The dev
    user's profile is seeded with a household so chat works out of the box.
    """
    global _development_gateway
    with _lock:
        if _development_gateway is None:
            gateway = InMemoryGateway()
            gateway.seed(
                "profiles",
                [
                    {
                        "id": get_env("DEV_USER_ID", "dev-user-123"),
                        "household_id": get_env("DEV_HOUSEHOLD_ID", "dev-household"),
                    }
                ],
            )
            _development_gateway = gateway
            logger.info("development_gateway_created")
        return _development_gateway


def create_gateway(auth: AuthService) -> RemoteDataGateway:
    """
    Build the gateway from configuration.

    Raises:
        PairGallerySystemError: If no gateway is configured outside development
    """
    base_url = get_supabase_url()
    api_key = get_supabase_anon_key()
    if base_url and api_key:
        return RestGateway(
            base_url,
            api_key,
            access_token=auth.get_access_token,
            heartbeat_seconds=get_realtime_heartbeat_seconds(),
        )
    if is_development():
        return get_development_gateway()
    raise PairGallerySystemError(
        "SUPABASE_URL and SUPABASE_ANON_KEY are required outside development",
        code="gateway_not_configured",
        user_message="The app is not configured. Contact the administrator.",
    )


class AppRuntime:
    """
    Services and open screen sessions of one browser session.

    Sessions are opened on first use and kept until ``close_session`` or
    ``shutdown``; every coroutine runs on the background loop.
    """

    def __init__(
        self,
        background: BackgroundLoop | None = None,
        auth: AuthService | None = None,
        gateway: RemoteDataGateway | None = None,
        settings: AppSettings | None = None,
        uploader: MediaUploadService | None = None,
        timeout: float = 30.0,
    ):
        self.background = background or get_background_loop()
        self.auth = auth or get_auth_service()
        self.gateway = gateway or create_gateway(self.auth)
        self.settings = settings or load_settings()
        self.uploader = uploader or get_media_upload_service()
        self.timeout = timeout
        self.scheduler = AsyncioScheduler(self.background.loop)
        self.profiles = ProfileService(self.gateway)
        self.vault_gate = VaultGate(self.settings)
        self._sessions: dict[str, LedgerSession] = {}

    # Loop access

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        return self.background.submit(coro)

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the loop and wait for its result; its exception is re-raised here."""
        return self.submit(coro).result(timeout or self.timeout)

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run a plain callable on the loop thread, for example a viewer input."""
        self.background.call(fn, *args)

    def invoke(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain callable on the loop thread and wait for its result."""

        async def _invoke() -> T:
            return fn(*args)

        return self.run(_invoke())

    # Sessions

    def _session(self, key: str, factory: Callable[[], S]) -> S:
        existing = self._sessions.get(key)
        if existing is not None and not existing.closed:
            return existing  # type: ignore[return-value]

        session = factory()
        try:
            self.run(session.open())  # type: ignore[attr-defined]
        except Exception:
            self.run(session.close())
            raise
        self._sessions[key] = session
        logger.info("screen_session_opened", key=key)
        return session

    def chat(self) -> ChatSession:
        return self._session("chat", lambda: ChatSession(self.gateway, self.auth, profiles=self.profiles))

    def gallery(self) -> GallerySession:
        return self._session(
            "gallery",
            lambda: GallerySession(
                self.gateway,
                self.auth,
                uploader=self.uploader,
                settings=self.settings,
                scheduler=self.scheduler,
            ),
        )

    def vault(self) -> VaultSession:
        return self._session(
            "vault",
            lambda: VaultSession(
                self.vault_gate,
                self.gateway,
                self.auth,
                uploader=self.uploader,
                settings=self.settings,
                scheduler=self.scheduler,
            ),
        )

    def events(self) -> EventsSession:
        return self._session("events", lambda: EventsSession(self.gateway, self.auth, profiles=self.profiles))

    def reactions(self) -> ReactionBoard:
        return self._session("reactions", lambda: ReactionBoard(self.gateway, self.auth))

    def comments(self, image_id: str) -> CommentThread:
        return self._session(f"comments:{image_id}", lambda: CommentThread(self.gateway, self.auth, image_id))

    def close_session(self, key: str) -> None:
        session = self._sessions.pop(key, None)
        if session is not None:
            self.run(session.close())
            logger.info("screen_session_closed", key=key)

    def open_sessions(self) -> list[str]:
        return list(self._sessions)

    def shutdown(self) -> None:
        """Close every open session, for sign-out."""
        for key in list(self._sessions):
            self.close_session(key)
        self.vault_gate.lock()
