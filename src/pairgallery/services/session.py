"""
Shared plumbing for screen sessions backed by one ledger and one subscription.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Generic

from ..core.ledger import OptimisticLedger
from ..error_handling import NetworkError, RecordDecodeError
from ..logging_config import get_logger
from ..models.entity import Entity, P
from ..models.records import RowDecoder
from .auth import AuthService, UserInfo
from .gateway import Filters, GatewayResult, Order, RemoteDataGateway, SubscriptionHandle

logger = get_logger(__name__)


def raise_for_result(result: GatewayResult, action: str, **details: Any) -> None:
    """
    Turn a gateway error value into a NetworkError.

    Raises:
        NetworkError: If the result carries an error
    """
    error = result.error
    if error is None:
        return
    raise NetworkError(
        f"{action} failed: {error.message}",
        code=error.code or "gateway_error",
        user_message=f"Could not {action}. {error.message}",
        details={"action": action, "status": error.status, **details},
    )


class LedgerSession(Generic[P]):
    """
    A ledger kept in sync with one gateway table.

    Subclasses call ``_open_feed`` once and ``close`` when the screen goes
    away; ``close`` releases the subscription exactly once.
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        decoder: RowDecoder[P],
        ledger: OptimisticLedger[P],
    ):
        self.gateway = gateway
        self.auth = auth
        self.decoder = decoder
        self.ledger = ledger
        self._handle: SubscriptionHandle | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_subscribed(self) -> bool:
        return self._handle is not None and self._handle.active

    def entries(self) -> tuple[Entity[P], ...]:
        return self.ledger.entries()

    def _current_user(self) -> UserInfo:
        return self.auth.ensure_authenticated()

    async def _open_feed(self, filters: Filters | None, order: Order, feed_filters: Filters | None = None) -> None:
        """
        Subscribe, then load; events racing the load are absorbed by the merge.

        Args:
            filters: Row filters of the initial load
            order: Order of the initial load
            feed_filters: Filters of the change feed, when narrower filtering happens in ``_on_change``
        """
        if self._handle is None:
            feed = filters if feed_filters is None else feed_filters
            self._handle = await self.gateway.subscribe(self.decoder.table, feed or None, self._on_change)

        result = await self.gateway.select(self.decoder.table, filters, order=order)
        raise_for_result(result, f"load {self.decoder.table}")
        self.ledger.load(self.decoder.decode_many(result.data))
        logger.info("session_loaded", table=self.decoder.table, count=len(self.ledger))

    def _on_change(self, change: Mapping[str, Any]) -> None:
        if self._closed:
            return
        try:
            event = self.decoder.decode_change(change)
        except RecordDecodeError:
            return
        self.ledger.merge_remote(event)

    @contextmanager
    def _rolled_back_on_error(self, temporary_id: str) -> Iterator[None]:
        """Remove the temporary entry when the block raises, cancellation included."""
        try:
            yield
        except BaseException:
            self.ledger.rollback(temporary_id)
            raise

    async def _insert_pending(
        self, temporary_id: str, record: dict[str, Any], action: str, **details: Any
    ) -> Entity[P] | None:
        """
        Insert the row behind a temporary entry, then reconcile it.

        Raises:
            NetworkError: If the insert failed; the temporary entry is gone
        """
        with self._rolled_back_on_error(temporary_id):
            result = await self.gateway.insert(self.decoder.table, record)
            raise_for_result(result, action, temporary_id=temporary_id, **details)
        return self._decode_inserted(temporary_id, result.data)

    def _decode_inserted(self, temporary_id: str, row: Any) -> Entity[P] | None:
        """Reconcile an insert response; an undecodable response leaves it to the change feed."""
        try:
            durable = self.decoder.decode(row)
        except RecordDecodeError:
            self.ledger.rollback(temporary_id)
            return None
        self.ledger.reconcile(temporary_id, durable)
        return durable

    async def close(self) -> None:
        """Release the subscription; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        handle, self._handle = self._handle, None
        if handle is not None:
            await self.gateway.unsubscribe(handle)
        logger.debug("session_closed", table=self.decoder.table)
