from __future__ import annotations

import logging
import uuid
from functools import wraps
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from web3funnel.events import (
    EventRecord,
    EventType,
    TransactionInfo,
    WalletType,
)

from .callbacks import TrackerCallbacks
from .config import TrackerConfig
from .probe import (
    BrowserEnvironment,
    device_info,
    element_info,
    page_info,
    performance_metrics,
)
from .queue import EventQueue
from .transport import Transport

LOG = logging.getLogger(__name__)

TransactionData = Union[TransactionInfo, Mapping[str, Any]]

VISIBILITY_HIDDEN = "hidden"


def generate_id() -> str:
    return str(uuid.uuid4())


def capture(func):
    """
    Keep tracking calls from raising into the embedding code: input that
    cannot form an event record is logged and dropped.
    """

    @wraps(func)
    def inner(self, *args, **kwargs):
        try:
            func(self, *args, **kwargs)
        except ValidationError as e:
            LOG.warning("Dropping event from %s: %s", func.__name__, e)

    return inner


class Tracker:
    """
    Captures interactions for one website during one page load.

    Each instance owns its identifiers, queue and timers. Tracking calls only
    enqueue and never raise; delivery happens in the background on the
    running event loop.

    Usage::

        async with Tracker(website_id, api_key, environment=env) as tracker:
            tracker.track_wallet_connect("0x...", "metamask")
    """

    def __init__(
        self,
        website_id: str,
        api_key: str,
        environment: Optional[BrowserEnvironment] = None,
        config: Optional[TrackerConfig] = None,
        transport: Optional[Transport] = None,
        callbacks: Optional[TrackerCallbacks] = None,
    ):
        self.website_id = website_id
        self.api_key = api_key
        self.environment = environment or BrowserEnvironment()
        self.config = config or TrackerConfig()

        self.user_id = generate_id()
        self.session_id = generate_id()
        self.is_initialized = False

        self.transport = transport or Transport(
            self.config.api_base_url,
            api_key,
            timeout=self.config.timeout,
            connect_attempts=self.config.connect_attempts,
        )
        self.queue = EventQueue(self.transport, self.config, callbacks)

    async def __aenter__(self) -> "Tracker":
        self.init()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def init(self) -> None:
        """
        Record the initial page view and start batch processing.
        Must be called from a running event loop; otherwise ``RuntimeError``
        is raised and the tracker stays uninitialized.
        """
        if self.is_initialized:
            LOG.warning("Web3 Funnel already initialized")
            return

        self.queue.start()
        self.is_initialized = True
        self.track_page_view()

        LOG.info("Web3 Funnel Analytics initialized for website %s", self.website_id)

    async def close(self, flush: bool = True) -> None:
        await self.queue.close(flush=flush)
        await self.transport.aclose()
        self.is_initialized = False

    def _record(self, event_type: EventType, **fields: Any) -> EventRecord:
        return EventRecord(
            event_type=event_type,
            user_id=self.user_id,
            session_id=self.session_id,
            **fields,
        )

    def _queue_event(self, record: EventRecord) -> None:
        self.queue.enqueue(record)

    @capture
    def track_page_view(self) -> None:
        environment = self.environment
        self._queue_event(
            self._record(
                EventType.PAGE_VIEW,
                page=page_info(environment),
                performance=performance_metrics(
                    environment.timing, environment.paint_entries
                ),
                device_info=device_info(environment.user_agent),
            )
        )

    @capture
    def track_wallet_connect(
        self, wallet_address: str, wallet_type: Union[WalletType, str] = WalletType.OTHER
    ) -> None:
        self._queue_event(
            self._record(
                EventType.WALLET_CONNECT,
                wallet_address=wallet_address,
                wallet_type=_wallet_type(wallet_type),
            )
        )

    @capture
    def track_wallet_disconnect(self, wallet_address: Optional[str] = None) -> None:
        self._queue_event(
            self._record(EventType.WALLET_DISCONNECT, wallet_address=wallet_address)
        )

    @capture
    def track_transaction(self, transaction: TransactionData) -> None:
        self._queue_event(
            self._record(
                EventType.TRANSACTION_START, transaction=_transaction(transaction)
            )
        )

    @capture
    def track_transaction_complete(self, transaction: TransactionData) -> None:
        self._queue_event(
            self._record(
                EventType.TRANSACTION_COMPLETE, transaction=_transaction(transaction)
            )
        )

    @capture
    def track_transaction_failed(
        self,
        transaction: TransactionData,
        error: Optional[Union[BaseException, str]] = None,
    ) -> None:
        message = str(error) if error is not None and str(error) else "Unknown error"
        self._queue_event(
            self._record(
                EventType.TRANSACTION_FAILED,
                transaction=_transaction(transaction),
                custom_data={"error": message},
            )
        )

    @capture
    def track_button_click(
        self, element: Any, custom_data: Optional[Dict[str, Any]] = None
    ) -> None:
        self._queue_event(
            self._record(
                EventType.BUTTON_CLICK,
                element=element_info(element),
                custom_data=dict(custom_data or {}),
            )
        )

    @capture
    def track_form_submit(
        self, form: Any, custom_data: Optional[Dict[str, Any]] = None
    ) -> None:
        self._queue_event(
            self._record(
                EventType.FORM_SUBMIT,
                element=element_info(form),
                custom_data=dict(custom_data or {}),
            )
        )

    @capture
    def track_custom_event(
        self, event_name: str, custom_data: Optional[Dict[str, Any]] = None
    ) -> None:
        self._queue_event(
            self._record(
                EventType.CUSTOM_EVENT,
                custom_data={"eventName": event_name, **(custom_data or {})},
            )
        )

    def on_visibility_change(self, visibility_state: str) -> None:
        if visibility_state == VISIBILITY_HIDDEN:
            self.queue.flush_nowait()

    def on_before_unload(self) -> None:
        self.queue.flush_nowait()

    def on_accounts_changed(self, accounts: Sequence[str]) -> None:
        """
        Wallet provider hook: a non-empty account list means the first
        account connected, an empty one means the wallet disconnected.
        """
        if accounts:
            self.track_wallet_connect(accounts[0], WalletType.METAMASK)
        else:
            self.track_wallet_disconnect()


def _wallet_type(value: Union[WalletType, str]) -> WalletType:
    try:
        return WalletType(value)
    except ValueError:
        LOG.debug("Unknown wallet type %r, recorded as other", value)
        return WalletType.OTHER


def _transaction(data: TransactionData) -> TransactionInfo:
    if isinstance(data, TransactionInfo):
        return data
    return TransactionInfo.model_validate(dict(data))
