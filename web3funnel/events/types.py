from enum import Enum


class EventType(str, Enum):
    """
    Interactions the tracker knows how to capture.
    """

    WALLET_CONNECT = "wallet_connect"
    WALLET_DISCONNECT = "wallet_disconnect"
    TRANSACTION_START = "transaction_start"
    TRANSACTION_COMPLETE = "transaction_complete"
    TRANSACTION_FAILED = "transaction_failed"
    PAGE_VIEW = "page_view"
    BUTTON_CLICK = "button_click"
    FORM_SUBMIT = "form_submit"
    CUSTOM_EVENT = "custom_event"


class WalletType(str, Enum):
    METAMASK = "metamask"
    WALLETCONNECT = "walletconnect"
    COINBASE = "coinbase"
    PHANTOM = "phantom"
    OTHER = "other"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
