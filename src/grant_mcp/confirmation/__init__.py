"""Confirmation dialogs and the host surface they render on."""

from .dialog import (
    CANCEL_BUTTON,
    DENIED_REASON,
    GRANT_BUTTON,
    SHOW_MORE_BUTTON,
    TIMEOUT_REASON,
    ConfirmationDecision,
    ConfirmationDialog,
    ConfirmationDialogFactory,
    DialogUiState,
)
from .host import DialogHost, HostedInterface, InMemoryDialogHost

__all__ = [
    "CANCEL_BUTTON",
    "DENIED_REASON",
    "GRANT_BUTTON",
    "SHOW_MORE_BUTTON",
    "TIMEOUT_REASON",
    "ConfirmationDecision",
    "ConfirmationDialog",
    "ConfirmationDialogFactory",
    "DialogHost",
    "DialogUiState",
    "HostedInterface",
    "InMemoryDialogHost",
]
