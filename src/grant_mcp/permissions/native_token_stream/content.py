"""Confirmation content for native token stream permissions."""

from ...confirmation import ui as ui_builder
from ...confirmation.dialog import SHOW_MORE_BUTTON, DialogUiState
from ...confirmation.ui import UiElement
from ..rules import render_rules
from .rules import (
    amount_per_period_rule,
    expiry_rule,
    initial_amount_rule,
    max_amount_rule,
    start_time_rule,
    time_period_rule,
)
from .types import NativeTokenStreamContext, NativeTokenStreamMetadata

JUSTIFICATION_PREVIEW_LENGTH = 80


def _justification(justification: str, ui_state: DialogUiState) -> UiElement:
    if len(justification) <= JUSTIFICATION_PREVIEW_LENGTH:
        return ui_builder.section(ui_builder.text("Reason"), ui_builder.text(justification, muted=True))

    if ui_state.is_justification_collapsed:
        shown = justification[:JUSTIFICATION_PREVIEW_LENGTH].rstrip() + "..."
        toggle_label = "Show more"
    else:
        shown = justification
        toggle_label = "Show less"

    return ui_builder.section(
        ui_builder.text("Reason"),
        ui_builder.text(shown, muted=True),
        ui_builder.button(SHOW_MORE_BUTTON, toggle_label, variant="secondary"),
    )


def create_confirmation_content(
    context: NativeTokenStreamContext,
    metadata: NativeTokenStreamMetadata,
    ui_state: DialogUiState,
) -> UiElement:
    symbol = context.token_metadata.symbol
    return ui_builder.box(
        ui_builder.heading("Native token stream"),
        _justification(context.justification, ui_state),
        ui_builder.section(
            ui_builder.text("Stream from"),
            ui_builder.text(context.account_details.address),
            ui_builder.text(f"Network: {context.account_details.chain_name}", muted=True),
        ),
        ui_builder.section(
            *render_rules([amount_per_period_rule, time_period_rule], context, metadata),
            ui_builder.input_field(
                name="stream-rate",
                label="Stream rate",
                value=f"{metadata.amount_per_second} {symbol}/sec",
                disabled=True,
            ),
        ),
        ui_builder.section(
            *render_rules(
                [initial_amount_rule, max_amount_rule, start_time_rule, expiry_rule],
                context,
                metadata,
            )
        ),
    )


def create_skeleton_confirmation_content() -> UiElement:
    return ui_builder.box(
        ui_builder.heading("Native token stream"),
        ui_builder.skeleton("justification"),
        ui_builder.skeleton("account-details"),
        ui_builder.skeleton("stream-details"),
    )
