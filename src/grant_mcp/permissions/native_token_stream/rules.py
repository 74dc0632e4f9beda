"""Editable fields of the native token stream confirmation."""

from dataclasses import replace
from typing import Any, Optional

from loguru import logger

from ..dates import TimePeriod, normalize_readable
from ..rules import RuleDefinition
from .types import NativeTokenStreamContext

INITIAL_AMOUNT_ELEMENT = "native-token-stream-initial-amount"
MAX_AMOUNT_ELEMENT = "native-token-stream-max-amount"
START_TIME_ELEMENT = "native-token-stream-start-time"
AMOUNT_PER_PERIOD_ELEMENT = "native-token-stream-amount-per-period"
TIME_PERIOD_ELEMENT = "native-token-stream-time-period"
EXPIRY_ELEMENT = "native-token-stream-expiry"


def _amount(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _date(value: Any) -> str:
    # unparseable dates are kept verbatim so metadata can flag them
    return normalize_readable(value) or str(value)


def _with_details(context: NativeTokenStreamContext, **changes) -> NativeTokenStreamContext:
    return replace(context, permission_details=replace(context.permission_details, **changes))


def _update_time_period(context: NativeTokenStreamContext, value: Any) -> NativeTokenStreamContext:
    try:
        time_period = TimePeriod(value)
    except ValueError:
        logger.warning(f"Ignoring unknown stream period: {value!r}")
        return context
    return _with_details(context, time_period=time_period)


initial_amount_rule = RuleDefinition(
    name=INITIAL_AMOUNT_ELEMENT,
    label="Initial Amount",
    field_type="number",
    get_value=lambda context: context.permission_details.initial_amount,
    update_context=lambda context, value: _with_details(context, initial_amount=_amount(value)),
    get_error=lambda metadata: metadata.validation_errors.get("initial_amount"),
    tooltip="The initial amount of tokens that can be streamed.",
)

max_amount_rule = RuleDefinition(
    name=MAX_AMOUNT_ELEMENT,
    label="Max Amount",
    field_type="number",
    get_value=lambda context: context.permission_details.max_amount,
    update_context=lambda context, value: _with_details(context, max_amount=_amount(value)),
    get_error=lambda metadata: metadata.validation_errors.get("max_amount"),
    tooltip="The maximum amount of tokens that can be streamed.",
)

start_time_rule = RuleDefinition(
    name=START_TIME_ELEMENT,
    label="Start Time",
    field_type="datetime",
    get_value=lambda context: context.permission_details.start_time,
    update_context=lambda context, value: _with_details(context, start_time=_date(value)),
    get_error=lambda metadata: metadata.validation_errors.get("start_time"),
    tooltip="The start time of the stream (UTC).",
)

expiry_rule = RuleDefinition(
    name=EXPIRY_ELEMENT,
    label="Expiry",
    field_type="datetime",
    get_value=lambda context: context.expiry,
    update_context=lambda context, value: replace(context, expiry=_date(value)),
    get_error=lambda metadata: metadata.validation_errors.get("expiry"),
    tooltip="The expiry date of the permission (UTC).",
)

amount_per_period_rule = RuleDefinition(
    name=AMOUNT_PER_PERIOD_ELEMENT,
    label="Stream Amount",
    field_type="number",
    get_value=lambda context: context.permission_details.amount_per_period,
    update_context=lambda context, value: _with_details(context, amount_per_period=_amount(value) or ""),
    get_error=lambda metadata: metadata.validation_errors.get("amount_per_period"),
    tooltip="The amount of tokens that can be streamed per period.",
)

time_period_rule = RuleDefinition(
    name=TIME_PERIOD_ELEMENT,
    label="Stream Period",
    field_type="dropdown",
    get_value=lambda context: context.permission_details.time_period.value,
    update_context=_update_time_period,
    tooltip="The period of the stream.",
    options=[period.value for period in TimePeriod],
)

ALL_RULES = [
    initial_amount_rule,
    max_amount_rule,
    start_time_rule,
    expiry_rule,
    amount_per_period_rule,
    time_period_rule,
]
