"""
WhatsApp approval templates.

Each approval template carries a body with the request facts and two
quick-reply buttons: index 0 carries the approve token, index 1 the reject
token. Template names must match templates registered with Meta.
"""

from decimal import Decimal
from typing import List, Optional, Union

from approval_engine.config.settings import settings
from approval_engine.models.base.enums import ApprovalAction, ApprovalModule
from approval_engine.schemas.whatsapp.messages import (
    ApprovalDetails,
    TemplateComponent,
    TemplateMessage,
    TemplateParameter,
)
from approval_engine.utils.date_utils import format_date_range

__all__ = [
    "LEAVE_TEMPLATE",
    "PURCHASE_TEMPLATE",
    "ASSET_TEMPLATE",
    "format_amount",
    "build_leave_approval_template",
    "build_purchase_approval_template",
    "build_asset_approval_template",
    "build_approval_template",
    "build_action_confirmation_text",
]

LEAVE_TEMPLATE = "leave_approval_request"
PURCHASE_TEMPLATE = "purchase_approval_request"
ASSET_TEMPLATE = "asset_approval_request"

_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

_CONFIRMATION_NOUNS = {
    ApprovalModule.LEAVE_REQUEST: "leave request",
    ApprovalModule.SPEND_REQUEST: "spend request",
    ApprovalModule.ASSET_REQUEST: "asset request",
}


def format_amount(amount: Optional[Union[Decimal, float, int]], currency: Optional[str] = None) -> str:
    """``QAR 1,500.50`` / ``$1,500.00``; missing amounts render as zero."""
    code = (currency or settings.DEFAULT_CURRENCY).upper()
    value = Decimal(str(amount if amount is not None else 0))
    number = f"{value:,.2f}"
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{number}"
    return f"{code} {number}"


def _text(value: str) -> TemplateParameter:
    return TemplateParameter(type="text", text=value)


def _components(body: List[str], approve_token: str, reject_token: str) -> List[TemplateComponent]:
    return [
        TemplateComponent(type="body", parameters=[_text(v) for v in body]),
        TemplateComponent(
            type="button",
            sub_type="quick_reply",
            index=0,
            parameters=[TemplateParameter(type="payload", payload=approve_token)],
        ),
        TemplateComponent(
            type="button",
            sub_type="quick_reply",
            index=1,
            parameters=[TemplateParameter(type="payload", payload=reject_token)],
        ),
    ]


def _message(to: str, name: str, body: List[str], approve_token: str, reject_token: str) -> TemplateMessage:
    return TemplateMessage(
        to=to,
        template_name=name,
        language_code=settings.WHATSAPP_TEMPLATE_LANGUAGE,
        components=_components(body, approve_token, reject_token),
    )


def build_leave_approval_template(
    to: str,
    details: ApprovalDetails,
    approve_token: str,
    reject_token: str,
) -> TemplateMessage:
    """Body: requester, leave type, date range, reason."""
    body = [
        details.requester_name,
        details.leave_type or "Leave",
        format_date_range(details.start_date, details.end_date),
        details.reason or "No reason provided",
    ]
    return _message(to, LEAVE_TEMPLATE, body, approve_token, reject_token)


def build_purchase_approval_template(
    to: str,
    details: ApprovalDetails,
    approve_token: str,
    reject_token: str,
) -> TemplateMessage:
    """Body: requester, title, formatted amount."""
    body = [
        details.requester_name,
        details.title or "Spend Request",
        format_amount(details.total_amount, details.currency),
    ]
    return _message(to, PURCHASE_TEMPLATE, body, approve_token, reject_token)


def build_asset_approval_template(
    to: str,
    details: ApprovalDetails,
    approve_token: str,
    reject_token: str,
) -> TemplateMessage:
    """Body: requester, ``type - name``, justification."""
    asset = details.asset_name or "Asset"
    if details.asset_type:
        asset = f"{details.asset_type} - {asset}"
    body = [
        details.requester_name,
        asset,
        details.justification or "No justification provided",
    ]
    return _message(to, ASSET_TEMPLATE, body, approve_token, reject_token)


_BUILDERS = {
    ApprovalModule.LEAVE_REQUEST: build_leave_approval_template,
    ApprovalModule.SPEND_REQUEST: build_purchase_approval_template,
    ApprovalModule.ASSET_REQUEST: build_asset_approval_template,
}


def _module(entity_type) -> ApprovalModule:
    try:
        return ApprovalModule(entity_type)
    except ValueError:
        raise ValueError(f"Unknown entity type: {entity_type}")


def build_approval_template(
    to: str,
    entity_type: ApprovalModule,
    details: ApprovalDetails,
    approve_token: str,
    reject_token: str,
) -> TemplateMessage:
    """
    Build the approval template for an entity type.

    Raises:
        ValueError: For an unknown entity type
    """
    builder = _BUILDERS[_module(entity_type)]
    return builder(to, details, approve_token, reject_token)


def build_action_confirmation_text(
    action: ApprovalAction,
    entity_type: ApprovalModule,
    details: ApprovalDetails,
) -> str:
    """Plain-text reply sent after an approver acts from the chat."""
    verb = "approved" if ApprovalAction(action) == ApprovalAction.APPROVE else "rejected"
    noun = _CONFIRMATION_NOUNS[_module(entity_type)]
    subject = f' "{details.title}"' if details.title else ""
    return f"You have {verb} the {noun}{subject} from {details.requester_name}."
