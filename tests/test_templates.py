from datetime import date
from decimal import Decimal

import pytest

from approval_engine.models.base.enums import ApprovalAction, ApprovalModule
from approval_engine.schemas.whatsapp.messages import ApprovalDetails
from approval_engine.services.notification.templates import (
    ASSET_TEMPLATE,
    LEAVE_TEMPLATE,
    PURCHASE_TEMPLATE,
    build_action_confirmation_text,
    build_approval_template,
    format_amount,
)


def body_texts(message):
    return [p.text for p in message.body_parameters()]


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (Decimal("1500.5"), "QAR", "QAR 1,500.50"),
        (Decimal("99"), "usd", "$99.00"),
        (Decimal("1234567.891"), "EUR", "€1,234,567.89"),
        (None, "GBP", "£0.00"),
        (250, None, "QAR 250.00"),
    ],
)
def test_format_amount(amount, currency, expected):
    assert format_amount(amount, currency) == expected


def test_leave_template_body_and_buttons():
    details = ApprovalDetails(
        requester_name="Eli Employee",
        leave_type="Annual Leave",
        start_date=date(2026, 3, 5),
        end_date=date(2026, 3, 7),
        reason="Family trip",
    )
    message = build_approval_template("+97455500002", ApprovalModule.LEAVE_REQUEST, details, "a:1", "r:2")

    assert message.template_name == LEAVE_TEMPLATE
    assert body_texts(message) == ["Eli Employee", "Annual Leave", "Mar 5 - Mar 7", "Family trip"]
    buttons = message.buttons()
    assert [(b.sub_type, b.index, b.parameters[0].payload) for b in buttons] == [
        ("quick_reply", 0, "a:1"),
        ("quick_reply", 1, "r:2"),
    ]


def test_leave_template_defaults():
    details = ApprovalDetails(start_date=date(2026, 3, 5), end_date=date(2026, 3, 5))
    message = build_approval_template("+1", ApprovalModule.LEAVE_REQUEST, details, "a", "r")
    assert body_texts(message) == ["Employee", "Leave", "Mar 5", "No reason provided"]


def test_purchase_template_body():
    details = ApprovalDetails(
        requester_name="Eli Employee",
        title="Office chairs",
        total_amount=Decimal("1500.50"),
        currency="QAR",
    )
    message = build_approval_template("+1", ApprovalModule.SPEND_REQUEST, details, "a", "r")
    assert message.template_name == PURCHASE_TEMPLATE
    assert body_texts(message) == ["Eli Employee", "Office chairs", "QAR 1,500.50"]


def test_asset_template_body():
    details = ApprovalDetails(requester_name="Eli Employee", asset_name="ThinkPad X1", asset_type="Laptop")
    message = build_approval_template("+1", ApprovalModule.ASSET_REQUEST, details, "a", "r")
    assert message.template_name == ASSET_TEMPLATE
    assert body_texts(message) == ["Eli Employee", "Laptop - ThinkPad X1", "No justification provided"]


def test_components_serialize_for_graph_api():
    message = build_approval_template("+1", ApprovalModule.SPEND_REQUEST, ApprovalDetails(), "a", "r")
    body, approve, _ = [c.to_api() for c in message.components]
    assert body == {"type": "body", "parameters": [
        {"type": "text", "text": "Employee"},
        {"type": "text", "text": "Spend Request"},
        {"type": "text", "text": "QAR 0.00"},
    ]}
    assert approve == {
        "type": "button",
        "sub_type": "quick_reply",
        "index": 0,
        "parameters": [{"type": "payload", "payload": "a"}],
    }


def test_unknown_entity_type():
    with pytest.raises(ValueError, match="Unknown entity type"):
        build_approval_template("+1", "TRAVEL_REQUEST", ApprovalDetails(), "a", "r")


def test_confirmation_text():
    spend = ApprovalDetails(requester_name="Eli Employee", title="Office chairs")
    leave = ApprovalDetails(requester_name="Eli Employee")
    assert build_action_confirmation_text(ApprovalAction.APPROVE, ApprovalModule.SPEND_REQUEST, spend) == (
        'You have approved the spend request "Office chairs" from Eli Employee.'
    )
    assert build_action_confirmation_text(ApprovalAction.REJECT, ApprovalModule.LEAVE_REQUEST, leave) == (
        "You have rejected the leave request from Eli Employee."
    )
