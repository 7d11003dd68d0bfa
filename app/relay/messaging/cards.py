"""Adaptive Card asking the user for the Direct Line token to relay to."""

from __future__ import annotations

from typing import Any

from botbuilder.schema import Activity, ActivityTypes, Attachment

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"

START_CONVERSATION_ACTION = "StartConversation"
TOKEN_INPUT_ID = "token"


def _adaptive_card_attachment(card_json: dict) -> Attachment:
    card_json.setdefault("type", "AdaptiveCard")
    card_json.setdefault("version", "1.5")
    card_json.setdefault("$schema", "http://adaptivecards.io/schemas/adaptive-card.json")
    return Attachment(content_type=ADAPTIVE_CARD_CONTENT_TYPE, content=card_json)


def token_prompt_attachment(default_token: str = "") -> Attachment:
    token_input: dict[str, Any] = {
        "type": "Input.Text",
        "id": TOKEN_INPUT_ID,
        "label": "Direct Line token",
        "isMultiline": True,
        "isRequired": True,
        "errorMessage": "Token is required",
        "style": "Password",
    }
    if default_token:
        token_input["value"] = default_token

    return _adaptive_card_attachment({
        "body": [
            {
                "type": "TextBlock",
                "size": "large",
                "weight": "bolder",
                "text": "Relay to Direct Line bot",
                "horizontalAlignment": "left",
                "wrap": True,
                "style": "heading",
            },
            {
                "type": "TextBlock",
                "text": (
                    "Please enter the Direct Line token of the bot to talk to, "
                    'then click "Start conversation" button to start.'
                ),
                "wrap": True,
            },
            {
                "type": "TextBlock",
                "isSubtle": True,
                "size": "Small",
                "text": "Tips: You can also send the token as a message.",
                "wrap": True,
            },
            token_input,
        ],
        "actions": [
            {
                "type": "Action.Submit",
                "title": "Start conversation",
                "data": {"id": START_CONVERSATION_ACTION},
            },
        ],
    })


def token_prompt_activity(default_token: str = "") -> Activity:
    return Activity(
        type=ActivityTypes.message,
        attachments=[token_prompt_attachment(default_token)],
    )


def start_token_from_value(value: Any) -> str | None:
    """Return the submitted token if *value* is a start-conversation submit.

    ``None`` means *value* is not a submit at all; an empty string means the
    card was submitted without a token.
    """
    if not isinstance(value, dict) or value.get("id") != START_CONVERSATION_ACTION:
        return None
    token = value.get(TOKEN_INPUT_ID)
    return token.strip() if isinstance(token, str) else ""
