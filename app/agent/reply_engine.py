# app/agent/reply_engine.py
"""
Deterministic, rule-based bot replies. No model calls, no shared state:
`resolve` maps the user's text to a reply using ordered rule tables.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Tuple, Union

from app.agent.calculator import evaluate, filter_expression

Responder = Union[str, Callable[[], str]]

CALCULATE_PREFIX = "calculate "

CALCULATION_FAILED_REPLY = (
    "I couldn't calculate that. Please send a valid arithmetic expression, "
    "e.g. `calculate 2+2*3`."
)
FALLBACK_SUGGESTION = (
    "I don't fully understand that yet, try asking something simpler "
    "(e.g., 'help', 'time', 'faq')."
)


@dataclass(frozen=True)
class KeywordRule:
    """Matches when any keyword is a substring of the normalized text."""
    keywords: Tuple[str, ...]
    responder: Responder

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)

    def reply(self) -> str:
        return self.responder() if callable(self.responder) else self.responder


@dataclass(frozen=True)
class IntentRule:
    """Secondary rule driven by a predicate over the normalized text."""
    predicate: Callable[[str], bool]
    reply: str


def current_time_reply() -> str:
    return f"Current server time is: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"


# Order matters: the first matching rule wins.
DEFAULT_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("hello", "hi", "hey"), "Hello! 👋 How can I help you today?"),
    KeywordRule(
        ("how are you", "how r you", "how are u"),
        "I'm a bot, always ready to help! How can I assist you?",
    ),
    KeywordRule(
        ("help", "support"),
        "I can answer simple questions, save chat history, and echo your messages. "
        "Try typing 'faq' or ask for 'time'.",
    ),
    KeywordRule(("time", "what time", "current time"), current_time_reply),
    KeywordRule(("bye", "goodbye", "see you"), "Goodbye! If you need me again, just start a new chat. 👋"),
    KeywordRule(
        ("faq", "questions"),
        "You can ask about registration, login, or chat features. "
        "Example: 'How do I reset my password?'",
    ),
)

DEFAULT_INTENTS: Tuple[IntentRule, ...] = (
    IntentRule(
        lambda text: "register" in text or "signup" in text or "sign up" in text,
        "To register, use the Register button and provide your name, email and password. "
        "If you'd like, I can create a demo request for you.",
    ),
    IntentRule(
        lambda text: "login" in text or "log in" in text,
        "To log in, use your registered email and password at the login page. "
        "If you forgot your password, ask for 'reset password'.",
    ),
    IntentRule(
        lambda text: "reset" in text and "password" in text,
        "Password reset is not implemented in this demo. "
        "In production you'd receive a reset link by email.",
    ),
)


def normalize(text: str) -> str:
    return (text or "").strip().lower()


def calculate_reply(expression: str) -> str:
    """Evaluate a `calculate` command body; never raises."""
    filtered = filter_expression(expression).strip()
    if not filtered:
        return CALCULATION_FAILED_REPLY
    try:
        return f"Result: {evaluate(filtered)}"
    except (ValueError, RecursionError, OverflowError):
        # CalculationError is a ValueError; so is int-to-str past the digit limit
        return CALCULATION_FAILED_REPLY


def resolve(
    text: str,
    rules: Tuple[KeywordRule, ...] = DEFAULT_RULES,
    intents: Tuple[IntentRule, ...] = DEFAULT_INTENTS,
) -> str:
    normalized = normalize(text)

    for rule in rules:
        if rule.matches(normalized):
            return rule.reply()

    for intent in intents:
        if intent.predicate(normalized):
            return intent.reply

    if normalized.startswith(CALCULATE_PREFIX):
        return calculate_reply(normalized[len(CALCULATE_PREFIX):])

    return f'You said: "{text}". {FALLBACK_SUGGESTION}'
