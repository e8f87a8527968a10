"""
MessageML formatting helpers.

Outbound text is always delivered wrapped in the platform's ``<messageML>``
root tag. Mentions use ``<mention email="..."/>``.
"""

ROOT_OPEN = "<messageML>"
ROOT_CLOSE = "</messageML>"

# Ampersand must be replaced first so the other entities are not re-escaped.
_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
)


def escape_xml(text: str) -> str:
    """
    Escape the characters MessageML reserves.

    Args:
        text: Raw text.

    Returns:
        Text with ``&``, ``<`` and ``>`` each replaced exactly once.
    """
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def is_message_ml(text: str) -> bool:
    """Check whether text is already a MessageML document."""
    return text.startswith(ROOT_OPEN)


def format_message(text: str) -> str:
    """
    Wrap plain text in the root tag; pass MessageML through untouched.

    No escaping is applied. Callers sending markup are responsible for it.

    Args:
        text: Plain text or a MessageML document.

    Returns:
        A MessageML document.
    """
    if is_message_ml(text):
        return text
    return f"{ROOT_OPEN}{text}{ROOT_CLOSE}"


def mention(email: str) -> str:
    """Build a mention element for the given email address."""
    return f'<mention email="{email}"/>'


def format_reply(recipient_email: str, text: str) -> str:
    """
    Build a reply that @mentions the recipient.

    The body is escaped before the mention is prepended, so the mention
    element itself stays intact.

    Args:
        recipient_email: Email address of the user being replied to.
        text: Plain reply text.

    Returns:
        A MessageML document.
    """
    body = escape_xml(text)
    return f"{ROOT_OPEN}{mention(recipient_email)}{body}{ROOT_CLOSE}"


def strip_message_ml(markup: str) -> str:
    """
    Remove one outer root wrapper from an inbound message body.

    Inner content, including newlines and nested markup, is kept verbatim.
    Bodies without the wrapper are returned unchanged.
    """
    if markup.startswith(ROOT_OPEN) and markup.endswith(ROOT_CLOSE):
        return markup[len(ROOT_OPEN) : -len(ROOT_CLOSE)]
    return markup
