"""Prompt template for drafting a bulk-mail body from its subject line."""

BODY_PROMPT_TEMPLATE = (
    "Compose a professional and engaging email body. "
    'The subject of the email is: "{subject}". '
    "The email should be suitable for a bulk mailing campaign. "
    "Make it concise and compelling."
)


def build_body_prompt(subject: str, custom_prompt: str | None = None) -> str:
    """Return ``custom_prompt`` when given, otherwise the fixed template for ``subject``."""
    if custom_prompt:
        return custom_prompt
    return BODY_PROMPT_TEMPLATE.format(subject=subject)
