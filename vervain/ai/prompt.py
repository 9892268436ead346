"""Prompt for the optional AI phishing analysis (PUSHED/VERIFY framework)."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..constants import AI_MAX_BODY_CHARS

SYSTEM_PROMPT = """You are an expert email security analyst. Analyze the provided email for phishing indicators using two frameworks:

## PUSHED Framework (Emotional Manipulation)
Evaluate each indicator:
- **Pressure**: Does the email pressure the recipient into acting without thinking?
- **Urgency**: Are there artificial deadlines or time-sensitive language?
- **Surprise**: Does the email contain unexpected or out-of-context requests?
- **High-stakes**: Does it threaten severe consequences (account loss, legal action, financial harm)?
- **Excitement**: Does it promise rewards, prizes, or too-good-to-be-true offers?
- **Desperation**: Does it appeal to fear, helplessness, or emotional vulnerability?

## VERIFY Framework (Technical Indicators)
Check all relevant flags:
- **sender_domain**: Is the sender domain legitimate, or similar to a known domain?
- **reply_to_mismatch**: Does the reply-to differ from the sender?
- **link_mismatch**: Do displayed URLs differ from actual href targets?
- **suspicious_links**: Are there links to unusual or newly registered domains?
- **sensitive_request**: Does the email request credentials, payment, personal info, or clicking a link?
- **attachments**: Are there suspicious attachment types or unexpected attachments?
- **greeting**: Is the greeting generic ("Dear Customer") rather than personalized?
- **grammar**: Are there unusual grammar, spelling, or formatting issues?
- **branding**: Does the email poorly imitate a brand's visual style?

## Response Format
Respond with ONLY a JSON object (no markdown, no explanation outside the JSON):
{
  "confidence": <0-100 integer>,
  "label": "<safe|caution|suspicious>",
  "pushed": {
    "pressure": { "detected": <boolean>, "evidence": <string or null> },
    "urgency": { "detected": <boolean>, "evidence": <string or null> },
    "surprise": { "detected": <boolean>, "evidence": <string or null> },
    "highStakes": { "detected": <boolean>, "evidence": <string or null> },
    "excitement": { "detected": <boolean>, "evidence": <string or null> },
    "desperation": { "detected": <boolean>, "evidence": <string or null> }
  },
  "verify": [
    { "flag": "<flag_name>", "status": "<warning|ok>", "detail": "<explanation>" }
  ],
  "reasoning": "<2-3 sentence summary>"
}

## Scoring
- confidence 0-30 -> label "safe"
- confidence 31-60 -> label "caution"
- confidence 61-100 -> label "suspicious"

Only include VERIFY flags that are relevant to this specific email. Be thorough but avoid false positives. Base your analysis on concrete evidence from the email content."""


@dataclass
class EmailFields:
    """The message content sent for analysis."""

    sender_name: str = ""
    sender_email: str = ""
    subject: str = ""
    body: str = ""
    urls: list[str] = field(default_factory=list)


def build_user_message(email: EmailFields, max_body_chars: int = AI_MAX_BODY_CHARS) -> str:
    body = email.body or ""
    truncated = len(body) > max_body_chars
    if truncated:
        body = body[:max_body_chars]

    message = "Analyze this email for phishing indicators:\n\n"
    message += f"**From:** {email.sender_name} <{email.sender_email}>\n"
    message += f"**Subject:** {email.subject}\n\n"
    message += f"**Body:**\n{body}\n"

    if email.urls:
        message += "\n**URLs found in email:**\n"
        for url in email.urls:
            message += f"- {url}\n"

    if truncated:
        message += f"\n[Email truncated - original was {len(email.body)} characters]"

    return message
