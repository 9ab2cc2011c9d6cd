"""
Template Engine - outbound candidate messages

A recruiter's template is a message body with placeholders. Exactly
three are recognized:

    {name}      candidate name
    {job}       vacancy title
    {username}  candidate's messaging handle

Anything else in braces is left as written. The backend produces the
final text and the messenger deep link; the client previews locally,
sends the right context fields, and only fills in what the backend
leaves out.
"""

import re
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote

from loguru import logger

from config import config
from recruitai.orchestrator.schema import GeneratedMessage, MessageContext, Template

if TYPE_CHECKING:
    from recruitai.clients.recruiting_client import RecruitingApiClient


RECOGNIZED_TOKENS = ("name", "job", "username")


class TemplateEngine:
    def __init__(
        self,
        client: Optional["RecruitingApiClient"] = None,
        contact_placeholder: Optional[str] = None,
        name_fallback: Optional[str] = None,
        deep_link_base: Optional[str] = None,
    ):
        self.client = client
        self.contact_placeholder = contact_placeholder or config.workflow.contact_placeholder
        self.name_fallback = name_fallback or config.workflow.candidate_name_fallback
        self.deep_link_base = (deep_link_base or config.workflow.deep_link_base).rstrip("/")
        self._compile_patterns()

    def _compile_patterns(self):
        # {token}: identifier characters only, no spaces
        self.token_pattern = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

    def values_for(self, context: MessageContext) -> dict[str, str]:
        """Token values, with the documented fallbacks for missing fields"""
        return {
            "name": context.candidate_name or self.name_fallback,
            "job": context.vacancy_title,
            "username": (context.contact_handle or "").lstrip("@") or self.contact_placeholder,
        }

    def render(self, body_text: str, context: MessageContext) -> str:
        """Single pass: substituted values are never re-scanned for tokens."""
        values = self.values_for(context)

        def substitute(match: re.Match) -> str:
            token = match.group(1)
            if token in values:
                return values[token]
            return match.group(0)

        return self.token_pattern.sub(substitute, body_text)

    def unknown_tokens(self, body_text: str) -> list[str]:
        """Tokens a recruiter typed that will not be substituted."""
        return [t for t in self.token_pattern.findall(body_text) if t not in RECOGNIZED_TOKENS]

    def build_deep_link(self, contact_handle: str, text: str) -> str:
        handle = quote(contact_handle.lstrip("@"), safe="")
        return f"{self.deep_link_base}/{handle}?text={quote(text, safe='')}"

    async def generate(self, template: Template, context: MessageContext) -> GeneratedMessage:
        """
        Ask the backend to generate the message for `template`.

        The backend answer is handed back as-is; text or link are only
        filled in locally when the backend omitted them.
        """
        if self.client is None:
            raise RuntimeError("TemplateEngine.generate needs an API client")

        values = self.values_for(context)
        message = await self.client.generate_message(
            template.id,
            candidate_name=values["name"],
            contact_handle=values["username"],
            vacancy_title=values["job"],
        )

        text = message.text
        if text is None:
            text = self.render(template.body_text, context)
            logger.debug(f"Backend returned no text for template {template.id}, using local render")

        deep_link = message.deep_link
        if not deep_link:
            deep_link = self.build_deep_link(values["username"], text)
            logger.debug(f"Backend returned no link for template {template.id}, built one locally")

        logger.info(f"Generated message from template '{template.title}' for {values['name']}")
        return GeneratedMessage(text=text, deep_link=deep_link)
