"""
Live conversation about a project's code.

A session is either a Tavus video conversation (when Tavus is configured
with a replica) or a text-only chat answered through the provider gateway.
Session rows are created by the app; the worker moves them through
initializing → active → ended (or error).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..errors import ProviderCallError
from ..provider_gateway import Capability, ProviderGateway
from ..tavus import TavusClient
from .models import ConversationReply, ConversationSessionResponse, Project
from .project_service import ProjectStore, SessionStore

logger = logging.getLogger(__name__)

MENTOR_PROMPT = """You are an expert software engineer and code mentor having a live conversation about the following code project:

PROJECT: {title}

CODE TO DISCUSS:
```
{code}
```

CONVERSATION GUIDELINES:
- You are having a natural, interactive conversation about this specific code
- Be friendly, knowledgeable, and encouraging
- Answer questions about the code implementation, design patterns, best practices
- Explain complex concepts in simple terms
- Suggest improvements and alternatives when appropriate
- Ask clarifying questions to better understand what the user wants to learn
- Keep responses conversational and engaging (not too formal)
- Focus on practical insights and real-world applications
- If asked about something not related to the code, gently redirect back to the code discussion

CONVERSATION STYLE:
- Speak naturally as if you're pair programming with a colleague
- Use "we" and "let's" to make it collaborative
- Be enthusiastic about good code practices
- Acknowledge when something is well-implemented
- Offer constructive feedback for improvements

Remember: This is a live conversation, so keep responses concise but informative. The user can ask follow-up questions for more detail."""

MESSAGE_PROMPT = """You are having a live conversation about this code project: "{title}"

CODE CONTEXT:
```
{code}
```

USER MESSAGE: "{message}"

Please respond as an expert software engineer in a conversational, friendly way. Keep your response:
- Focused on the user's question about the code
- Conversational and natural (like talking to a colleague)
- Concise but informative (2-3 sentences max)
- Practical and actionable
- Encouraging and supportive

If the user asks about something not directly related to the code, gently redirect them back to discussing the implementation, best practices, or improvements for this specific code."""


def build_message_prompt(message: str, project: Project) -> str:
    return MESSAGE_PROMPT.format(title=project.title, code=project.code_snippet, message=message)


class ConversationService:
    def __init__(
        self,
        sessions: SessionStore,
        projects: ProjectStore,
        gateway: ProviderGateway,
        tavus: Optional[TavusClient] = None,
    ):
        self._sessions = sessions
        self._projects = projects
        self._gateway = gateway
        self._tavus = tavus

    @property
    def video_enabled(self) -> bool:
        return bool(self._tavus and self._tavus.is_configured() and self._tavus.replica_id)

    async def create(self, session_id: str, project_id: str) -> ConversationSessionResponse:
        """Open a session: Tavus video conversation if possible, otherwise text-only."""
        self._sessions.get(session_id)
        project = self._projects.get(project_id)

        if not self.video_enabled:
            self._sessions.update(session_id, {"status": "active"})
            return ConversationSessionResponse(session_id=session_id, status="active", mode="text")

        try:
            data = await self._tavus.create_conversation(
                name=f"Code Discussion: {project.title}",
                system_prompt=MENTOR_PROMPT.format(title=project.title, code=project.code_snippet),
            )
        except ProviderCallError:
            self._sessions.update(session_id, {"status": "error"})
            raise

        self._sessions.update(
            session_id,
            {"tavus_session_id": data["conversation_id"], "status": "active"},
        )
        return ConversationSessionResponse(
            session_id=session_id,
            status="active",
            tavus_session_id=data["conversation_id"],
            conversation_url=data.get("conversation_url"),
            mode="video",
        )

    async def message(self, session_id: str, text: str) -> ConversationReply:
        """Answer one user message about the session's project."""
        session = self._sessions.get(session_id)
        project = self._projects.get(session["project_id"])
        result = await self._gateway.generate(Capability.RESPONSE, build_message_prompt(text, project))
        return ConversationReply(session_id=session_id, response=result.text, provider=result.provider)

    async def end(self, session_id: str) -> ConversationSessionResponse:
        """Close the session; ending the Tavus side is best-effort."""
        session = self._sessions.get(session_id)
        tavus_id = session.get("tavus_session_id")

        if tavus_id and self._tavus and self._tavus.is_configured():
            try:
                await self._tavus.end_conversation(tavus_id)
            except ProviderCallError as e:
                logger.warning(f"Ending Tavus conversation {tavus_id} failed: {e}")

        self._sessions.update(
            session_id,
            {"status": "ended", "ended_at": datetime.now(timezone.utc).isoformat()},
        )
        return ConversationSessionResponse(
            session_id=session_id,
            status="ended",
            tavus_session_id=tavus_id,
            mode="video" if tavus_id else "text",
        )
