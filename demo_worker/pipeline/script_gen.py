"""
Step 1: The Script. Narration text from project metadata and code.

The prompt is fully determined by the project inputs; the text itself comes
from whichever provider the gateway lands on.
"""

import re
import logging

from ..errors import EmptyResponseError
from ..provider_gateway import Capability, ProviderGateway
from .models import DemoType, Project, VoiceStyle

logger = logging.getLogger(__name__)

TONE_DIRECTIVES = {
    VoiceStyle.PROFESSIONAL: "Use a professional, authoritative tone suitable for business presentations.",
    VoiceStyle.CASUAL: "Use a friendly, conversational tone as if explaining to a colleague.",
    VoiceStyle.ENTHUSIASTIC: "Use an energetic, excited tone to build enthusiasm about the feature.",
}

FOCUS_DIRECTIVES = {
    DemoType.WALKTHROUGH: (
        "Focus on explaining how the code works step by step, "
        "highlighting key concepts and implementation details."
    ),
    DemoType.PITCH: (
        "Focus on the business value and benefits of this feature, "
        "explaining what problem it solves and why it matters."
    ),
    DemoType.TUTORIAL: (
        "Focus on teaching others how to implement this feature, "
        "including best practices and common pitfalls to avoid."
    ),
}

SCRIPT_PROMPT = """Create a compelling {demo_type} script for a demo video about: {title}

Description: {description}
Programming Language: {language}
Voice Style: {tone}
Demo Type: {focus}

Code to explain:
```{language}
{code}
```

Requirements:
- Keep the script between 60-120 seconds when spoken
- Make it engaging and easy to follow
- Include natural pauses and transitions
- Explain technical concepts in accessible language
- {emphasis}
- Use {voice_style} tone throughout

Format the response as a clean script without stage directions or formatting markers."""


def build_script_prompt(project: Project) -> str:
    """Deterministic prompt: same project inputs, same prompt."""
    if project.demo_type == DemoType.PITCH:
        emphasis = "Focus on business value and impact"
    else:
        emphasis = "Focus on technical implementation and learning"

    return SCRIPT_PROMPT.format(
        demo_type=project.demo_type.value,
        title=project.title,
        description=project.description or "No description provided",
        language=project.language,
        tone=TONE_DIRECTIVES[project.voice_style],
        focus=FOCUS_DIRECTIVES[project.demo_type],
        code=project.code_snippet,
        emphasis=emphasis,
        voice_style=project.voice_style.value,
    )


_FENCE = re.compile(r"^\s*```.*$", re.MULTILINE)
_HEADING = re.compile(r"^\s*#{1,6}\s*", re.MULTILINE)
_STAGE_LINE = re.compile(r"^\s*[\[(][^\])]*[\])]\s*$", re.MULTILINE)
# [smiles] or [points at screen], but not items[0] or data["key"]
_INLINE_STAGE = re.compile(r"(?<![\w\])])\[[A-Za-z][A-Za-z' ,.-]*\]")
_BOLD = re.compile(r"\*\*(?!\s)(.+?)(?<!\s)\*\*")
_ITALIC = re.compile(r"(?<![\w*])\*(?![\s*])([^*\n]+?)(?<!\s)\*(?![\w*])")
_SPEAKER = re.compile(r"^\s*(narrator|host|speaker)\s*:\s*", re.MULTILINE | re.IGNORECASE)


def clean_script(text: str) -> str:
    """Strip markdown and stage directions so the text can be read aloud as-is."""
    text = _FENCE.sub("", text)
    text = _STAGE_LINE.sub("", text)
    text = _INLINE_STAGE.sub("", text)
    text = _HEADING.sub("", text)
    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    text = _SPEAKER.sub("", text)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    # collapse runs of blank lines to a single paragraph break
    out: list[str] = []
    for line in lines:
        if not line and (not out or not out[-1]):
            continue
        out.append(line)
    return "\n".join(out).strip()


class ScriptGenerator:
    def __init__(self, gateway: ProviderGateway):
        self._gateway = gateway

    async def generate(self, project: Project) -> str:
        """
        Generate the narration for a project.

        Raises whatever the gateway raises; a script failure ends the run.
        """
        prompt = build_script_prompt(project)
        result = await self._gateway.generate(Capability.SCRIPT, prompt)
        script = clean_script(result.text)
        if not script:
            raise EmptyResponseError(result.provider, "script was empty after cleanup")
        logger.info(
            f"[{project.id}] script ready via {result.provider}: {len(script.split())} words"
        )
        return script
