"""
Prompt templates for writing turns and auxiliary generation calls.
"""

from enum import Enum
from typing import Dict, Sequence


class ProjectType(str, Enum):
    NOVEL = "NOVEL"
    SCREENPLAY = "SCREENPLAY"
    YOUTUBE = "YOUTUBE"
    ESSAY = "ESSAY"
    CHILDRENS_BOOK = "CHILDRENS_BOOK"
    EMAIL = "EMAIL"
    TECHNICAL = "TECHNICAL"
    LYRICS = "LYRICS"
    AD = "AD"
    COMMERCIAL = "COMMERCIAL"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    GENERAL = "GENERAL"


SYSTEM_INSTRUCTION_BASE = """You are Muse, a creative writing assistant.
Write in a purely human style: nuanced, emotional and free of stock AI phrasing ("tapestry", "delve", "testament").
You are fluent in every format: novels, screenplays, video scripts, essays, children's books, professional emails,
technical documentation, lyrics and advertising copy.

When media is attached (images, video, PDFs), interpret it deeply and use it to fuel the writing.

You can see the user's current editor content.
If the user asks you to edit, rewrite, fix or change the document, call 'updateEditor' with the FULL new content, never a diff.
If the user asks you to continue or add to the document, call 'appendToEditor' with only the new text.
"""

EXPERT_PROMPTS: Dict[ProjectType, str] = {
    ProjectType.NOVEL: "Act as a best-selling novelist: deep POV, show don't tell, deliberate pacing and emotional resonance.",
    ProjectType.SCREENPLAY: "Act as a veteran script doctor: industry-standard format, visual action lines, subtext-rich dialogue.",
    ProjectType.YOUTUBE: "Act as a top video strategist: a strong hook in the first 30 seconds, conversational script written for the ear.",
    ProjectType.ESSAY: "Act as an academic editor: a debatable thesis, evidence and analysis, formal and cohesive prose.",
    ProjectType.CHILDRENS_BOOK: "Act as a celebrated children's author: short rhythmic sentences, warm tone, think in illustrated spreads.",
    ProjectType.EMAIL: "Act as an executive communications strategist: bottom line up front, calibrated tone, a clear call to action.",
    ProjectType.TECHNICAL: "Act as a lead technical writer: audience-aware, numbered steps, imperative mood, no ambiguity.",
    ProjectType.LYRICS: "Act as a songwriter: verse/chorus/bridge structure, deliberate rhyme schemes, singable meter.",
    ProjectType.AD: "Act as a direct-response copywriter: AIDA or PAS, scroll-stopping headlines, benefits over features.",
    ProjectType.COMMERCIAL: "Act as a creative director: sync visuals with SFX and MUSIC cues, respect 30s/60s timing.",
    ProjectType.SOCIAL_MEDIA: "Act as a social media manager: platform-native voice, an immediate hook, engagement prompts.",
    ProjectType.GENERAL: "Act as a versatile creative partner and shift into the right expert persona as intent becomes clear.",
}


def build_system_instruction(project_type: ProjectType, editor_content: str) -> str:
    """System instruction for a writing turn, including the live editor content."""
    return (
        f"{SYSTEM_INSTRUCTION_BASE}\n"
        f"{EXPERT_PROMPTS[project_type]}\n"
        f"Current Mode: {project_type.value}\n\n"
        f'CURRENT EDITOR CONTENT:\n"""\n{editor_content}\n"""'
    )


def build_context_links_block(urls: Sequence[str]) -> str:
    return (
        "\n\n[CONTEXT LINKS]:\n"
        "The user has provided the following external links. Use web search to retrieve their content if necessary:\n"
        + "\n".join(f"- {url}" for url in urls)
    )


def build_video_prompt_request(text: str) -> str:
    return (
        "Create a highly visual, cinematic video generation prompt (max 250 characters) based on this text. "
        f'Describe the scene, lighting and action. Text: """{text}"""'
    )


def build_character_style_request(description: str) -> str:
    return (
        "Turn this character description into voice direction for a speech synthesis model.\n"
        'Return JSON only: {"persona": "...", "style": "...", "pacing": "...", "accent": "..."}\n'
        "Keep each value under 20 words.\n\n"
        f'CHARACTER:\n"""\n{description}\n"""'
    )


MEDIA_ANALYSIS_INSTRUCTION = (
    "Analyze these assets (images, videos, PDFs, links) deeply. Describe the mood, content, potential storylines "
    "and setting details. If there are links, use web search to find out what they are about."
)


def build_link_reference(url: str) -> str:
    return f"[Link]: {url}"
