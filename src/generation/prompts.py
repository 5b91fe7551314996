"""Prompt templates for content generation."""

from __future__ import annotations

from typing import Optional

IDEAS_TEMPLATE = """Generate {count} content ideas for a {persona} in {industry}.

Format your response as a JSON array with exactly {count} items. Each item must have:
- title: A concise, engaging title for the content idea
- description: A detailed description (2-3 sentences) explaining what the content will cover
- rationale: The reasoning behind why this content would be valuable for the target persona

Important:
- Return ONLY valid JSON, no markdown formatting
- The JSON should be an array of objects: [{{title, description, rationale}}, ...]
- Include exactly {count} ideas, no more, no less
- Make ideas creative, practical, and relevant to {persona} in {industry}

Example format:
[
  {{
    "title": "How to...",
    "description": "This content will...",
    "rationale": "This is valuable because..."
  }},
  ...
]"""


def build_ideas_prompt(
    persona: str, industry: str, count: int = 10, context: Optional[str] = None
) -> str:
    prompt = IDEAS_TEMPLATE.format(count=count, persona=persona, industry=industry)
    if context:
        prompt = (
            f"{context}\n"
            "Use the relevant information from the knowledge base context above "
            "to ground the ideas.\n\n" + prompt
        )
    return prompt


def build_draft_prompt(
    title: str,
    persona: Optional[str] = None,
    industry: Optional[str] = None,
    context: Optional[str] = None,
) -> str:
    """Prompt for a free-text description of a single content idea."""
    lines = ["Generate a detailed content idea description for the following:", ""]
    lines.append(f"Title: {title}")
    if persona:
        lines.append(f"Target Persona: {persona}")
    if industry:
        lines.append(f"Industry: {industry}")
    if context:
        lines.append(context)
        lines.append(
            "Please use the relevant information from the knowledge base context "
            "above to inform your response."
        )

    lines.extend(
        [
            "",
            "Please provide:",
            "1. A compelling description (2-3 sentences)",
            "2. Key talking points or content pillars",
            "3. Suggested content format or approach",
        ]
    )
    if context:
        lines.append("4. How the context from knowledge base can be leveraged")
    lines.extend(["", "Keep it concise and actionable."])
    return "\n".join(lines)
