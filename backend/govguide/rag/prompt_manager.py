"""
Prompt Manager — context formatting and message assembly.

Two pure steps, tested independently:

  format_context(RetrievalContext) → str

      RELEVANT DOCUMENTS:
      <chunk 1>
      ---
      <chunk 2>

      RELEVANT SCHEMES:
      SCHEME: PM-KISAN
      Category: Agriculture
      ...
      Link: https://pmkisan.gov.in/

      Either block is omitted when its branch found nothing; an empty
      context yields "".

  build_messages(history, context_text) → [system, *history]

      The system message carries the GovGuide instructions with the context
      embedded; the conversation follows oldest first, ending with the new
      user turn.
"""

from __future__ import annotations

from typing import Final, Sequence

from govguide.schemas.retrieval import ChatMessage, RetrievalContext, SchemeRecord

BLOCK_SEPARATOR: Final[str] = "\n---\n"

NO_CONTEXT_DISCLAIMER: Final[str] = (
    "I don't have specific information about that in my current database, but generally..."
)

FALLBACK_ANSWER: Final[str] = "I apologize, but I could not generate a response. Please try again."

_SYSTEM_TEMPLATE: Final[str] = """\
You are GovGuide AI, a helpful and official government service assistant for Indian citizens.

Start with a friendly greeting if it's the start of the conversation.

Answer the user's question based STRICTLY on the following context if provided. \
If the answer is not in the context, say "{disclaimer}" and provide general knowledge.

Context from Government Documents:
{context}

Formatting Rules:
- Use clear headings (##)
- Use bullet points for steps or lists
- Use bold for key terms
- Be concise and professional
- Support English, Hindi, and Telugu (detect language from user input)
- **CRITICAL**: If the user asks about a scheme, ALWAYS provide the official application \
link/website URL if it exists in the context or is widely known. \
Format it as: **Application Link:** [URL].
"""


# ---------------------------------------------------------------------------
# Context formatting
# ---------------------------------------------------------------------------

def format_scheme(scheme: SchemeRecord) -> str:
    return "\n".join((
        f"SCHEME: {scheme.scheme_name}",
        f"Category: {scheme.category}",
        f"Beneficiaries: {scheme.target_beneficiaries}",
        f"Benefits: {scheme.benefits_provided}",
        f"Eligibility: {scheme.eligibility_criteria}",
        f"Application: {scheme.application_process}",
        f"Link: {scheme.official_website_link}",
    ))


def format_context(context: RetrievalContext) -> str:
    blocks = []
    if context.chunks:
        docs = BLOCK_SEPARATOR.join(c.content for c in context.chunks)
        blocks.append(f"RELEVANT DOCUMENTS:\n{docs}")
    if context.scheme_rows:
        schemes = BLOCK_SEPARATOR.join(format_scheme(s) for s in context.scheme_rows)
        blocks.append(f"RELEVANT SCHEMES:\n{schemes}")
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Message assembly
# ---------------------------------------------------------------------------

def build_system_prompt(context_text: str) -> str:
    return _SYSTEM_TEMPLATE.format(disclaimer=NO_CONTEXT_DISCLAIMER, context=context_text)


def build_messages(history: Sequence[ChatMessage], context_text: str) -> list[ChatMessage]:
    """System prompt first, then the conversation exactly as given."""
    return [
        ChatMessage(role="system", content=build_system_prompt(context_text)),
        *history,
    ]


def last_user_message(history: Sequence[ChatMessage]) -> ChatMessage | None:
    for message in reversed(history):
        if message.role == "user":
            return message
    return None
