"""
Chat feature: System prompt for grounded answers.
"""

CONTEXT_DELIMITER = "\n\n---\n\n"

SYSTEM_PROMPT_TEMPLATE = """You are a helpful customer support AI assistant.

## Rules
- Answer ONLY from the context below. Do not use outside knowledge.
- If the context does not contain the answer, reply with exactly this sentence and nothing else:
{fallback}
- Keep answers short and practical.

## Context
{context}"""


def build_context(chunk_texts: list[str]) -> str:
    """Join retrieved chunk texts in the order the index returned them."""
    return CONTEXT_DELIMITER.join(chunk_texts)


def build_system_prompt(context: str, fallback: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=context, fallback=fallback)
