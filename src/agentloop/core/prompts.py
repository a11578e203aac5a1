"""System prompt construction."""

from datetime import datetime

DEFAULT_SYSTEM_PROMPT = """You are a research assistant that answers questions by reasoning step by step \
and calling tools when they help.

Current date: {current_date}

## Tools

{tool_descriptions}

## Guidelines

- Call a tool only when it adds information you do not already have.
- Never repeat a tool call with identical arguments; reuse the earlier result.
- When a tool fails, decide whether another tool or different arguments can help.
- Once you have enough information, answer directly and concisely."""

NO_TOOLS_TEXT = "No tools are available. Answer from your own knowledge."


def get_current_date() -> str:
    """Today's date in a form the model reads unambiguously."""
    return datetime.now().strftime("%A, %B %d, %Y")


def build_system_prompt(tool_descriptions: str = "", template: str = DEFAULT_SYSTEM_PROMPT) -> str:
    """
    Render the system prompt.

    Args:
        tool_descriptions: Output of ``ToolRegistry.build_tool_descriptions``
        template: Prompt template with ``{current_date}`` and ``{tool_descriptions}``

    Returns:
        The system prompt text
    """
    return template.format(
        current_date=get_current_date(),
        tool_descriptions=tool_descriptions.strip() or NO_TOOLS_TEXT,
    )
