"""Per-participant prompt views over the shared transcript."""

from config.config_loader import PromptsConfig
from duet.catalog import Catalog
from duet.models import Participant, PromptMessage, Turn


def other_participant(active: int) -> int:
    return 2 if active == 1 else 1


def opener_message(topic: str, prompts: PromptsConfig) -> PromptMessage:
    """First user message of a conversation, seeded with the topic when one is set."""
    if topic.strip():
        return PromptMessage("user", prompts.topic_opener.format(topic=topic))
    return PromptMessage("user", prompts.blank_opener)


def build_prompt_view(
    turns: list[Turn],
    active: int,
    participants: list[Participant],
    topic: str,
    prompts: PromptsConfig,
    catalog: Catalog,
    opening: bool = False,
) -> list[PromptMessage]:
    """Project the transcript into the message list the active participant sees.

    The active participant's own turns become ``assistant`` and everything
    else becomes ``user``, so both models see an ordinary two-party chat.
    Stored turns are never modified.

    Args:
        turns: Completed transcript turns, in order.
        active: Participant id (1 or 2) whose view is built.
        participants: Both participants, index 0 is participant 1.
        topic: Seed topic, may be empty.
        prompts: Prompt templates.
        catalog: Personality instructions.
        opening: Use the opening system template (session start).

    Returns:
        One system message followed by the opener or the relabelled turns.
    """
    me = participants[active - 1]
    other = participants[other_participant(active) - 1]
    template = prompts.opening_system if opening else prompts.system
    system = PromptMessage(
        "system",
        template.format(
            other_model=other.model,
            personality=catalog.personality_instruction(me.personality),
        ),
    )

    if opening or not turns:
        return [system, opener_message(topic, prompts)]

    return [system] + [
        PromptMessage("assistant" if t.author == active else "user", t.content)
        for t in turns
    ]
