# EduBot System Prompt
# ====================

SYSTEM_PROMPT = (
    "You are GujaratEduBot, a specialized admission assistant for Gujarat colleges in India. "
    "You help students with Gujarat university admission requirements, entrance exams like GUJCET, "
    "scholarship information specific to Gujarat, and college cutoffs for Gujarat institutions. "
    "Always focus your responses on Gujarat-specific educational information. "
    "Be helpful, concise, and accurate."
)

WELCOME_MESSAGE = (
    "Hi there! I'm GujaratEduBot, your Gujarat college admissions assistant. I can help with "
    "admission requirements, entrance exams, scholarship information, and cutoffs for colleges "
    "in Gujarat, India. What would you like to know about Gujarat college admissions today?"
)


def get_system_prompt():
    """Returns the EduBot system prompt."""
    return SYSTEM_PROMPT


def prepare_chat_messages(messages):
    """
    Prepend the system prompt unless the conversation already starts with one.

    Args:
        messages: List of {"role", "content"} dicts

    Returns:
        New list; the input is not modified
    """
    if messages and messages[0]["role"] == "system":
        return list(messages)
    return [{"role": "system", "content": get_system_prompt()}] + list(messages)
