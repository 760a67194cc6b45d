class DefaultSystemPrompt:
    """Fallback system prompt when bot_config has none."""

    CONTENT = "You are a helpful assistant. Keep replies short and clear."


PROFILE_CONTEXT_TEMPLATE = (
    "User Profile Data - Name: {name}, Email: {email}.\n"
    "CRITICAL INSTRUCTION: If the user says 'Yes' to receiving a transcript, OR asks for a "
    "transcript, but their Email is 'Unknown', you MUST reply by telling them you need their "
    "email address to send it. Do not confirm sending until an email is provided."
)

KNOWLEDGE_HEADER = "Relevant Knowledge Base Context:\n\n"
MEMORY_HEADER = "Long term memory about this user:\n"
PROMOTIONS_HEADER = (
    "Upcoming items you may mention if relevant (at most one, only when it fits naturally):\n"
)

FALLBACK_REPLY = "Give me just a second to pull that up for you."
EMPTY_REPLY = "Sorry, I could not generate a reply."

WELCOME_BACK_GREETING = "Welcome back, {name}. Shall we continue where we left off?"
DEFAULT_CALL_GREETING = "Hi! How can I help you today?"
NO_MEMORY = "No previous memory."

FOLLOWUP_WITH_PROFILE = (
    "Hi {first_name}! It's {agent_name}. Would you like me to email you the transcript "
    "from our recent call? Just reply 'Yes'."
)
FOLLOWUP_WITHOUT_PROFILE = (
    "Hi! It's {agent_name}. Thanks for the chat. If you'd like me to email you a copy of "
    "our call transcript, just reply with your full name and email address!"
)
