"""
Claude prompt template for icebreaker message generation.
The system prompt is static so it can be cached across requests.
"""

from datetime import datetime, timezone
from typing import Any

PROMPT_VERSION = "v1.0.0"

# System prompt for icebreaker generation (marked for caching)
SYSTEM_PROMPT = """You are a professional networking expert helping craft personalized outreach messages.

For every request you generate a message that:
1. References the trigger event naturally
2. Provides a clear value proposition
3. Includes a soft call-to-action
4. Feels authentic and personalized
5. Stays under the requested word limit

**Constraints:**
- No generic templates
- Avoid overly salesy language
- Match the specified tone exactly
- Respect professional boundaries

**Output Format:**
Return ONLY a valid JSON object with this exact structure:
{
  "variations": [
    {
      "subject": "Email subject line (only if channel is email, otherwise omit)",
      "body": "The main message content",
      "talkingPoints": ["Key point 1", "Key point 2", "Key point 3"],
      "reasoning": "Brief explanation of approach taken"
    }
  ]
}

**Important Rules:**
- Generate exactly 3 variations with different approaches
- Return ONLY the JSON object, no additional text or explanation
- talkingPoints must be an array of short strings
"""

TONE_GUIDELINES = {
    "professional": """
- Use formal language and proper business etiquette
- Address recipient with appropriate title
- Focus on professional value and mutual benefit
- Avoid casual expressions and slang
- Maintain professional distance""",
    "friendly": """
- Use warm, approachable language
- Balance professionalism with personal connection
- Show genuine interest in the person
- Use conversational tone without being too casual
- Reference shared experiences or connections naturally""",
    "casual": """
- Use relaxed, conversational language
- Keep it brief and to the point
- Use contractions and informal expressions
- Be authentic and personable
- Focus on building rapport""",
}

CHANNEL_GUIDELINES = {
    "email": """
- Include a compelling subject line
- Use proper email formatting
- Keep paragraphs short (2-3 sentences)
- Include a clear signature line placeholder
- Professional greeting and closing""",
    "linkedin": """
- No subject line needed
- Start with a brief, engaging opener
- Keep total length to 300 characters or less
- Mention LinkedIn-specific context if relevant
- Encourage connection or response""",
    "whatsapp": """
- No subject line needed
- Very brief and conversational
- Use short sentences and paragraphs
- Can use light emoji if appropriate for tone
- Direct and to-the-point""",
}

NOT_SPECIFIED = "Not specified"


def relationship_summary(
    importance: int,
    last_contact: datetime | None,
    last_interaction: str | None = None,
    now: datetime | None = None,
) -> str:
    """
    One-line history for the prompt.

    Example:
        "High importance contact. Last contacted 12 days ago. Last email: Q3 planning"
    """
    parts = []
    if importance > 0:
        tier = "High" if importance >= 80 else "Medium" if importance >= 50 else "Low"
        parts.append(f"{tier} importance contact")
    if last_contact:
        now = now or datetime.now(timezone.utc)
        parts.append(f"Last contacted {(now - last_contact).days} days ago")
    if last_interaction:
        parts.append(f"Last email: {last_interaction}")
    return ". ".join(parts) if parts else "No previous interaction history"


def generate_user_prompt(
    contact_name: str,
    channel: str,
    tone: str,
    word_limit: int,
    user_name: str,
    current_title: str | None = None,
    current_company: str | None = None,
    relationship: str | None = None,
    last_interaction_date: str | None = None,
    trigger_event: str | None = None,
    mutual_connections: list[str] | None = None,
) -> str:
    """
    Build the per-request prompt with contact and user context.

    Returns:
        Formatted user prompt string
    """
    return f"""Write outreach messages for this contact:

**Contact Context:**
- Name: {contact_name}
- Current Role: {current_title or NOT_SPECIFIED} at {current_company or NOT_SPECIFIED}
- Relationship History: {relationship or NOT_SPECIFIED}
- Last Interaction: {last_interaction_date or NOT_SPECIFIED}
- Trigger Event: {trigger_event or NOT_SPECIFIED}
- Mutual Connections: {", ".join(mutual_connections) if mutual_connections else NOT_SPECIFIED}

**User Context:**
- Your Name: {user_name}

**Task:**
Generate a {channel} message with a {tone} tone in under {word_limit} words.

**Tone Guidelines:**{TONE_GUIDELINES.get(tone, "")}

**Channel Guidelines:**{CHANNEL_GUIDELINES.get(channel, "")}"""


def normalize_variations(raw: list[dict[str, Any]], channel: str) -> list[dict[str, Any]]:
    """
    Clean LLM variations for storage.

    Subjects are kept only for email; LinkedIn bodies are trimmed to 300 characters.
    """
    variations = []
    for item in raw:
        body = str(item.get("body") or "").strip()
        if channel == "linkedin" and len(body) > 300:
            body = body[:297] + "..."

        variation: dict[str, Any] = {
            "body": body,
            "talking_points": [str(p) for p in item.get("talkingPoints") or item.get("talking_points") or []],
            "reasoning": item.get("reasoning") or "",
        }
        if channel == "email" and item.get("subject"):
            variation["subject"] = item["subject"]
        variations.append(variation)
    return variations
