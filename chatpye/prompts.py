from collections import OrderedDict
from typing import Dict, List

from .youtube import VideoInfo

TRANSCRIPT_BUDGET = 14000

SYSTEM_PROMPT = (
    "You are an AI tutor helping a user understand a YouTube video. "
    "Answer only from the video material you are given. Be precise and concise."
)

ANALYSIS_TEMPLATE = """You are an AI tutor analyzing a YouTube video. Please provide a detailed response to: {question}

Guidelines:
- Be concise but informative
- Use bullet points for key points
- Include timestamps (MM:SS) if relevant
- Format code blocks with proper syntax highlighting
- If you're unsure about something, acknowledge it
- Keep the response focused on the video content

Video URL: {url}
"""

OVERVIEW_TEMPLATE = """Analyze this YouTube video and provide key insights:
Title: {title}
Channel: {channel}
Description: {description}

Please provide:
1. Main topics covered
2. Key points
3. Technical concepts (if any)
4. Potential questions users might ask"""

VISION_PROMPT = """Analyze this YouTube video content. Provide a concise summary covering:
1. Main Thesis/Claim: What is the central point the creator is making?
2. Key Topics: List the main subjects discussed
3. Technical Content: Identify any code, technical concepts, or tools shown
4. Summary: Provide a concise summary of the video content"""

# Label -> prompt, in the order the UI shows them
QUICK_ACTIONS: "OrderedDict[str, str]" = OrderedDict([
    ("Summary", "Please provide a concise summary of this video in 3-4 sentences."),
    ("Highlights", "What are the key highlights and main points discussed in this video?"),
    ("Explain simply", "Explain the main concepts of this video in simple terms, as if explaining to a 5-year-old."),
])


def quick_action_prompt(name: str) -> str:
    return QUICK_ACTIONS[name]


def build_analysis_prompt(question: str, url: str, transcript: str = "", vision: str = "") -> str:
    """Assemble the user turn sent to the model.

    The transcript wins over the vision description; it is cut to
    TRANSCRIPT_BUDGET characters. With neither, the model only gets the URL.
    """
    prompt = ANALYSIS_TEMPLATE.format(question=question.strip(), url=url)
    if transcript:
        prompt += f"\nTranscript (may be truncated):\n{transcript[:TRANSCRIPT_BUDGET]}\n"
    elif vision:
        prompt += f"\nVideo description (no transcript available):\n{vision}\n"
    return prompt


def build_overview_prompt(info: VideoInfo) -> str:
    return OVERVIEW_TEMPLATE.format(
        title=info.title or "(unknown)",
        channel=info.channel or "(unknown)",
        description=info.description or "(none)",
    )


def build_messages(user_prompt: str, history: List[Dict[str, str]] = None) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]

    # keep at most last 10 items as short memory
    if history:
        messages.extend(history[-10:])

    messages.append({"role": "user", "content": user_prompt})
    return messages
