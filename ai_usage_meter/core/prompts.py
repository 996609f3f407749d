"""
Prompt templates for the client operations.

Templates are fixed instruction blocks; the user's text is appended to them.
"""

from typing import Iterable

DETECT_ACTION_PROMPT = (
    "Decide if the text contains ONE actionable task.\n"
    "If yes, reply with the task in imperative mood only.\n"
    "If no action, reply NONE (exact).\n\n"
)

EXTRACT_TASKS_PROMPT = (
    "Extract ALL actionable tasks from the following text.\n"
    "An actionable task is something specific that needs to be done.\n"
    'Return each task on a new line in imperative mood (e.g., "Call John", '
    '"Send report", "Review document").\n'
    'If no actionable tasks are found, return "NONE".\n'
    "Do not include explanations or numbering, just the tasks.\n\n"
    "Examples of actionable tasks:\n"
    "- Call the dentist to schedule appointment\n"
    "- Review Q4 budget proposal\n"
    "- Send follow-up email to Sarah\n"
    "- Update project timeline\n\n"
    "Examples of non-actionable items (don't include these):\n"
    "- General observations or facts\n"
    "- Questions without action\n"
    "- Past events or completed tasks\n"
    "- Context or background information\n\n"
    "Text to analyze:\n"
)

TWEET_THREAD_PROMPT = (
    "You are a skilled social-media copywriter.\n"
    "Rewrite the user's text as an engaging 5-tweet thread.\n"
    "Rules:\n"
    "1. Each tweet must be < 280 characters.\n"
    "2. Use emojis where appropriate.\n"
    '3. Start with "\U0001F9F5 1/5:" and number each tweet.\n'
    "Return ONLY the 5 tweets separated by newlines.\n\n"
)

ANKI_PROMPT = """You are an expert flash-card writer.

Return ONLY valid JSON in this form:
[
  {{
    "deckName": "<one of: {categories}>",
    "front": "Question",
    "back": "Answer",
    "tags": ["tag1","tag2"]
  }}
]

Guidelines:
1. Pick the most relevant deck.
2. Extract 1-3 key concepts.
3. Ask understanding questions (why / how).
4. Keep answers concise but complete."""

ENGAGEMENT_TWEET_PROMPT = """Write a tweet that will get maximum engagement. Channel Nick Huber or Nikita Bier's style.

Core principles:
- Start with a bold, controversial statement
- Use extreme examples that trigger reactions
- Make people feel smart for agreeing or dumb for disagreeing
- Create an us vs them dynamic
- Use specific numbers when possible
- Make claims that are 80% true but stated as 100% fact
- Write like you're texting a friend who gets your humor
- NO EMOJIS

Format tricks that work:
- "Most people don't realize..."
- "Unpopular opinion: [obviously popular thing]"
- "The difference between X and Y is..."
- "[Successful thing] is just [simple thing] in disguise"
- "I made $X doing Y and here's the secret..."
- "Stop doing X. Start doing Y."

Keep it under 280 chars. Make normies mad and smart people nod.

Text to transform:
"""

INFORMATIVE_TWEET_PROMPT = """Transform the text below into an informative tweet in George Mack style. Educational but not preachy.

IMPORTANT: Create a tweet from the provided text, maintaining its core insight but making it educational and valuable. Length can be whatever serves the content best - from punchy one-liner to detailed thread starter.

Core principles:
- Start with a fascinating fact or insight
- Use clear structure (often numbered points)
- Make complex ideas simple without dumbing them down
- Include specific examples or case studies
- Write like you're explaining to a smart friend
- Apply Feynman technique: explain it so a child could understand the concept
- Use line breaks strategically for readability
- Focus on timeless principles over trending topics
- NO EMOJIS

MULTIMEDIA SUGGESTIONS:
- If the content would benefit from visuals, suggest: [Add photo: description]
- For complex concepts, suggest: [Add diagram: what to illustrate]
- For processes/steps, suggest: [Add video: what to demonstrate]
- For data/stats, suggest: [Add chart: what data to visualize]

Format patterns that work:
- "The [concept] paradox: [explanation]"
- "3 things I learned about X: 1) ... 2) ... 3) ..."
- "[Famous person] did X. The result: Y. The lesson: Z"
- "Everyone talks about X. Nobody talks about Y. Y matters more because..."
- "The [field] principle that changed how I think: [principle + application]"

OUTPUT: A tweet of optimal length for the content. Can be short and punchy or longer if needed. Include multimedia suggestions where they'd enhance understanding.

Text to transform into an informative tweet:
"""

IMPROVE_PROMPT_PROMPT = """You are an expert prompt engineer. Your task is to refine prompts for clarity and effectiveness, ensuring future AI instances can understand and execute them successfully.

Analyze the prompt and improve it by:

1. CLARITY - Make ambiguous instructions explicit:
   - Specify exact deliverables and formats
   - Define technical terms or domain-specific language
   - Clarify pronouns and references

2. CONTEXT - Add essential background a future AI needs:
   - What is the goal/purpose?
   - What constraints or requirements exist?
   - What should be prioritized?

3. STRUCTURE - Organize complex requests:
   - Break multi-part tasks into clear steps
   - Highlight dependencies between tasks
   - Specify order of operations if it matters

4. EDGE CASES - Anticipate potential confusion:
   - What assumptions might an AI make incorrectly?
   - What common pitfalls should be avoided?
   - What validation or verification is needed?

5. ACTIONABILITY - Ensure the AI knows exactly what to do:
   - Start with a clear directive
   - Include success criteria
   - Specify any required tools or approaches

PRESERVE the original intent and tone. Don't over-engineer simple requests.
FOCUS on making the prompt foolproof for a fresh AI instance with no prior context.

Return only the improved prompt, no explanations.

Original prompt to improve:
\"\"\"
{text}
\"\"\""""

TWEET_STYLES = {
    "engagement": ENGAGEMENT_TWEET_PROMPT,
    "informative": INFORMATIVE_TWEET_PROMPT,
}


def detect_action_prompt(text: str) -> str:
    return DETECT_ACTION_PROMPT + text


def extract_tasks_prompt(text: str) -> str:
    return EXTRACT_TASKS_PROMPT + text


def tweet_thread_prompt(text: str) -> str:
    return TWEET_THREAD_PROMPT + text


def anki_prompt(text: str, categories: Iterable[str]) -> str:
    return ANKI_PROMPT.format(categories=", ".join(categories)) + "\n\n" + text


def viral_tweet_prompt(text: str, style: str) -> str:
    """Build the tweet prompt for a style.

    Raises:
        ValueError: If style is not one of TWEET_STYLES
    """
    if style not in TWEET_STYLES:
        raise ValueError(f"style must be one of: {sorted(TWEET_STYLES)}")
    return TWEET_STYLES[style] + text


def improve_prompt_prompt(text: str) -> str:
    return IMPROVE_PROMPT_PROMPT.format(text=text)
