"""AI Coach chat: provider-agnostic chat-completion integration.

Answers user questions with an optional 30-day productivity summary folded
into the system prompt. Every failure is mapped to a friendly message plus an
error code; nothing here raises to the caller.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date

from redis.exceptions import RedisError

from focusgo.schemas.coach import ChatResponse, ChatTurn

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(Exception):
    """The provider answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Credentials were rejected."""


class ProviderConnectionError(ProviderError):
    """The provider could not be reached."""


# ---------------------------------------------------------------------------
# LLM Provider Abstraction
# ---------------------------------------------------------------------------


class LLMProvider(ABC):
    """Abstract base for chat-completion providers."""

    name: str = ""

    @abstractmethod
    async def chat(self, messages: list[dict]) -> str:
        """Return the assistant reply for a system/user/assistant message list."""
        ...


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible provider (GPT-4o-mini default)."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: str | None = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    async def chat(self, messages: list[dict]) -> str:
        import openai

        client = openai.AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.7,
                max_tokens=1000,
                top_p=1,
                frequency_penalty=0,
                presence_penalty=0,
            )
        except openai.AuthenticationError as exc:
            raise ProviderAuthError(str(exc), status_code=exc.status_code) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(str(exc), status_code=exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise ProviderConnectionError(str(exc)) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class GitHubModelsProvider(OpenAIProvider):
    """GitHub Models, which speaks the OpenAI chat-completions protocol."""

    name = "github"


class AnthropicProvider(LLMProvider):
    """Anthropic-compatible provider (Claude Sonnet default)."""

    name = "anthropic"

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-6"):
        self.api_key = api_key
        self.model = model

    async def chat(self, messages: list[dict]) -> str:
        import anthropic

        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [m for m in messages if m["role"] != "system"]

        client = anthropic.AsyncAnthropic(api_key=self.api_key)
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=1000,
                temperature=0.7,
                system=system,
                messages=turns,
            )
        except anthropic.AuthenticationError as exc:
            raise ProviderAuthError(str(exc), status_code=exc.status_code) from exc
        except anthropic.APIStatusError as exc:
            raise ProviderError(str(exc), status_code=exc.status_code) from exc
        except anthropic.APIConnectionError as exc:
            raise ProviderConnectionError(str(exc)) from exc

        if not response.content:
            return ""
        return getattr(response.content[0], "text", "") or ""


def create_provider(settings) -> LLMProvider | None:
    """Factory: create the configured provider, or None if unconfigured."""
    if settings.AI_PROVIDER == "github" and settings.GITHUB_TOKEN:
        return GitHubModelsProvider(
            settings.GITHUB_TOKEN,
            settings.AI_MODEL or "gpt-4o-mini",
            base_url=settings.GITHUB_MODELS_API_URL,
        )
    elif settings.AI_PROVIDER == "openai" and settings.OPENAI_API_KEY:
        return OpenAIProvider(
            settings.OPENAI_API_KEY,
            settings.AI_MODEL or "gpt-4o-mini",
        )
    elif settings.AI_PROVIDER == "anthropic" and settings.ANTHROPIC_API_KEY:
        return AnthropicProvider(
            settings.ANTHROPIC_API_KEY,
            settings.AI_MODEL or "claude-sonnet-4-6",
        )
    return None


# ---------------------------------------------------------------------------
# Prompt Templates
# ---------------------------------------------------------------------------

COACH_PROMPT = (
    "You are an AI Productivity Coach for FocusGo, a Pomodoro timer app.\n\n"
    "Your role is to:\n"
    "- Help users understand their focus patterns and productivity habits\n"
    "- Provide personalized insights based on their Pomodoro session data\n"
    "- Offer actionable suggestions to improve their focus and time management\n"
    "- Be encouraging, supportive, and constructive\n"
    "- Answer questions about productivity techniques and best practices\n\n"
    "Guidelines:\n"
    "- Keep responses concise and actionable (2-4 paragraphs max)\n"
    "- Use the user's actual data when available to provide specific insights\n"
    "- Be empathetic about productivity challenges and never judgmental\n"
    "- If you don't have enough data, say so and give general advice"
)

SESSION_DATA_BLOCK = (
    "\n\nUSER'S PRODUCTIVITY DATA (Last 30 days):\n{context}\n\n"
    "Use this data to provide personalized insights when relevant. "
    "Reference specific numbers and patterns from their data."
)

NO_DATA_NOTE = (
    "\n\nNote: No session data available yet. The user may be new or hasn't "
    "completed any Pomodoro sessions. Provide general productivity advice."
)

NOT_CONFIGURED_MESSAGE = (
    "AI features are not configured. Set AI_PROVIDER and its API key to enable the coach."
)


def build_system_prompt(context_json: str | None = None) -> str:
    if context_json:
        return COACH_PROMPT + SESSION_DATA_BLOCK.format(context=context_json)
    return COACH_PROMPT + NO_DATA_NOTE


# ---------------------------------------------------------------------------
# Rate Limiting
# ---------------------------------------------------------------------------


async def _check_rate_limit(
    redis_client, user_id: uuid.UUID, limit: int = 20
) -> bool:
    """Check and increment daily rate limit. Returns True if within limit."""
    key = f"ai_rate:{user_id}:{date.today().isoformat()}"
    try:
        count = await redis_client.incr(key)
        if count == 1:
            await redis_client.expire(key, 86400)
    except (RedisError, OSError) as exc:
        logger.warning("AI rate limit check skipped: %s", exc)
        return True
    return count <= limit


# ---------------------------------------------------------------------------
# Main Service Function
# ---------------------------------------------------------------------------


async def send_message(
    user_text: str,
    history: list[ChatTurn] | None = None,
    context_json: str | None = None,
    provider: LLMProvider | None = None,
    redis_client=None,
    user_id: uuid.UUID | None = None,
    daily_limit: int = 20,
) -> ChatResponse:
    """Send one user message (plus prior turns) to the coach."""
    if provider is None:
        logger.warning("AI provider not configured. AI features are disabled.")
        return ChatResponse(message=NOT_CONFIGURED_MESSAGE, error="NO_API_TOKEN")

    if redis_client is not None and user_id is not None:
        if not await _check_rate_limit(redis_client, user_id, daily_limit):
            return ChatResponse(
                message="You've reached today's AI coach limit. Try again tomorrow.",
                error="RATE_LIMITED",
            )

    messages = [{"role": "system", "content": build_system_prompt(context_json)}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in history or [])
    messages.append({"role": "user", "content": user_text})

    try:
        reply = await provider.chat(messages)
    except ProviderAuthError:
        logger.error("AI provider rejected credentials")
        return ChatResponse(
            message="Invalid AI credentials. Please check your AI provider configuration.",
            error="INVALID_TOKEN",
        )
    except ProviderConnectionError:
        logger.exception("Failed to reach AI provider")
        return ChatResponse(
            message="Failed to connect to AI service. Please check your internet connection.",
            error="NETWORK_ERROR",
        )
    except ProviderError as exc:
        logger.error("AI API error: %s %s", exc.status_code, exc)
        return ChatResponse(
            message=f"AI service error: {exc.status_code}. Please try again.",
            error="API_ERROR",
        )
    except Exception:
        logger.exception("Failed to send message to AI")
        return ChatResponse(
            message="Failed to connect to AI service. Please check your internet connection.",
            error="NETWORK_ERROR",
        )

    if not reply:
        logger.error("Invalid AI response: empty content")
        return ChatResponse(
            message="Received invalid response from AI service.",
            error="INVALID_RESPONSE",
        )

    return ChatResponse(message=reply)
