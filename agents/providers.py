"""Model construction shared by the summarizer and digest agents.

Model strings use the PydanticAI ``provider:model`` form, for example
``google-gla:gemini-2.5-flash``. A local OpenAI-compatible server is
addressed as ``openai:<model_name>@<base_url>``.
"""

import logging

from openai import AsyncOpenAI
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.profiles.openai import OpenAIModelProfile
from pydantic_ai.providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)


def parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse a local model string into (model_name, base_url), or None if remote.

    Example:
        >>> parse_local_model("openai:qwen3@http://127.0.0.1:8080/v1")
        ('qwen3', 'http://127.0.0.1:8080/v1')
    """
    if model_str.startswith("openai:") and "@" in model_str:
        model_name, base_url = model_str[len("openai:"):].split("@", 1)
        return model_name, base_url
    return None


def create_model(model_str: str):
    """Create a PydanticAI model instance, or pass a remote model string through."""
    parsed = parse_local_model(model_str)
    if parsed:
        model_name, base_url = parsed
        logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
        # Local servers need no authentication
        client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        # Local servers generally lack response_format support
        profile = OpenAIModelProfile(supports_json_object_output=False)
        return OpenAIChatModel(
            model_name,
            provider=OpenAIProvider(openai_client=client),
            profile=profile,
        )
    return model_str


def is_local_model(model_str: str) -> bool:
    return parse_local_model(model_str) is not None


def token_usage(result) -> tuple[int, int]:
    """Return (input_tokens, output_tokens) for a finished agent run.

    Older releases expose ``usage`` as a method, newer ones as a property.
    """
    usage = result.usage
    if callable(usage):
        usage = usage()
    return usage.input_tokens or 0, usage.output_tokens or 0
