# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client using LiteLLM for multi-provider support.

The memory extraction pipeline sends a system instruction plus an
extraction prompt and reads back plain text. API keys and endpoints are
passed directly to LiteLLM's acompletion() rather than through
environment variables.

Example:
    >>> from src.core.intelligence.llm import LLMClient, Message
    >>> client = LLMClient.from_settings(get_settings().llm)
    >>> response = await client.complete(
    ...     prompt="Summarize this conversation",
    ...     system_prompt="You are a memory extraction assistant.",
    ... )
    >>> print(response.content)
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import litellm
from litellm import acompletion

if TYPE_CHECKING:
    from src.core.config.settings import LLMSettings

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from an LLM completion.

    Attributes:
        content: The generated text content.
        model: The model that generated the response.
        tokens_input: Number of input tokens used.
        tokens_output: Number of output tokens generated.
        finish_reason: Why generation stopped (stop, length, etc.).
        raw_response: Original response object from LiteLLM.
    """

    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"
    raw_response: Optional[object] = field(default=None, repr=False)

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.tokens_input + self.tokens_output


class LLMError(Exception):
    """Exception raised when an LLM operation fails.

    Attributes:
        message: Error description.
        model: Model that caused the error.
        original_error: Original exception if any.
    """

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.model = model
        self.original_error = original_error
        super().__init__(self.message)


@dataclass
class Message:
    """A chat message.

    Attributes:
        role: Message role (system, user, assistant).
        content: Message text content.
    """

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to the dictionary format LiteLLM expects."""
        return {"role": self.role, "content": self.content}


class LLMClient:
    """Chat completion client backed by LiteLLM.

    Attributes:
        model: Default model for completions.
        timeout: Request timeout in seconds.
        max_retries: Retry attempts delegated to LiteLLM.
    """

    def __init__(
        self,
        model: str,
        timeout: float = 60.0,
        max_retries: int = 3,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        """Initialize the LLM client.

        Args:
            model: Default model in LiteLLM format.
            timeout: Request timeout in seconds.
            max_retries: Retry attempts delegated to LiteLLM.
            api_base: Optional provider base URL.
            api_key: Optional provider API key.
        """
        self._model = model
        self._timeout = timeout
        self._max_retries = max_retries
        self._provider_params: dict[str, Any] = {}
        if api_base:
            self._provider_params["api_base"] = api_base
        if api_key:
            self._provider_params["api_key"] = api_key

        litellm.set_verbose = False
        litellm.drop_params = True

        logger.info(
            "LLMClient initialized with model=%s, timeout=%.1fs, max_retries=%d",
            self._model,
            self._timeout,
            self._max_retries,
        )

    @classmethod
    def from_settings(cls, settings: "LLMSettings") -> "LLMClient":
        """Create a client from LLM settings.

        Args:
            settings: LLM settings.

        Returns:
            A configured LLMClient.
        """
        return cls(
            model=settings.model,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            api_base=settings.api_base,
            api_key=settings.api_key.get_secret_value() if settings.api_key else None,
        )

    @property
    def model(self) -> str:
        """Default model identifier."""
        return self._model

    @property
    def timeout(self) -> float:
        """Request timeout in seconds."""
        return self._timeout

    @property
    def max_retries(self) -> int:
        """Retry attempts delegated to LiteLLM."""
        return self._max_retries

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Generate a completion for a single prompt.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system instruction.
            model: Override default model for this request.
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens to generate.

        Returns:
            LLMResponse with generated content and metadata.

        Raises:
            LLMError: If generation fails after retries.
            ValueError: If prompt is empty.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        messages: list[Message] = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=prompt))

        return await self.complete_with_messages(
            [m.to_dict() for m in messages],
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def complete_with_messages(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion from a list of messages.

        Args:
            messages: Messages in OpenAI format with 'role' and 'content' keys.
            model: Override default model for this request.
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional LiteLLM parameters.

        Returns:
            LLMResponse with generated content and metadata.

        Raises:
            LLMError: If completion fails after retries.
            ValueError: If messages list is empty.
        """
        if not messages:
            raise ValueError("Messages list cannot be empty")

        use_model = model or self._model

        try:
            response = await acompletion(
                model=use_model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self._timeout,
                num_retries=self._max_retries,
                **self._provider_params,
                **kwargs,
            )
        except Exception as e:
            logger.error(
                "LLM completion failed: model=%s, error=%s",
                use_model,
                str(e),
            )
            raise LLMError(
                message=f"Completion failed: {e}",
                model=use_model,
                original_error=e,
            ) from e

        choice = response.choices[0]
        tokens_input = getattr(response.usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(response.usage, "completion_tokens", 0) or 0

        logger.debug(
            "Completion generated: model=%s, tokens_in=%d, tokens_out=%d",
            use_model,
            tokens_input,
            tokens_output,
        )

        return LLMResponse(
            content=choice.message.content or "",
            model=use_model,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            finish_reason=choice.finish_reason or "stop",
            raw_response=response,
        )

    def __repr__(self) -> str:
        return f"LLMClient(model={self._model!r}, timeout={self._timeout})"
