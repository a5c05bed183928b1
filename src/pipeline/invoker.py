"""Bounded-retry wrapper around a single text-completion call.

The call runs as a one-node langgraph graph whose ``RetryPolicy`` carries the
backoff: exponential from ``[retry].initial_interval`` with uniform(0, 1) s of
jitter. Client faults (bad request, auth, forbidden) fail fast; timeouts,
server faults and empty responses are retried until the attempt budget is
spent. Callers always get an ``InvocationResult``, never an exception.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from langchain_core.runnables import RunnableConfig
from langgraph.constants import END, START
from langgraph.graph import StateGraph
from langgraph.graph.state import CompiledStateGraph
from langgraph.types import RetryPolicy

from src.config import RetryConfig
from src.errors import NON_RETRYABLE_STATUS_CODES, CompletionError, EmptyCompletionError
from src.interfaces import TextCompletionService
from src.schemas.state import InvocationState

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_OUTPUT_TOKENS = 2000
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class InvocationAttempt:
    """Bookkeeping for one call; logged, never persisted."""

    number: int
    prompt: str
    temperature: float
    outcome: str
    error: str | None = None


@dataclass
class InvocationResult:
    text: str = ""
    succeeded: bool = False
    error: str | None = None
    attempts: list[InvocationAttempt] = field(default_factory=list)


def is_retryable(exc: BaseException) -> bool:
    """Client faults are final; everything else may succeed on another attempt."""
    if isinstance(exc, CompletionError):
        return exc.retryable
    return getattr(exc, "status_code", None) not in NON_RETRYABLE_STATUS_CODES


def build_retry_policy(retry: RetryConfig, max_attempts: int) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        initial_interval=retry.initial_interval,
        backoff_factor=retry.backoff_factor,
        max_interval=retry.max_interval,
        jitter=retry.jitter,
        retry_on=is_retryable,
    )


class RetryableInvoker:
    """Calls the completion service under the retry policy.

    Args:
        completion: The text-completion collaborator.
        retry: Backoff configuration shared by every stage.
        max_output_tokens: Output cap passed on every call.
        timeout: Per-call upper bound; exceeding it counts as a retryable failure.
    """

    def __init__(
        self,
        completion: TextCompletionService,
        retry: RetryConfig | None = None,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._completion = completion
        self._retry = retry or RetryConfig()
        self._max_output_tokens = max_output_tokens
        self._timeout = timeout
        self._graphs: dict[int, CompiledStateGraph] = {}

    def _graph(self, max_attempts: int) -> CompiledStateGraph:
        """Compiled call graph for an attempt budget (one per budget, reused)."""
        if max_attempts not in self._graphs:
            builder = StateGraph(InvocationState)
            builder.add_node(
                "generate",
                self._generate,
                retry_policy=build_retry_policy(self._retry, max_attempts),
            )
            builder.add_edge(START, "generate")
            builder.add_edge("generate", END)
            self._graphs[max_attempts] = builder.compile()
        return self._graphs[max_attempts]

    async def _attempt(self, prompt: str, temperature: float) -> str:
        try:
            text = await asyncio.wait_for(
                self._completion.generate(prompt, temperature, self._max_output_tokens),
                timeout=self._timeout,
            )
        except TimeoutError as exc:
            raise CompletionError(f"LLM call timed out after {self._timeout}s") from exc
        if not text or not text.strip():
            raise EmptyCompletionError()
        return text.strip()

    async def _generate(self, state: InvocationState, config: RunnableConfig) -> dict:
        """Graph node: one attempt, recorded in the caller's attempt list."""
        attempts: list[InvocationAttempt] = config["configurable"]["attempts"]
        max_attempts: int = config["configurable"]["max_attempts"]
        number = len(attempts) + 1
        prompt, temperature = state["prompt"], state["temperature"]
        try:
            text = await self._attempt(prompt, temperature)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            attempts.append(
                InvocationAttempt(number, prompt, temperature, f"error: {error}", error)
            )
            logger.warning(
                "invoke_attempt_failed",
                attempt=number,
                max_attempts=max_attempts,
                status_code=getattr(exc, "status_code", None),
                retryable=is_retryable(exc),
                error=error,
            )
            raise
        attempts.append(InvocationAttempt(number, prompt, temperature, "ok"))
        return {"text": text}

    async def invoke(
        self,
        prompt: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        temperature: float = 0.3,
    ) -> InvocationResult:
        """Run the call until it succeeds, fails fast, or attempts run out."""
        max_attempts = max(1, max_attempts)
        attempts: list[InvocationAttempt] = []
        config: RunnableConfig = {
            "configurable": {"attempts": attempts, "max_attempts": max_attempts}
        }
        try:
            state = await self._graph(max_attempts).ainvoke(
                {"prompt": prompt, "temperature": temperature}, config=config
            )
        except Exception as exc:
            error = next(
                (a.error for a in reversed(attempts) if a.error),
                str(exc) or type(exc).__name__,
            )
            logger.error("invoke_failed", attempts=len(attempts), error=error)
            return InvocationResult(error=error, attempts=attempts)

        return InvocationResult(text=state["text"], succeeded=True, attempts=attempts)
