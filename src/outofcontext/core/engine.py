"""Token-by-token generation driver: prime, then sample or inject until a terminal state."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from outofcontext.components.sampling.bias import build_logit_bias
from outofcontext.components.sampling.chain import SamplerChain, build_sampler_chain
from outofcontext.components.sampling.config import SamplingConfig
from .anchors import ANCHOR_SENTENCES, AnchorInjector
from .budget import ContextBudget
from .contracts import BatchEntry, InferenceRuntime, OutputSink
from .data import GenerationConfig, GenerationOutcome, GenerationResult, RunState
from .errors import PromptReadError, PromptTooLargeError, TokenizationError
from .guard import RecentTokenWindow, RepetitionGuard
from .rng import resolve_seed

logger = logging.getLogger(__name__)

DEFAULT_USER_PROMPT = "Think out loud, in the first person, and never stop."


class GenerationEngine:
    """Drives one runtime until the token cap, context exhaustion or a detected loop."""

    def __init__(
        self,
        runtime: InferenceRuntime,
        output: OutputSink,
        *,
        sampling: Optional[SamplingConfig] = None,
        config: Optional[GenerationConfig] = None,
        logit_bias: Optional[Mapping[int, float]] = None,
        hooks: Optional[Sequence[Any]] = None,
        anchor_sentences: Sequence[str] = ANCHOR_SENTENCES,
    ) -> None:
        self.runtime = runtime
        self.output = output
        self.sampling = sampling or SamplingConfig()
        self.config = config or GenerationConfig()
        # None: build the default table from the runtime's tokenizer.
        self.logit_bias = logit_bias
        self.hooks: List[Any] = list(hooks or [])
        self.anchor_sentences = tuple(anchor_sentences)

    # ------------------------------------------------------------------
    def generate(self, system_prompt: str) -> GenerationResult:
        run = _GenerationRun(self, system_prompt)
        run.prime()
        return run.run()

    def generate_from_file(self, prompt_file: Union[str, Path]) -> GenerationResult:
        return self.generate(read_prompt(prompt_file))


def read_prompt(prompt_file: Union[str, Path]) -> str:
    path = Path(prompt_file)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PromptReadError(f"Failed to read prompt file: {path}") from exc


def generate_infinite(
    runtime: InferenceRuntime,
    prompt_file: Union[str, Path],
    output: OutputSink,
    *,
    sampling: Optional[SamplingConfig] = None,
    config: Optional[GenerationConfig] = None,
    hooks: Optional[Sequence[Any]] = None,
) -> GenerationResult:
    engine = GenerationEngine(runtime, output, sampling=sampling, config=config, hooks=hooks)
    return engine.generate_from_file(prompt_file)


class _GenerationRun:
    def __init__(self, engine: GenerationEngine, system_prompt: str) -> None:
        self.runtime = engine.runtime
        self.output = engine.output
        self.sampling = engine.sampling
        self.config = engine.config
        self.hooks = engine.hooks
        self.system_prompt = system_prompt
        self._logit_bias = engine.logit_bias

        self.state = RunState()
        self.window = RecentTokenWindow()
        self.guard = RepetitionGuard()
        self.injector = AnchorInjector(self.config.anchor_interval, engine.anchor_sentences)
        self.pieces: List[str] = []
        self.seed = resolve_seed(self.sampling.seed)

        self.budget: Optional[ContextBudget] = None
        self.chain: Optional[SamplerChain] = None
        self.prompt_tokens = 0
        self._position = -1
        self._just_injected = False

    # ------------------------------------------------------------------
    def prime(self) -> None:
        cfg = self.config
        prompt = self.runtime.format_prompt(self.system_prompt, cfg.user_prompt or DEFAULT_USER_PROMPT)
        tokens = self.runtime.tokenize(prompt, add_bos=True)
        if not tokens:
            raise TokenizationError("prompt produced no tokens")
        self.prompt_tokens = len(tokens)

        if not cfg.quiet:
            logger.info("System prompt:\n%s", self.system_prompt.strip())
            logger.info("Prompt tokens: %d", self.prompt_tokens)
            logger.info("Context capacity: %d", cfg.context_size)

        if self.prompt_tokens >= cfg.context_size:
            raise PromptTooLargeError(self.prompt_tokens, cfg.context_size)

        if self._logit_bias is None:
            self._logit_bias = build_logit_bias(self.runtime)
        self.chain = build_sampler_chain(
            self.sampling,
            cfg.context_size,
            self.seed,
            self.runtime.vocab_size,
            self._logit_bias,
        )

        last = len(tokens) - 1
        self.runtime.decode([BatchEntry(tok, i, 0, i == last) for i, tok in enumerate(tokens)])
        self.chain.accept_many(tokens)
        self.budget = ContextBudget(cfg.context_size, tokens_used=self.prompt_tokens)
        self.state.tokens_used = self.budget.tokens_used
        self._position = last

        if not cfg.quiet:
            logger.info("Available tokens: %d (panic at %d)", self.budget.remaining(), self.budget.panic_threshold)
            logger.info("Seed: %d", self.seed)
        self._notify(
            "on_prime",
            prompt_tokens=self.prompt_tokens,
            context_size=cfg.context_size,
            seed=self.seed,
            stages=self.chain.stage_names,
        )

    # ------------------------------------------------------------------
    def run(self) -> GenerationResult:
        if self.budget is None or self.chain is None:
            raise RuntimeError("run() called before prime()")
        while True:
            if self.budget.exhausted:
                return self._finish(GenerationOutcome.EXHAUSTED, "context window exhausted")
            if self._cap_reached():
                return self._finish(GenerationOutcome.CAPPED, "max_tokens reached")

            if self._anchor_due():
                looped = self._inject_anchor()
                self._just_injected = True
            else:
                looped = self._sample()
                self._just_injected = False

            if looped:
                return self._finish(GenerationOutcome.LOOP_DETECTED, self.guard.last_reason or "loop detected")

    # ------------------------------------------------------------------
    def _cap_reached(self) -> bool:
        cap = self.config.max_tokens
        return cap is not None and self.state.generated_tokens >= cap

    def _anchor_due(self) -> bool:
        # An injection can land on a multiple of the interval; require an organic token in between.
        return not self._just_injected and self.injector.should_inject(self.state.generated_tokens)

    def _sample(self) -> bool:
        logits = self.runtime.candidates(self._position)
        token = self.chain.sample(logits)
        return self._advance(token, "sampled")

    def _inject_anchor(self) -> bool:
        idx, sentence, tokens = self.injector.next_tokens(self.runtime)
        self.state.anchor_index = self.injector.index
        self.state.anchors_injected += 1
        logger.debug("Injecting anchor %d: %r (%d tokens)", idx, sentence, len(tokens))
        self._notify("on_anchor", index=idx, sentence=sentence, tokens=len(tokens))
        for token in tokens:
            if self.budget.exhausted or self._cap_reached():
                break
            if self._advance(token, "anchor"):
                return True
        return False

    def _advance(self, token: int, kind: str) -> bool:
        """Emit one token; returns True when the repetition guard trips."""
        self.chain.accept(token)
        text = self.runtime.decode_token(token)
        self.output.write_token(text)
        self.pieces.append(text)

        self.budget.consume(1)
        self.state.tokens_used = self.budget.tokens_used
        self.state.generated_tokens += 1
        self.window.append(text)
        self._notify(
            "on_token",
            token=int(token),
            text=text,
            kind=kind,
            tokens_used=self.state.tokens_used,
            generated=self.state.generated_tokens,
        )

        if self.config.loop_guard and self.guard.check(self.window):
            self.state.loop_strikes += 1
            return True

        self._position = self.budget.tokens_used - 1
        self.runtime.decode([BatchEntry(int(token), self._position, 0, True)])
        return False

    def _finish(self, outcome: GenerationOutcome, reason: str) -> GenerationResult:
        st = self.state
        if outcome is GenerationOutcome.CAPPED:
            logger.info("Reached max token cap (%d generated); stopping.", st.generated_tokens)
        elif outcome is GenerationOutcome.EXHAUSTED:
            logger.warning(
                "Context window exhausted: %d/%d tokens used. The run has consumed all available memory.",
                st.tokens_used,
                self.config.context_size,
            )
        else:
            logger.warning("Loop detected after %d generated tokens: %s", st.generated_tokens, reason)

        result = GenerationResult(
            outcome=outcome,
            text="".join(self.pieces),
            prompt_tokens=self.prompt_tokens,
            tokens_used=st.tokens_used,
            generated_tokens=st.generated_tokens,
            anchors_injected=st.anchors_injected,
            loop_strikes=st.loop_strikes,
            stop_reason=reason,
            seed=self.seed,
            pieces=list(self.pieces),
        )
        self._notify(
            "on_finish",
            outcome=outcome.value,
            stop_reason=reason,
            tokens_used=st.tokens_used,
            generated=st.generated_tokens,
            anchors=st.anchors_injected,
        )
        return result

    def _notify(self, name: str, **payload: Any) -> None:
        for hook in self.hooks:
            fn = getattr(hook, name, None)
            if callable(fn):
                try:
                    fn(**payload)
                except Exception:
                    logger.warning("hook %s.%s failed", type(hook).__name__, name, exc_info=True)
