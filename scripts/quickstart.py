#!/usr/bin/env python3
"""Minimal outofcontext quickstart: a short capped run and a run into context exhaustion."""

from __future__ import annotations

from outofcontext.components.output.sinks import BufferSink
from outofcontext.components.sampling.config import SamplingConfig
from outofcontext.core.data import GenerationConfig
from outofcontext.core.engine import GenerationEngine
from outofcontext.integrations.toy import make_toy_runtime
from outofcontext.utils.logging import setup_logger
# from outofcontext.integrations.hub import resolve_model
# from outofcontext.integrations.hf_recipes import make_hf_runtime


def main() -> None:
    setup_logger(log_level="INFO")

    # [Runtime]
    # make_toy_runtime() or make_hf_runtime(resolve_model("HuggingFaceTB/SmolLM2-135M-Instruct"))
    runtime = make_toy_runtime()

    sampling = SamplingConfig(temperature=0.8, top_p=0.9, top_k=0, seed=2024)
    system_prompt = "You are a voice in a quiet room."

    sink = BufferSink()
    engine = GenerationEngine(
        runtime,
        sink,
        sampling=sampling,
        config=GenerationConfig(max_tokens=24, anchor_interval=10, user_prompt="Go."),
    )
    capped = engine.generate(system_prompt)

    print("=== Capped run ===")
    print(f"Text         : {capped.text!r}")
    print(f"Outcome      : {capped.outcome.value} ({capped.stop_reason})")
    print(f"Generated    : {capped.generated_tokens} (anchors={capped.anchors_injected})")

    runtime.reset()
    sink = BufferSink()
    engine = GenerationEngine(
        runtime,
        sink,
        sampling=sampling,
        config=GenerationConfig(context_size=96, anchor_interval=0, loop_guard=False, user_prompt="Go."),
    )
    exhausted = engine.generate(system_prompt)

    print("\n=== Run to exhaustion ===")
    print(f"Outcome      : {exhausted.outcome.value} ({exhausted.stop_reason})")
    print(f"Context used : {exhausted.tokens_used}/96 (prompt={exhausted.prompt_tokens})")


if __name__ == "__main__":
    main()
