"""Command-line entry point: resolve the model, load it, stream until the context gives out."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from outofcontext import __version__
from outofcontext.components.output.sinks import build_output
from outofcontext.components.sampling.config import SamplingConfig
from outofcontext.core.data import GenerationConfig, GenerationOutcome
from outofcontext.core.engine import GenerationEngine
from outofcontext.core.errors import OutOfContextError
from outofcontext.core.hooks import JSONLTraceHook, LoopStrikeHook
from outofcontext.integrations.hub import DEFAULT_MODEL, resolve_model
from outofcontext.utils.logging import setup_logger

logger = logging.getLogger("outofcontext.cli")

EXIT_CODES = {
    GenerationOutcome.CAPPED: 0,
    GenerationOutcome.EXHAUSTED: 2,
    GenerationOutcome.LOOP_DETECTED: 3,
}
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outofcontext",
        description="An LLM text generator that runs until context exhaustion",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-m", "--model", default=DEFAULT_MODEL,
        help="Hugging Face model id/URL or path to a local model directory",
    )
    parser.add_argument("-d", "--model-dir", type=Path, default=Path("models"), help="Directory to store downloaded models")
    parser.add_argument("-p", "--prompt-file", type=Path, default=Path("prompt.txt"), help="Path to the system prompt file")
    parser.add_argument("-c", "--context-size", type=int, default=1024, help="Context window size in tokens")
    parser.add_argument("--max-tokens", type=int, default=None, help="Optional cap on generated tokens")
    parser.add_argument("--threads", type=int, default=None, help="Number of CPU threads (defaults to torch's choice)")
    parser.add_argument("--output-file", type=Path, default=None, help="Also mirror output into this file")

    sampling = parser.add_argument_group("sampling")
    sampling.add_argument("--temperature", type=float, default=0.22, help="Sampling temperature (0 disables scaling)")
    sampling.add_argument("--top-p", type=float, default=0.5, help="Nucleus probability mass (1.0 disables)")
    sampling.add_argument("--top-k", type=int, default=20, help="Top-k cap (0 disables)")
    sampling.add_argument("--repeat-penalty", type=float, default=2.15, help="Penalize recent repeats (1.0 disables)")
    sampling.add_argument("--repeat-last-n", type=int, default=-1, help="Penalty window in tokens (-1: whole context)")
    sampling.add_argument("--presence-penalty", type=float, default=1.35)
    sampling.add_argument("--frequency-penalty", type=float, default=1.05)
    sampling.add_argument("--seed", type=int, default=None, help="Random seed (omit for a time-based seed)")
    sampling.add_argument("--mirostat", action="store_true", help="Use mirostat v2 instead of multinomial sampling")
    sampling.add_argument("--mirostat-tau", type=float, default=5.0, help="Target surprise for mirostat v2")
    sampling.add_argument("--mirostat-eta", type=float, default=0.1, help="Learning rate for mirostat v2")

    parser.add_argument("--user-prompt", default=None, help="Override the user prompt that follows the system prompt")
    parser.add_argument("--quiet", action="store_true", help="Only stream the model output")
    parser.add_argument("--anchor-interval", type=int, default=80, help="Tokens between anchor sentences (0 disables)")
    parser.add_argument("--disable-anchors", action="store_true", help="Disable anchor injection entirely")
    parser.add_argument("--disable-loop-guard", action="store_true", help="Disable loop detection")
    parser.add_argument("--trace-file", type=Path, default=None, help="Write per-token JSONL events here")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args: argparse.Namespace) -> Tuple[SamplingConfig, GenerationConfig]:
    if args.threads is not None and args.threads <= 0:
        raise ValueError("--threads must be a positive integer")
    sampling = SamplingConfig(
        temperature=args.temperature,
        top_p=args.top_p,
        top_k=args.top_k,
        repeat_penalty=args.repeat_penalty,
        repeat_last_n=args.repeat_last_n,
        presence_penalty=args.presence_penalty,
        frequency_penalty=args.frequency_penalty,
        seed=args.seed,
        mirostat=args.mirostat,
        mirostat_tau=args.mirostat_tau,
        mirostat_eta=args.mirostat_eta,
    )
    generation = GenerationConfig(
        context_size=args.context_size,
        max_tokens=args.max_tokens,
        anchor_interval=0 if args.disable_anchors else args.anchor_interval,
        loop_guard=not args.disable_loop_guard,
        quiet=args.quiet,
        user_prompt=args.user_prompt,
    )
    return sampling, generation


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        sampling, generation = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    setup_logger(log_level="WARNING" if args.quiet else args.log_level)

    hooks: List[object] = []
    output = None
    try:
        model_path = resolve_model(args.model, args.model_dir)
        # transformers is slow to import; keep --help and --version fast
        from outofcontext.integrations.hf_recipes import make_hf_runtime

        runtime = make_hf_runtime(model_path, threads=args.threads)
        output = build_output(args.output_file)
        if args.trace_file is not None:
            hooks.append(JSONLTraceHook(str(args.trace_file)))
        if not args.quiet:
            hooks.append(LoopStrikeHook())

        engine = GenerationEngine(runtime, output, sampling=sampling, config=generation, hooks=hooks)
        result = engine.generate_from_file(args.prompt_file)
    except OutOfContextError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    finally:
        if output is not None:
            output.close()
        for hook in hooks:
            close = getattr(hook, "close", None)
            if callable(close):
                close()

    sys.stdout.write("\n")
    sys.stdout.flush()
    logger.info(
        "Outcome: %s (%s); %d generated, %d/%d context tokens, %d anchors",
        result.outcome.value,
        result.stop_reason,
        result.generated_tokens,
        result.tokens_used,
        generation.context_size,
        result.anchors_injected,
    )
    return EXIT_CODES[result.outcome]


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
