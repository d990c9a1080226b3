from collections import Counter
from dataclasses import replace

import pytest

from outofcontext.components.output.sinks import BufferSink
from outofcontext.components.sampling.bias import DISCOURAGED_BIAS, build_logit_bias
from outofcontext.core.anchors import ANCHOR_SENTENCES
from outofcontext.core.data import GenerationConfig, GenerationOutcome
from outofcontext.core.engine import GenerationEngine, _GenerationRun, generate_infinite
from outofcontext.core.errors import PromptReadError, PromptTooLargeError
from outofcontext.integrations.toy import make_toy_runtime

from helpers import NEUTRAL, RecordingHook, looping_runtime


def _engine(runtime, sink, hook=None, *, sampling=NEUTRAL, anchor_sentences=ANCHOR_SENTENCES, **config):
    config.setdefault("quiet", True)
    config.setdefault("user_prompt", "Go.")
    return GenerationEngine(
        runtime,
        sink,
        sampling=sampling,
        config=GenerationConfig(**config),
        hooks=[hook] if hook is not None else [],
        anchor_sentences=anchor_sentences,
    )


def test_cap_stops_with_exact_piece_count(toy_runtime, sink, hook):
    result = _engine(toy_runtime, sink, hook, max_tokens=10, anchor_interval=0).generate("Hi.")

    assert result.outcome is GenerationOutcome.CAPPED
    assert not result.fatal
    assert result.generated_tokens == 10
    assert len(sink.pieces) == 10
    assert result.text == sink.text
    assert result.tokens_used == result.prompt_tokens + 10
    assert hook.of("finish")[0]["outcome"] == "capped"


def test_prompt_too_large_fails_before_any_decode(toy_runtime, sink):
    engine = _engine(toy_runtime, sink, context_size=8)
    with pytest.raises(PromptTooLargeError) as err:
        engine.generate("A system prompt that is far longer than eight tokens.")
    assert err.value.context_size == 8
    assert toy_runtime.decode_calls == 0
    assert sink.pieces == []


def test_loop_is_detected_and_last_token_not_decoded(sink, hook):
    runtime = looping_runtime()
    result = _engine(runtime, sink, hook, anchor_interval=0).generate("Hi.")

    assert result.outcome is GenerationOutcome.LOOP_DETECTED
    assert result.fatal
    assert result.generated_tokens == 50
    assert len(sink.pieces) == 50
    assert result.loop_strikes == 1
    assert result.stop_reason == "repeated 5-gram"
    # the flagged token was written out but never fed back to the model
    assert len(runtime.tokens) == result.prompt_tokens + 49


def test_loop_guard_can_be_disabled(sink):
    runtime = looping_runtime()
    result = _engine(runtime, sink, anchor_interval=0, loop_guard=False, max_tokens=80).generate("Hi.")
    assert result.outcome is GenerationOutcome.CAPPED
    assert result.loop_strikes == 0


def test_context_exhaustion_at_panic_threshold(toy_runtime, sink, hook):
    result = _engine(
        toy_runtime, sink, hook, context_size=64, anchor_interval=0, loop_guard=False
    ).generate("Hi.")

    assert result.outcome is GenerationOutcome.EXHAUSTED
    assert result.tokens_used == 60
    assert result.generated_tokens == 60 - result.prompt_tokens
    assert hook.of("finish")[0]["outcome"] == "exhausted"


def test_tokens_used_tracks_every_emitted_token(toy_runtime, sink, hook):
    result = _engine(toy_runtime, sink, hook, max_tokens=30, anchor_interval=7, loop_guard=False).generate("Hi.")

    tokens = hook.of("token")
    assert len(tokens) == result.generated_tokens
    for n, event in enumerate(tokens, start=1):
        assert event["generated"] == n
        assert event["tokens_used"] == result.prompt_tokens + n
    assert tokens[-1]["tokens_used"] <= 1024


def test_anchor_indices_advance_by_stride(toy_runtime, sink, hook):
    result = _engine(toy_runtime, sink, hook, max_tokens=150, anchor_interval=5, loop_guard=False).generate("Hi.")

    anchors = hook.of("anchor")
    assert result.anchors_injected == len(anchors) >= 2
    assert [a["index"] for a in anchors[:2]] == [0, 3]
    assert anchors[0]["sentence"] == ANCHOR_SENTENCES[0]
    assert " " + ANCHOR_SENTENCES[0] in result.text


def test_anchor_injection_respects_cap(toy_runtime, sink, hook):
    result = _engine(toy_runtime, sink, hook, max_tokens=12, anchor_interval=5, loop_guard=False).generate("Hi.")

    assert result.outcome is GenerationOutcome.CAPPED
    assert result.generated_tokens == 12
    assert result.anchors_injected == 1
    kinds = [e["kind"] for e in hook.of("token")]
    assert kinds == ["sampled"] * 5 + ["anchor"] * 7


def test_prime_reports_stage_names(toy_runtime, sink, hook):
    _engine(toy_runtime, sink, hook, max_tokens=1, anchor_interval=0).generate("Hi.")
    prime = hook.of("prime")[0]
    assert prime["seed"] == NEUTRAL.seed
    assert prime["stages"][-1] == "DistSelector"


def test_default_bias_is_built_from_runtime(toy_runtime, sink, hook):
    engine = _engine(toy_runtime, sink, hook, max_tokens=1, anchor_interval=0)
    assert engine.logit_bias is None
    engine.generate("Hi.")
    assert "LogitBiasStage" in hook.of("prime")[0]["stages"]

    star = toy_runtime.tokenize("*", add_bos=False)[0]
    assert build_logit_bias(toy_runtime)[star] == DISCOURAGED_BIAS


def test_explicit_empty_bias_skips_the_stage(toy_runtime, sink, hook):
    engine = _engine(toy_runtime, sink, hook, max_tokens=1, anchor_interval=0)
    engine.logit_bias = {}
    engine.generate("Hi.")
    assert "LogitBiasStage" not in hook.of("prime")[0]["stages"]


def test_same_seed_reproduces_text():
    texts = []
    for _ in range(2):
        out = BufferSink()
        _engine(make_toy_runtime(), out, max_tokens=25, anchor_interval=0, loop_guard=False).generate("Hi.")
        texts.append(out.text)
    assert texts[0] == texts[1]


def test_hook_failures_do_not_stop_the_run(toy_runtime, sink, hook):
    class Broken(RecordingHook):
        def on_token(self, **event):
            raise RuntimeError("boom")

    engine = _engine(toy_runtime, sink, Broken(), max_tokens=3, anchor_interval=0)
    engine.hooks.append(hook)
    result = engine.generate("Hi.")
    assert result.generated_tokens == 3
    assert len(hook.of("token")) == 3


def test_generate_infinite_reads_prompt_file(tmp_path, toy_runtime, sink):
    prompt = tmp_path / "prompt.txt"
    prompt.write_text("Hi.\n", encoding="utf-8")
    config = GenerationConfig(max_tokens=4, anchor_interval=0, quiet=True, user_prompt="Go.")
    result = generate_infinite(toy_runtime, prompt, sink, sampling=NEUTRAL, config=config)
    assert result.generated_tokens == 4


def test_missing_prompt_file_raises(tmp_path, toy_runtime, sink):
    with pytest.raises(PromptReadError):
        _engine(toy_runtime, sink).generate_from_file(tmp_path / "absent.txt")


def test_unseeded_runs_report_their_seed(toy_runtime, sink):
    engine = _engine(toy_runtime, sink, max_tokens=2, anchor_interval=0)
    engine.sampling = replace(NEUTRAL, seed=None)
    result = engine.generate("Hi.")
    assert isinstance(result.seed, int)


def test_anchor_tokens_enter_the_penalty_window(sink, hook):
    runtime = make_toy_runtime((" w0", " w1", " w2"))
    sampling = replace(NEUTRAL, repeat_last_n=-1, presence_penalty=0.5)
    engine = _engine(runtime, sink, hook, sampling=sampling, max_tokens=12, anchor_interval=5, loop_guard=False)

    run = _GenerationRun(engine, "Hi.")
    run.prime()
    result = run.run()

    anchor_ids = [e["token"] for e in hook.of("token") if e["kind"] == "anchor"]
    assert result.anchors_injected == 1
    assert len(anchor_ids) == 7
    counts = run.chain.penalties.counts
    # every token fed to the model, prompt and anchors included, is counted once
    assert int(counts.sum()) == len(runtime.tokens)
    for tid, n in Counter(runtime.tokens).items():
        assert int(counts[tid]) == n
    assert all(int(counts[tid]) > 0 for tid in anchor_ids)


def test_injected_tokens_alone_can_trip_the_guard(sink, hook):
    runtime = make_toy_runtime((" w0", " w1"))
    result = _engine(
        runtime, sink, hook, anchor_interval=1, anchor_sentences=("abcd" * 15,)
    ).generate("Hi.")

    kinds = [e["kind"] for e in hook.of("token")]
    assert result.outcome is GenerationOutcome.LOOP_DETECTED
    assert result.stop_reason == "repeated 4-gram"
    assert kinds == ["sampled"] + ["anchor"] * 39
    assert len(runtime.tokens) == result.prompt_tokens + 39


def test_anchor_never_fires_twice_in_a_row(sink, hook):
    # " abcd" tokenizes to five tokens, a multiple of the interval
    runtime = make_toy_runtime((" w0", " w1"))
    result = _engine(
        runtime, sink, hook, max_tokens=16, anchor_interval=5, loop_guard=False, anchor_sentences=("abcd",)
    ).generate("Hi.")

    kinds = [e["kind"] for e in hook.of("token")]
    assert kinds == ["sampled"] * 5 + ["anchor"] * 5 + ["sampled"] * 5 + ["anchor"]
    assert result.anchors_injected == 2
    assert [a["tokens"] for a in hook.of("anchor")] == [5, 5]
