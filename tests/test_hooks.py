import json

from outofcontext.core.data import GenerationConfig, GenerationOutcome
from outofcontext.core.engine import GenerationEngine
from outofcontext.core.hooks import JSONLTraceHook, LoopStrikeHook

from helpers import NEUTRAL, looping_runtime


def test_trace_and_loop_report(tmp_path, sink):
    trace = tmp_path / "trace" / "run.jsonl"
    strikes = LoopStrikeHook(tail=5)
    engine = GenerationEngine(
        looping_runtime(),
        sink,
        sampling=NEUTRAL,
        config=GenerationConfig(anchor_interval=0, quiet=True, user_prompt="Go."),
        hooks=[JSONLTraceHook(str(trace)), strikes],
    )
    result = engine.generate("Hi.")
    assert result.outcome is GenerationOutcome.LOOP_DETECTED

    events = [json.loads(line) for line in trace.read_text(encoding="utf-8").splitlines()]
    kinds = [e["event"] for e in events]
    assert kinds[0] == "prime"
    assert kinds[-1] == "finish"
    assert kinds.count("token") == result.generated_tokens
    assert all("ts_rel" in e for e in events)

    assert strikes.reason == "repeated 5-gram"
    assert strikes._recent == sink.pieces[-5:]


def test_loop_hook_stays_quiet_on_other_outcomes():
    hook = LoopStrikeHook()
    hook.on_token(text=" a")
    hook.on_finish(outcome="capped", stop_reason="max_tokens reached")
    assert hook.reason is None


def test_trace_close_is_idempotent(tmp_path):
    hook = JSONLTraceHook(str(tmp_path / "run.jsonl"))
    hook.on_prime(seed=1)
    hook.close()
    hook.close()
    assert hook.f.closed
    assert json.loads((tmp_path / "run.jsonl").read_text(encoding="utf-8"))["event"] == "prime"
