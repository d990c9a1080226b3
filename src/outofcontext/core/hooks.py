from __future__ import annotations
from typing import Any
import json, logging, pathlib, time

logger = logging.getLogger(__name__)


class Hook:
    """Engine observer; every callback receives keyword arguments only."""
    def on_prime(self, **event: Any): ...
    def on_token(self, **event: Any): ...
    def on_anchor(self, **event: Any): ...
    def on_finish(self, **event: Any): ...


class JSONLTraceHook(Hook):
    """Write per-token events as JSONL for offline analysis."""
    def __init__(self, path: str):
        self.path = pathlib.Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.f = self.path.open("w", encoding="utf-8")
        self._count = 0
        self._t0 = time.time()

    def _write(self, kind: str, event: dict[str, Any]):
        self._count += 1
        event = dict(event)
        event["event"] = kind
        event.setdefault("ts_rel", time.time() - self._t0)
        self.f.write(json.dumps(event, ensure_ascii=False) + "\n")
        self.f.flush()

    def on_prime(self, **event: Any):
        self._write("prime", event)

    def on_token(self, **event: Any):
        self._write("token", event)

    def on_anchor(self, **event: Any):
        self._write("anchor", event)

    def on_finish(self, **event: Any):
        self._write("finish", event)
        self.close()

    def close(self):
        if not self.f.closed:
            self.f.close()
            logger.debug("trace closed after %d events: %s", self._count, self.path)


class LoopStrikeHook(Hook):
    """Keeps the last ``tail`` token texts so a loop can be shown after the run."""
    def __init__(self, tail: int = 24):
        self.tail = int(tail)
        self._recent: list[str] = []
        self.reason: str | None = None

    def on_token(self, **event: Any):
        self._recent.append(event.get("text", ""))
        if len(self._recent) > self.tail:
            del self._recent[0]

    def on_finish(self, **event: Any):
        if event.get("outcome") == "loop_detected":
            self.reason = event.get("stop_reason")
            logger.warning("[LOOP] %s; tail: %r", self.reason, "".join(self._recent))
