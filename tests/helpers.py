from __future__ import annotations

from outofcontext.components.sampling.config import SamplingConfig
from outofcontext.core.hooks import Hook
from outofcontext.integrations.toy import chain_transitions, make_toy_runtime


NEUTRAL = SamplingConfig(
    temperature=0.0,
    top_p=1.0,
    top_k=0,
    repeat_penalty=1.0,
    repeat_last_n=0,
    presence_penalty=0.0,
    frequency_penalty=0.0,
    seed=1234,
)


class RecordingHook(Hook):
    def __init__(self):
        self.events = []

    def on_prime(self, **event):
        self.events.append(("prime", event))

    def on_token(self, **event):
        self.events.append(("token", event))

    def on_anchor(self, **event):
        self.events.append(("anchor", event))

    def on_finish(self, **event):
        self.events.append(("finish", event))

    def of(self, kind):
        return [e for k, e in self.events if k == kind]


def word_ids(runtime, words):
    return [runtime.tokenize(w, add_bos=False)[0] for w in words]


def looping_runtime(fillers: int = 40, loop=(" p", " q", " r", " s", " u")):
    """Toy runtime that walks ``fillers`` distinct words, then cycles through ``loop``."""
    words = [f" w{i}" for i in range(fillers)] + list(loop)
    seq = word_ids(make_toy_runtime(words), words)
    return make_toy_runtime(words, transitions=chain_transitions(seq, loop_to=fillers))
