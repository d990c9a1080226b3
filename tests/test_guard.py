from outofcontext.core.guard import RecentTokenWindow, RepetitionGuard


def _distinct(n, prefix="x"):
    return [f"{prefix}{i}" for i in range(n)]


def test_short_windows_never_flag():
    guard = RepetitionGuard()
    assert not guard.check(["same"] * 39)
    assert not guard.check(["a", "b"] * 19)
    assert guard.last_reason is None


def test_repeated_seven_gram_flags():
    seq = list("abcdefg")
    guard = RepetitionGuard()
    assert guard.check(_distinct(26) + seq + seq)
    assert guard.last_reason == "repeated 7-gram"


def test_repeated_five_gram_flags():
    seq = list("abcde")
    guard = RepetitionGuard()
    assert guard.check(_distinct(30) + seq + seq)
    assert guard.last_reason == "repeated 5-gram"


def test_repeated_four_gram_flags():
    seq = list("abcd")
    guard = RepetitionGuard()
    assert guard.check(_distinct(32) + seq + seq)
    assert guard.last_reason == "repeated 4-gram"


def test_three_gram_repeat_is_tolerated():
    seq = list("abc")
    assert not RepetitionGuard().check(_distinct(40) + seq + seq)


def test_frequent_token_flags():
    items = ["the" if i % 3 == 0 else f"w{i}" for i in range(160)]
    guard = RepetitionGuard()
    assert guard.check(items)
    assert "'the'" in guard.last_reason


def test_frequency_below_limit_passes():
    items = ["the" if i % 3 == 0 else f"w{i}" for i in range(141)]
    assert items.count("the") == 47
    assert not RepetitionGuard().check(items)


def test_low_diversity_flags():
    values = _distinct(30, "v")
    items = [values[i % 30] for i in range(120)]
    guard = RepetitionGuard()
    assert guard.check(items)
    assert guard.last_reason.startswith("only 30 unique")


def test_diversity_at_floor_passes():
    values = _distinct(39, "v")
    items = [values[i % 39] for i in range(120)]
    assert not RepetitionGuard().check(items)


def test_window_evicts_oldest_first():
    window = RecentTokenWindow(capacity=3)
    window.extend(["a", "b", "c", "d", "e"])
    assert len(window) == 3
    assert list(window) == ["c", "d", "e"]
    assert window.tail(2) == ["d", "e"]
    assert window.tail(10) == ["c", "d", "e"]


def test_guard_accepts_window_object():
    window = RecentTokenWindow()
    window.extend(_distinct(33))
    window.extend(list("abcdefg"))
    assert not RepetitionGuard().check(window)
    window.extend(list("abcdefg"))
    assert RepetitionGuard().check(window)
