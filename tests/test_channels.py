import threading

import pytest

from pst.channels import FanIn
from pst.errors import SourceScanError


def _send_in_thread(channel, item, results):
    t = threading.Thread(target=lambda: results.append(channel.send(item)), daemon=True)
    t.start()
    return t


def test_full_channel_blocks_until_drained():
    hub = FanIn()
    ch = hub.channel(capacity=1)
    assert ch.send(["a"])
    results = []
    t = _send_in_thread(ch, ["b"], results)
    t.join(timeout=0.2)
    assert t.is_alive()
    assert hub.receive(ch) == ["a"]
    t.join(timeout=5)
    assert results == [True]
    assert hub.receive(ch) == ["b"]


def test_cancel_releases_blocked_sender():
    hub = FanIn()
    ch = hub.channel(capacity=1)
    ch.send(["a"])
    results = []
    t = _send_in_thread(ch, ["b"], results)
    t.join(timeout=0.2)
    hub.cancel()
    hub.cancel()
    t.join(timeout=5)
    assert not t.is_alive()
    assert results == [False]
    assert hub.cancelled


def test_closed_channel_drains_then_reports_end():
    hub = FanIn()
    ch = hub.channel()
    ch.send(["x"])
    ch.close()
    assert ch.closed
    assert hub.receive(ch) == ["x"]
    assert hub.receive(ch) is None


def test_error_close_wakes_waiting_consumer():
    hub = FanIn()
    ch = hub.channel()
    err = SourceScanError("f.txt", "boom")
    timer = threading.Timer(0.05, ch.close, args=(err,))
    timer.start()
    with pytest.raises(SourceScanError) as excinfo:
        # nothing is ever sent on this channel; only the close ends the wait
        hub.receive(ch)
    assert excinfo.value is err
    assert ch.error is err
    timer.join()


def test_error_is_raised_after_queued_rows():
    hub = FanIn()
    ch = hub.channel()
    ch.send(["1"])
    ch.send(["2"])
    ch.close(SourceScanError("f.txt", "boom"))
    assert hub.receive(ch) == ["1"]
    assert hub.receive(ch) == ["2"]
    with pytest.raises(SourceScanError):
        hub.receive(ch)
    # the error stays put for later receives
    with pytest.raises(SourceScanError):
        hub.receive(ch)


def test_first_close_wins():
    hub = FanIn()
    ch = hub.channel()
    ch.close()
    ch.close(SourceScanError("f.txt", "late"))
    assert ch.error is None
    assert hub.receive(ch) is None


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        FanIn().channel(capacity=0)
