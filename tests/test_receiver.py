import pytest
import serial

from fakes import ScriptedLink
from xmodem_serial.block import frame
from xmodem_serial.constants import ACK, EOT, NAK, SUB
from xmodem_serial.errors import ConnectTimeout
from xmodem_serial import receiver as receiver_mod
from xmodem_serial.receiver import Event, State, XModemReceiver, transition

ACK_B = bytes([ACK])
NAK_B = bytes([NAK])
EOT_B = bytes([EOT])


def run(link, path, clock):
    return XModemReceiver(link, path, clock=clock).run()


def test_transition_table():
    assert transition(State.CONNECT, Event.SENT) is State.RECEIVEDATA
    assert transition(State.RECEIVEDATA, Event.SILENCE) is State.CONNECT
    assert transition(State.RECEIVEDATA, Event.EOT) is State.REPLY
    assert transition(State.VERIFY, Event.CHECKED) is State.REPLY
    assert transition(State.REPLY, Event.FINISHED) is State.DONE
    with pytest.raises(ValueError):
        transition(State.VERIFY, Event.BLOCK)


def test_receives_three_blocks(clock, tmp_path):
    data = bytes(i % 253 for i in range(300))
    blocks = [frame(1, data[:128]), frame(2, data[128:256]), frame(3, data[256:])]
    link = ScriptedLink(blocks + [EOT_B])
    out = tmp_path / "out.bin"

    stats = run(link, out, clock)

    assert out.read_bytes() == data
    assert link.cleared == 1
    assert link.writes == [NAK_B, ACK_B, ACK_B, ACK_B, ACK_B]
    assert stats.blocks == 3
    assert stats.bytes == 300


def test_eot_only_gives_empty_file(clock, tmp_path):
    link = ScriptedLink([EOT_B])
    out = tmp_path / "out.bin"
    run(link, out, clock)
    assert out.read_bytes() == b""
    assert link.writes == [NAK_B, ACK_B]


def test_reassembles_partial_reads(clock, tmp_path):
    block = frame(1, b"partial reads")
    link = ScriptedLink([block[:40], block[40:90], b"", block[90:], EOT_B])
    out = tmp_path / "out.bin"

    run(link, out, clock)

    assert out.read_bytes() == b"partial reads"
    assert link.writes == [NAK_B, ACK_B, ACK_B]
    assert 0.05 in clock.waits


def test_bytes_past_the_block_are_dropped(clock, tmp_path):
    block = frame(1, b"abc")
    link = ScriptedLink([block[:100], block[100:] + b"\x00\x00\x00", EOT_B])
    out = tmp_path / "out.bin"
    run(link, out, clock)
    assert out.read_bytes() == b"abc"


def test_corrupted_block_is_naked(clock, tmp_path):
    payload = bytes(range(128))
    good = frame(1, payload)
    bad = bytearray(good)
    bad[50] ^= 0x01
    link = ScriptedLink([bytes(bad), good, EOT_B])
    out = tmp_path / "out.bin"

    stats = run(link, out, clock)

    assert link.writes == [NAK_B, NAK_B, ACK_B, ACK_B]
    assert out.read_bytes() == payload
    assert stats.naks == 1


def test_bad_complement_is_naked(clock, tmp_path):
    bad = bytearray(frame(1, b"abc"))
    bad[2] = 0x00
    link = ScriptedLink([bytes(bad), EOT_B])
    run(link, tmp_path / "out.bin", clock)
    assert link.writes == [NAK_B, NAK_B, ACK_B]


def test_duplicate_block_is_acked_but_written_once(clock, tmp_path):
    first = frame(1, b"a" * 128)
    link = ScriptedLink([first, first, frame(2, b"b"), EOT_B])
    out = tmp_path / "out.bin"

    stats = run(link, out, clock)

    assert link.writes == [NAK_B, ACK_B, ACK_B, ACK_B, ACK_B]
    assert out.read_bytes() == b"a" * 128 + b"b"
    assert stats.duplicates == 1


def test_out_of_sequence_block_is_naked(clock, tmp_path):
    link = ScriptedLink([frame(2, b"skipped ahead"), frame(1, b"first"), EOT_B])
    out = tmp_path / "out.bin"
    run(link, out, clock)
    assert link.writes == [NAK_B, NAK_B, ACK_B, ACK_B]
    assert out.read_bytes() == b"first"


def test_silent_transmitter_gets_renaked_then_times_out(clock, tmp_path, track_open):
    opened = track_open(receiver_mod)
    link = ScriptedLink()

    with pytest.raises(ConnectTimeout) as exc:
        run(link, tmp_path / "out.bin", clock)

    assert "transmitter did not connect" in str(exc.value)
    assert link.writes == [NAK_B] * 11
    assert link.cleared == 1
    assert clock.waits.count(0.3) == 11 * 34
    assert opened and opened[0].closed


def test_late_transmitter_resets_retries(clock, tmp_path):
    naks = {"n": 0}

    def reply(data):
        if data == NAK_B:
            naks["n"] += 1
            if naks["n"] == 5:
                return [frame(1, b"late")]
        if data == ACK_B and naks["n"] == 5:
            naks["n"] += 1
            return [EOT_B]
        return None

    link = ScriptedLink(responder=reply)
    out = tmp_path / "out.bin"
    stats = run(link, out, clock)
    assert out.read_bytes() == b"late"
    assert stats.reconnects == 4


def test_stalled_block_is_dropped_and_renaked(clock, tmp_path):
    block = frame(1, b"retry me")
    replies = iter([[block[:40]], [block], [EOT_B], None])
    link = ScriptedLink(responder=lambda data: next(replies))
    out = tmp_path / "out.bin"

    stats = run(link, out, clock)

    assert link.writes == [NAK_B, NAK_B, ACK_B, ACK_B]
    assert out.read_bytes() == b"retry me"
    assert stats.reconnects == 1


def test_late_tail_of_stalled_block_is_drained(clock, tmp_path):
    block = frame(1, b"retry me")
    replies = iter([[block[:40]], [block], [EOT_B], None])

    class LateTailLink(ScriptedLink):
        # the rest of the block lands right after the receiver gives up on it;
        # a read with no wait since the previous one sees it
        tail = block[40:]
        waits_at_last_read = None

        def read_available(self):
            waits = len(clock.waits)
            if self.tail and waits == self.waits_at_last_read:
                data, self.tail = self.tail, b""
                return data
            self.waits_at_last_read = waits
            return super().read_available()

        def write(self, data):
            # still undrained when the NAK goes out: it now sits ahead of the resend
            if data == NAK_B and self.tail and len(self.writes) == 1:
                self.inbound.appendleft(self.tail)
                self.tail = b""
            super().write(data)

    link = LateTailLink(responder=lambda data: next(replies))
    out = tmp_path / "out.bin"

    stats = run(link, out, clock)

    assert link.writes == [NAK_B, NAK_B, ACK_B, ACK_B]
    assert out.read_bytes() == b"retry me"
    assert stats.naks == 0
    assert stats.reconnects == 1


def test_trailing_sub_bytes_of_the_file_are_lost(clock, tmp_path):
    link = ScriptedLink([frame(1, b"text" + bytes([SUB, SUB])), EOT_B])
    out = tmp_path / "out.bin"
    run(link, out, clock)
    assert out.read_bytes() == b"text"


def test_sequence_wraps_after_255(clock, tmp_path):
    payloads = [bytes([i % 256]) * 128 for i in range(257)]
    blocks = [frame((i + 1) & 0xFF, p) for i, p in enumerate(payloads)]
    link = ScriptedLink(blocks + [EOT_B])
    out = tmp_path / "out.bin"
    stats = run(link, out, clock)
    assert stats.blocks == 257
    assert NAK_B not in link.writes[1:]
    assert out.read_bytes() == b"".join(payloads)


def test_link_failure_propagates_and_closes_file(clock, tmp_path, track_open):
    opened = track_open(receiver_mod)

    class BrokenLink(ScriptedLink):
        def clear_buffers(self):
            raise serial.SerialException("port went away")

    out = tmp_path / "out.bin"
    with pytest.raises(serial.SerialException):
        run(BrokenLink(), out, clock)
    assert out.exists()
    assert opened and opened[0].closed
