import queue
import threading
import time

from common.config import GOSSIP_INTERVAL
from common.log import log
from common.messages import decode, encode
from common.syslog import LOG_INFO

# loop states
IDLE = "IDLE"
RUNNING = "RUNNING"
TERMINATED = "TERMINATED"

# event kinds
LINE = "line"
TICK = "tick"
EOF = "eof"
FAILED = "failed"


class EventLoop:
    """
    Merges two producers into one queue and drains it on the calling thread:

      - reader thread: one LINE event per input line, then EOF
      - timer thread:  one TICK event per interval, late ticks still fire

    Only the draining thread touches node state, so the node needs no locks.
    Per-source order is kept; lines and ticks interleave however they arrive.
    """

    def __init__(self, node, stream_in, stream_out, interval=GOSSIP_INTERVAL):
        if interval <= 0:
            raise ValueError(f"gossip interval must be positive, got {interval}")

        self.node = node
        self.stream_in = stream_in
        self.stream_out = stream_out
        self.interval = interval

        self.state = IDLE
        self.events = queue.Queue()
        self._stop = threading.Event()

        self.handled = 0
        self.ticks = 0
        self.written = 0

    def run(self):
        if self.state != IDLE:
            raise RuntimeError(f"event loop already {self.state.lower()}")
        self.state = RUNNING

        threading.Thread(target=self._read_lines, name="stdin-reader", daemon=True).start()
        threading.Thread(target=self._run_timer, name="gossip-timer", daemon=True).start()

        try:
            while True:
                kind, data = self.events.get()

                if kind == LINE:
                    msg = decode(data)
                    self.handled += 1
                    self.send_all(self.node.handle_message(msg))

                elif kind == TICK:
                    self.ticks += 1
                    self.send_all(self.node.gossip.tick())

                elif kind == EOF:
                    return

                elif kind == FAILED:
                    raise data
        finally:
            self.state = TERMINATED
            self._stop.set()
            log(
                "node",
                self.node.node_id,
                "LOOP_STOP",
                handled=self.handled,
                ticks=self.ticks,
                written=self.written,
                gossip_sent=self.node.gossip.sent,
            )
            LOG_INFO(
                "LOOP_STOP",
                node_id=self.node.node_id,
                event="LOOP_STOP",
                handled=self.handled,
                ticks=self.ticks,
                gossip_sent=self.node.gossip.sent,
            )

    def send(self, msg):
        self.stream_out.write(encode(msg) + "\n")
        self.stream_out.flush()
        self.written += 1

    def send_all(self, msgs):
        for msg in msgs:
            self.send(msg)

    def _read_lines(self):
        try:
            while not self._stop.is_set():
                line = self.stream_in.readline()
                if not line:
                    break
                line = line.strip()
                if line:
                    self.events.put((LINE, line))
        except (OSError, ValueError) as e:
            # UnicodeDecodeError is a ValueError; re-raised on the loop thread
            self.events.put((FAILED, e))
            return
        self.events.put((EOF, None))

    def _run_timer(self):
        n = 0
        next_at = time.monotonic() + self.interval
        while not self._stop.wait(max(0.0, next_at - time.monotonic())):
            n += 1
            self.events.put((TICK, n))
            next_at += self.interval
