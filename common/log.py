import os
import sys
import time

from common.config import LOG_DEBUG

NO_COLOR = os.getenv("NO_COLOR") == "1"

COL = {
    "RESET": "\033[0m",
    "RED": "\033[31m",
    "GREEN": "\033[32m",
    "YELLOW": "\033[33m",
    "CYAN": "\033[36m",
    "GREY": "\033[90m",
}

# stdout carries the protocol, so every log line goes to stderr


def _color(s: str, c: str) -> str:
    if NO_COLOR or not sys.stderr.isatty():
        return s
    return f"{COL[c]}{s}{COL['RESET']}"


def log(role: str, node_id: str, event: str, level: str = "INFO", **fields):
    if level == "DEBUG" and not LOG_DEBUG:
        return

    ts = f"{time.time():.3f}"
    base = f"ts={ts} role={role} id={node_id or '-'} lvl={level} event={event}"

    if fields:
        parts = []
        for k in sorted(fields.keys()):
            v = fields[k]
            if isinstance(v, (set, frozenset)):
                v = ",".join(str(x) for x in sorted(v))
            elif isinstance(v, (list, tuple)):
                v = ",".join(str(x) for x in v)
            parts.append(f"{k}={v}")
        base += " " + " ".join(parts)

    if level == "ERROR":
        line = _color(base, "RED")
    elif level == "WARN":
        line = _color(base, "YELLOW")
    elif level == "OK":
        line = _color(base, "GREEN")
    elif level == "DEBUG":
        line = _color(base, "GREY")
    else:
        line = _color(base, "CYAN")

    print(line, file=sys.stderr, flush=True)
