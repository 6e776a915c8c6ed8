import os

# Message types
INIT = "init"
INIT_OK = "init_ok"
ECHO = "echo"
ECHO_OK = "echo_ok"
GENERATE = "generate"
GENERATE_OK = "generate_ok"
TOPOLOGY = "topology"
TOPOLOGY_OK = "topology_ok"
BROADCAST = "broadcast"
BROADCAST_OK = "broadcast_ok"
READ = "read"
READ_OK = "read_ok"

# Anti-entropy push, one-way (no *_ok)
GOSSIP = "gossip"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


# Gossip:

# seconds between gossip ticks
GOSSIP_INTERVAL = _env_float("GOSSIP_INTERVAL", 0.3)
# share of already-acked values re-sent each tick
GOSSIP_REDUNDANCY = _env_float("GOSSIP_REDUNDANCY", 0.2)

# Logging
LOG_DEBUG = os.getenv("LOG_DEBUG") == "1"

SYSLOG_ENABLED = os.getenv("SYSLOG_ENABLED") == "1"
SYSLOG_HOST = os.getenv("SYSLOG_HOST", "127.0.0.1")
SYSLOG_PORT = int(os.getenv("SYSLOG_PORT", "5514"))
SYSLOG_FACILITY = int(os.getenv("SYSLOG_FACILITY", "1"))
