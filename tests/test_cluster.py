import json
import random
import subprocess
import sys
from pathlib import Path

import pytest

from common.messages import Body, Envelope, decode, encode
from node.node import Node

NODES = ["n1", "n2", "n3"]
FULL_MESH = {n: [m for m in NODES if m != n] for n in NODES}


def start_cluster(topology=FULL_MESH, seed=0):
    cluster = {}
    for i, nid in enumerate(NODES):
        node = Node(rng=random.Random(seed + i))
        for msg in (
            Envelope("c0", nid, Body("init", msg_id=1, fields={"node_id": nid, "node_ids": NODES})),
            Envelope("c0", nid, Body("topology", msg_id=2, fields={"topology": topology})),
        ):
            node.handle_message(msg)
        cluster[nid] = node
    return cluster


def deliver(cluster, msgs, drop=lambda msg: False):
    # goes through the wire format, like the harness would
    for msg in msgs:
        if drop(msg):
            continue
        cluster[msg.dest].handle_message(decode(encode(msg)))


def gossip_round(cluster, drop=lambda msg: False):
    out = []
    for nid in NODES:
        out.extend(cluster[nid].gossip.tick())
    deliver(cluster, out, drop=drop)
    return out


def client_read(node):
    (reply,) = node.handle_message(Envelope("c9", node.node_id, Body("read", msg_id=99)))
    return set(reply.body["messages"])


def test_broadcast_reaches_every_node_after_one_round():
    cluster = start_cluster()
    cluster["n1"].handle_message(Envelope("c1", "n1", Body("broadcast", msg_id=5, fields={"message": 42})))

    gossip_round(cluster)

    assert 42 in client_read(cluster["n2"])
    assert 42 in client_read(cluster["n3"])


def test_line_topology_converges_over_hops():
    line = {"n1": ["n2"], "n2": ["n1", "n3"], "n3": ["n2"]}
    cluster = start_cluster(topology=line)
    cluster["n1"].handle_message(Envelope("c1", "n1", Body("broadcast", msg_id=5, fields={"message": 1})))
    cluster["n3"].handle_message(Envelope("c1", "n3", Body("broadcast", msg_id=5, fields={"message": 3})))

    for _ in range(3):
        gossip_round(cluster)

    for nid in NODES:
        assert client_read(cluster[nid]) == {1, 3}


def test_converges_despite_lossy_network():
    rng = random.Random(1234)
    cluster = start_cluster(seed=10)

    for v in range(30):
        target = NODES[v % len(NODES)]
        cluster[target].handle_message(Envelope("c1", target, Body("broadcast", msg_id=v + 1, fields={"message": v})))

    for _ in range(40):
        gossip_round(cluster, drop=lambda msg: rng.random() < 0.5)

    for nid in NODES:
        assert client_read(cluster[nid]) == set(range(30))


def test_gossip_quiets_down_once_converged():
    cluster = start_cluster()
    cluster["n2"].handle_message(Envelope("c1", "n2", Body("broadcast", msg_id=5, fields={"message": 7})))

    for _ in range(3):
        gossip_round(cluster)

    # every node reported {7}; one acked value rounds to a zero-size resend
    assert gossip_round(cluster) == []


@pytest.fixture(scope="module")
def project_root():
    return Path(__file__).resolve().parents[1]


def run_node(project_root: Path, lines, timeout=10.0):
    cmd = [sys.executable, "-u", "-m", "node.node"]
    proc = subprocess.run(
        cmd,
        cwd=str(project_root),
        input="".join(json.dumps(m) + "\n" for m in lines),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        timeout=timeout,
    )
    out = [json.loads(l) for l in proc.stdout.splitlines() if l.strip()]
    return proc.returncode, out, proc.stderr


def test_process_answers_over_stdio(project_root):
    code, out, _ = run_node(
        project_root,
        [
            {"src": "c0", "dest": "n1", "body": {"type": "init", "msg_id": 1, "node_id": "n1", "node_ids": ["n1", "n2"]}},
            {"src": "c1", "dest": "n1", "body": {"type": "echo", "msg_id": 2, "echo": "Please echo 35"}},
            {"src": "c1", "dest": "n1", "body": {"type": "generate", "msg_id": 3}},
            {"src": "c1", "dest": "n1", "body": {"type": "broadcast", "msg_id": 4, "message": 8}},
            {"src": "n2", "dest": "n1", "body": {"type": "gossip", "has_seen": [9]}},
            {"src": "c1", "dest": "n1", "body": {"type": "read", "msg_id": 5}},
        ],
    )

    assert code == 0
    replies = [m for m in out if m["body"]["type"] != "gossip"]
    assert [m["body"]["type"] for m in replies] == ["init_ok", "echo_ok", "generate_ok", "broadcast_ok", "read_ok"]
    assert [m["body"]["in_reply_to"] for m in replies] == [1, 2, 3, 4, 5]
    assert all(m["src"] == "n1" for m in replies)
    assert replies[1]["body"]["echo"] == "Please echo 35"
    assert replies[2]["body"]["id"].startswith("n1-")
    assert sorted(replies[4]["body"]["messages"]) == [8, 9]


def test_process_exits_nonzero_on_bad_line(project_root):
    code, out, _ = run_node(
        project_root,
        [
            {"src": "c0", "dest": "n1", "body": {"type": "init", "msg_id": 1, "node_id": "n1", "node_ids": ["n1"]}},
            {"src": "c1", "dest": "n1", "body": {"type": "cas", "msg_id": 2}},
        ],
    )

    assert code == 1
    assert [m["body"]["type"] for m in out] == ["init_ok"]


def test_process_exits_nonzero_on_generate_before_init(project_root):
    code, out, _ = run_node(project_root, [{"src": "c1", "dest": "n1", "body": {"type": "generate", "msg_id": 1}}])

    assert code == 1
    assert out == []


@pytest.mark.parametrize(
    "body",
    [
        {"type": ["echo"], "msg_id": 2, "echo": "x"},
        {"type": "topology", "msg_id": 2, "topology": {"n1": [["n2"]]}},
    ],
)
def test_process_exits_nonzero_on_malformed_fields(project_root, body):
    code, out, err = run_node(
        project_root,
        [
            {"src": "c0", "dest": "n1", "body": {"type": "init", "msg_id": 1, "node_id": "n1", "node_ids": ["n1"]}},
            {"src": "c1", "dest": "n1", "body": body},
        ],
    )

    assert code == 1
    assert [m["body"]["type"] for m in out] == ["init_ok"]
    assert "event=FATAL" in err
    assert "error=DecodeError" in err
    assert "Traceback" not in err
