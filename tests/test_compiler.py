"""
执行编译器测试: 扇入计数 (required)、扇出目标 (targets)、根节点集合，
以及重复编译得到相同拓扑但计数器互相独立。
"""

from __future__ import annotations

from dag import Graph
from schema import Node, NodeStatus


def _noop(identifier: str) -> None:
    return None


def _diamond() -> Graph:
    graph = Graph("diamond")
    graph.add("A", set(), _noop)
    graph.add("E", set(), _noop)
    graph.add("B", {"A"}, _noop)
    graph.add("C", {"A", "E"}, _noop)
    graph.add("D", {"B", "C"}, _noop)
    return graph


class TestCompile:

    def test_fan_in_and_fan_out(self):
        plan = _diamond().compile()

        assert plan.name == "diamond"
        assert plan.topology() == {
            "A": (0, frozenset({"B", "C"})),
            "E": (0, frozenset({"C"})),
            "B": (1, frozenset({"D"})),
            "C": (2, frozenset({"D"})),
            "D": (2, frozenset()),
        }

    def test_roots_and_initial_state(self):
        plan = _diamond().compile()

        assert plan.roots == frozenset({"A", "E"})
        for node_id, node in plan.nodes.items():
            assert node.remaining == node.required
            expected = NodeStatus.READY if node_id in plan.roots else NodeStatus.PENDING
            assert node.status == expected
            assert node.error is None

    def test_work_is_shared_with_graph(self):
        graph = _diamond()
        plan = graph.compile()
        for node_id, node in graph.nodes.items():
            assert plan.nodes[node_id].work is node.work

    def test_compile_is_idempotent(self):
        graph = _diamond()
        first = graph.compile()
        second = graph.compile()

        assert first.topology() == second.topology()
        assert first.roots == second.roots

        first.nodes["D"].remaining = 0
        assert second.nodes["D"].remaining == 2, "两次编译的运行期计数器应互相独立"
        assert first.nodes["D"] is not second.nodes["D"]

    def test_empty_graph(self):
        plan = Graph("empty").compile()
        assert plan.nodes == {}
        assert plan.roots == frozenset()

    def test_cyclic_graph_compiles_without_roots(self):
        graph = Graph.from_nodes(
            "cyclic",
            [
                Node(identifier="A", work=_noop, dependencies={"C"}),
                Node(identifier="B", work=_noop, dependencies={"A"}),
                Node(identifier="C", work=_noop, dependencies={"B"}),
            ],
            validate=False,
        )
        plan = graph.compile()

        assert plan.roots == frozenset()
        assert {nid: req for nid, (req, _) in plan.topology().items()} == {"A": 1, "B": 1, "C": 1}

    def test_unknown_dependency_is_not_materialised(self, caplog):
        graph = Graph.from_nodes(
            "broken",
            [Node(identifier="a", work=_noop, dependencies={"ghost"})],
            validate=False,
        )
        plan = graph.compile()

        assert set(plan.nodes) == {"a"}
        assert plan.nodes["a"].required == 1
        assert "ghost" in caplog.text
