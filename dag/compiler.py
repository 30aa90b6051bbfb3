"""
Execution Compiler - Turns a Graph into a fan-in/fan-out ExecutionPlan.
执行编译器 —— 将 Graph 编译为扇入/扇出执行计划。

For every node N with dependency D:
  - N.required counts D          (fan-in: dependencies to wait for)
  - D.targets contains N         (fan-out: dependents to notify)

对于每个节点 N 及其依赖 D：
  - N.required 计入 D            （扇入：需要等待的依赖数）
  - D.targets 包含 N             （扇出：完成后需通知的下游）

The compiler transforms; it does not validate. A cyclic graph compiles into
a plan whose cycle members never become ready, which the executor reports as
StalledExecution. Graph.sort() is the place to get CycleDetected.
编译器只做转换，不做校验：带环图会编译成环上节点永远无法就绪的计划，
由执行器报告 StalledExecution。需要明确的 CycleDetected 请先调用 Graph.sort()。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dag.plan import ExecutionPlan
from schema import ExecutionNode, NodeStatus

if TYPE_CHECKING:
    from dag.graph import Graph

logger = logging.getLogger(__name__)


def compile_graph(graph: Graph) -> ExecutionPlan:
    """
    Build a fresh ExecutionPlan from `graph`. Each call returns new
    ExecutionNodes, so plans never share run-scoped counters.
    每次调用都会创建全新的 ExecutionNode，不同计划之间不共享运行期计数器。
    """
    nodes: dict[str, ExecutionNode] = {}

    def get_or_create(node_id: str) -> ExecutionNode:
        exn = nodes.get(node_id)
        if exn is None:
            exn = ExecutionNode(identifier=node_id)
            nodes[node_id] = exn
        return exn

    for node_id, node in graph.nodes.items():
        exn = get_or_create(node_id)
        exn.work = node.work
        exn.required = len(node.dependencies)
        exn.remaining = exn.required
        exn.status = NodeStatus.READY if exn.required == 0 else NodeStatus.PENDING

        for dep_id in node.dependencies:
            if dep_id not in graph:
                # 只有绕过 add() 构建的图才会出现；该节点将永远等待
                logger.warning("[Compiler] Node %s depends on unknown node %s", node_id, dep_id)
                continue
            get_or_create(dep_id).add_targets(node_id)

    plan = ExecutionPlan(name=graph.name, nodes=nodes)
    logger.debug("[Compiler] %s compiled: %d nodes, roots=%s", graph.name, len(nodes), sorted(plan.roots))
    return plan
