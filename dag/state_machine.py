"""
Lifecycle rules for compiled nodes.
编译节点的生命周期规则。

A compiled node only ever moves forward: it waits for its dependencies,
is queued, runs once, and ends either done or failed. NodeStateMachine is
the only code that writes ExecutionNode.status, and it refuses any move the
table below does not list.
编译节点只会向前推进：等待依赖、入队、运行一次、以 done 或 failed 结束。
ExecutionNode.status 只由 NodeStateMachine 修改，表中未列出的变化一律拒绝。

    pending -> ready -> running -> done | failed
"""

from __future__ import annotations

import logging
from typing import Callable

from dag.errors import InvalidTransitionError
from schema import ExecutionNode, NodeStatus

logger = logging.getLogger(__name__)


# status -> statuses it may move to
# 当前状态 -> 允许进入的下一状态
VALID_TRANSITIONS: dict[NodeStatus, set[NodeStatus]] = {
    NodeStatus.PENDING: {NodeStatus.READY},
    NodeStatus.READY:   {NodeStatus.RUNNING},
    NodeStatus.RUNNING: {NodeStatus.DONE, NodeStatus.FAILED},
    NodeStatus.DONE:    set(),
    NodeStatus.FAILED:  set(),
}


class NodeStateMachine:
    """
    Moves ExecutionNodes between statuses for the executor.
    供执行器使用，负责推进 ExecutionNode 的状态。

    A rejected move is a bug in the caller, e.g. releasing a target twice
    or starting a node whose dependencies are not done yet.
    被拒绝的转移意味着调用方有 bug，例如重复释放下游或提前启动节点。
    """

    def __init__(self, on_transition: Callable[[str, NodeStatus, NodeStatus], None] | None = None):
        """
        Args:
            on_transition: called as (node_id, old, new) after each accepted move.
                           每次转移成功后以 (node_id, 旧状态, 新状态) 调用。
        """
        self._on_transition = on_transition

    @staticmethod
    def can_transition(node: ExecutionNode, new_status: NodeStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(node.status, set())

    def transition(self, node: ExecutionNode, new_status: NodeStatus) -> None:
        """
        Set node.status to `new_status`, or raise InvalidTransitionError and
        leave the node untouched.
        将 node.status 设为 `new_status`；不合法时抛出 InvalidTransitionError，节点保持不变。
        """
        if not self.can_transition(node, new_status):
            raise InvalidTransitionError(
                f"Node '{node.identifier}': cannot transition from {node.status.value} to {new_status.value}. "
                f"Valid targets: {sorted(s.value for s in VALID_TRANSITIONS.get(node.status, set()))}"
            )

        old_status = node.status
        node.status = new_status

        logger.debug("[SM] %s: %s -> %s", node.identifier, old_status.value, new_status.value)

        if self._on_transition:
            self._on_transition(node.identifier, old_status, new_status)
