"""
节点状态机测试: 合法转移、非法转移抛出 InvalidTransitionError、转移回调。
"""

from __future__ import annotations

import pytest

from dag.errors import InvalidTransitionError
from dag.state_machine import NodeStateMachine, VALID_TRANSITIONS
from schema import ExecutionNode, NodeStatus


class TestNodeStateMachine:

    def test_happy_path(self):
        node = ExecutionNode(identifier="x", required=1, remaining=1)
        sm = NodeStateMachine()

        for status in (NodeStatus.READY, NodeStatus.RUNNING, NodeStatus.DONE):
            sm.transition(node, status)
            assert node.status == status
        assert node.is_terminal

    def test_failure_path(self):
        node = ExecutionNode(identifier="x", status=NodeStatus.READY)
        sm = NodeStateMachine()
        sm.transition(node, NodeStatus.RUNNING)
        sm.transition(node, NodeStatus.FAILED)
        assert node.status == NodeStatus.FAILED

    def test_pending_cannot_run(self):
        node = ExecutionNode(identifier="x", required=2, remaining=2)
        with pytest.raises(InvalidTransitionError) as excinfo:
            NodeStateMachine().transition(node, NodeStatus.RUNNING)
        assert "pending" in str(excinfo.value)
        assert node.status == NodeStatus.PENDING

    def test_ready_cannot_be_dispatched_twice(self):
        node = ExecutionNode(identifier="x", status=NodeStatus.READY)
        sm = NodeStateMachine()
        sm.transition(node, NodeStatus.RUNNING)
        with pytest.raises(InvalidTransitionError):
            sm.transition(node, NodeStatus.RUNNING)

    @pytest.mark.parametrize("terminal", [NodeStatus.DONE, NodeStatus.FAILED])
    def test_terminal_states_are_final(self, terminal):
        assert VALID_TRANSITIONS[terminal] == set()
        node = ExecutionNode(identifier="x", status=terminal)
        sm = NodeStateMachine()
        for status in NodeStatus:
            assert not sm.can_transition(node, status)

    def test_callback_receives_transition(self):
        seen: list[tuple[str, NodeStatus, NodeStatus]] = []
        sm = NodeStateMachine(on_transition=lambda nid, old, new: seen.append((nid, old, new)))
        node = ExecutionNode(identifier="x", status=NodeStatus.READY)

        sm.transition(node, NodeStatus.RUNNING)

        assert seen == [("x", NodeStatus.READY, NodeStatus.RUNNING)]

    def test_rejected_transition_fires_no_callback(self):
        seen: list[str] = []
        sm = NodeStateMachine(on_transition=lambda nid, old, new: seen.append(nid))
        node = ExecutionNode(identifier="x", status=NodeStatus.DONE)

        with pytest.raises(InvalidTransitionError) as excinfo:
            sm.transition(node, NodeStatus.READY)

        assert "Valid targets: []" in str(excinfo.value)
        assert node.status == NodeStatus.DONE
        assert seen == []
