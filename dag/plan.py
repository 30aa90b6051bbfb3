"""
ExecutionPlan - Compiled, single-use form of a Graph, and the RunResult it produces.
ExecutionPlan —— Graph 的编译形态（单次使用），以及运行结果 RunResult。
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from dag.errors import NodeExecutionFailure, PlanAlreadyRun
from schema import ExecutionNode


class RunResult(BaseModel):
    """
    Outcome of one ExecutionPlan run.
    一次执行计划运行的结果汇总。

    Failures are aggregated here rather than raised; callers decide whether a
    non-empty `failures` or `unreached` is fatal.
    失败被汇总而非抛出，由调用方决定是否视为致命错误。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    all_succeeded: bool = Field(description="Every node reached DONE")                           # 是否全部成功
    completed: set[str] = Field(default_factory=set, description="Nodes that reached DONE")      # 已完成节点
    failures: dict[str, NodeExecutionFailure] = Field(
        default_factory=dict,
        description="node_id -> wrapped error of its work function",                              # 失败节点及其错误
    )
    unreached: set[str] = Field(
        default_factory=set,
        description="Nodes never dispatched: dependents of failures or halted by fail-fast",      # 未执行节点
    )

    def raise_for_failures(self) -> None:
        """Raise the first failure (by node ID) if any node failed.
        若存在失败节点，按 ID 顺序抛出第一个失败。"""
        if self.failures:
            raise self.failures[min(self.failures)]

    def summary(self) -> str:
        """One-line summary, e.g. Run[ok: 5 done, 0 failed, 0 unreached]"""
        status = "ok" if self.all_succeeded else "failed"
        return (
            f"Run[{status}: {len(self.completed)} done, "
            f"{len(self.failures)} failed, {len(self.unreached)} unreached]"
        )


class ExecutionPlan:
    """
    Compiled ExecutionNodes plus the precomputed root set.
    编译后的 ExecutionNode 集合及预先计算的根节点集合。

    Topology (`required`, `targets`) is fixed once compiled. The `remaining`
    counters and statuses are mutated in place by a run, so a plan runs once;
    compile the graph again for another run.
    拓扑在编译后固定；remaining 计数器与状态在运行中原地修改，因此计划只能运行一次。
    """

    def __init__(self, name: str, nodes: dict[str, ExecutionNode]):
        self.name = name
        self.nodes = nodes
        self.roots = frozenset(nid for nid, n in nodes.items() if n.is_root)
        self._consumed = False

    def topology(self) -> dict[str, tuple[int, frozenset[str]]]:
        """node_id -> (required, targets); used to compare compiled plans.
        返回 node_id -> (required, targets)，用于比较两次编译结果。"""
        return {nid: (n.required, frozenset(n.targets)) for nid, n in self.nodes.items()}

    def mark_consumed(self) -> None:
        """Claim the plan for a run. Raises PlanAlreadyRun on second use."""
        if self._consumed:
            raise PlanAlreadyRun(self.name)
        self._consumed = True

    async def execute(
        self,
        max_workers: int | None = None,
        on_event: Callable[[str, Any], None] | None = None,
    ) -> RunResult:
        """
        Run the plan inside the current event loop.
        在当前事件循环中运行计划。
        """
        from dag.executor import DAGExecutor

        return await DAGExecutor(max_workers=max_workers, on_event=on_event).execute(self)

    def run(
        self,
        max_workers: int | None = None,
        on_event: Callable[[str, Any], None] | None = None,
    ) -> RunResult:
        """
        Run the plan to completion from synchronous code (starts its own
        event loop; use `await plan.execute()` from async code).
        从同步代码运行计划（内部启动事件循环；异步代码中请使用 `await plan.execute()`）。

        Raises:
            StalledExecution: nodes were left waiting although nothing failed.
            PlanAlreadyRun:   the plan was already run.
        """
        return asyncio.run(self.execute(max_workers=max_workers, on_event=on_event))
