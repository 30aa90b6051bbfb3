"""
DAG Executor - Drives a compiled ExecutionPlan to completion.
DAG 执行引擎 —— 将编译后的 ExecutionPlan 驱动至完成。

Execution model:
  1. Put every root (no dependencies) on the ready queue
  2. A pool of worker coroutines takes ready nodes and runs their work
     concurrently (async work is awaited, sync work runs in a thread)
  3. When a node is DONE, each of its targets has its `remaining` counter
     decremented under the run lock; only the decrement that reaches zero
     moves the target to READY and enqueues it
  4. The run ends when the queue is drained and no worker is busy

执行模型：
  1. 将所有根节点（无依赖）放入就绪队列
  2. 一组工作协程从队列取出就绪节点并发执行其 work
     （异步 work 直接 await，同步 work 在线程中运行）
  3. 节点 DONE 后，在运行锁保护下递减每个下游节点的 remaining 计数；
     只有把计数减到 0 的那一次才会把下游转为 READY 并入队（扇入屏障）
  4. 队列清空且没有工作协程忙碌时运行结束

Failure policy (fail-fast):
  - A FAILED node does not decrement its targets; its dependents stay
    PENDING and are reported as unreached.
  - Work already RUNNING is awaited, never cancelled.
  - Once a failure is observed no node is started. Nodes that were READY
    when the failure landed stay READY and are reported as unreached; which
    siblings managed to start before that point depends on scheduling.

失败策略（快速失败）：
  - FAILED 节点不会递减下游计数，下游保持 PENDING，报告为 unreached
  - 已在 RUNNING 的 work 会被等待完成，不会被取消
  - 观察到失败后不再启动任何节点；失败时仍处于 READY 的节点同样报告为 unreached，
    哪些兄弟节点已抢先启动取决于调度顺序
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import config
from dag.errors import NodeExecutionFailure, StalledExecution
from dag.plan import ExecutionPlan, RunResult
from dag.state_machine import NodeStateMachine
from schema import ExecutionNode, NodeStatus

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    """Shared mutable state of a single run. Mutated only under `lock`.
    单次运行的共享可变状态，只能在持有 lock 时修改。"""
    nodes: dict[str, ExecutionNode]
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    halted: bool = False


class DAGExecutor:
    """
    Runs every node's work exactly once, after all of its dependencies are DONE.
    每个节点的 work 只运行一次，且仅在其所有依赖都 DONE 之后运行。

    Args:
        max_workers: Size of the worker pool, i.e. the maximum number of
                     nodes running at once. Defaults to config.MAX_PARALLEL_NODES.
        on_event:    Optional callback(event, data) for progress display.
                     Events: run_start, node_transition, node_running,
                     node_done, node_failed, run_finished.

    Raises:
        ValueError: the resolved pool size is below 1.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        on_event: Callable[[str, Any], None] | None = None,
    ):
        if max_workers is None:
            max_workers = config.MAX_PARALLEL_NODES
        if max_workers < 1:
            # 没有工作协程时队列永远无法清空，运行会一直挂起
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._max_workers = max_workers  # 工作协程数量
        self._on_event = on_event        # 事件回调（用于 UI 实时更新）
        self._sm = NodeStateMachine(on_transition=self._on_node_transition)

    # ------------------------------------------------------------------
    # Main execution loop
    # 主执行流程
    # ------------------------------------------------------------------

    async def execute(self, plan: ExecutionPlan) -> RunResult:
        """
        Execute the plan and return the aggregated RunResult.
        执行计划并返回汇总的 RunResult。

        Raises:
            PlanAlreadyRun:   the plan's counters were already consumed.
            StalledExecution: nodes were left PENDING although no node failed
                              (a cycle reached the executor without sort()).
        """
        plan.mark_consumed()
        run = _RunState(nodes=plan.nodes)

        logger.info("[DAGExecutor] Running plan %s: %d nodes, %d roots",
                    plan.name, len(plan.nodes), len(plan.roots))
        self._emit("run_start", {"plan": plan.name, "roots": sorted(plan.roots)})

        for root_id in sorted(plan.roots):
            run.queue.put_nowait(root_id)

        if plan.nodes:
            await self._drain(run)

        result = self._build_result(run)
        logger.info("[DAGExecutor] Plan %s finished. %s", plan.name, result.summary())
        self._emit("run_finished", {"plan": plan.name, "result": result})

        if result.unreached and not result.failures:
            logger.error("[DAGExecutor] Plan %s stalled, stuck nodes: %s", plan.name, sorted(result.unreached))
            raise StalledExecution(result.unreached, result)
        return result

    async def _drain(self, run: _RunState) -> None:
        """
        Start the worker pool and wait until every queued node was processed.
        启动工作协程池，等待所有入队节点处理完毕。

        New nodes are only enqueued while a queued node is being processed,
        so once queue.join() returns no further work can appear.
        新节点只会在处理某个已入队节点时被加入，因此 queue.join() 返回后不会再有新任务。
        """
        pool_size = min(self._max_workers, len(run.nodes))
        workers = [asyncio.create_task(self._worker(run)) for _ in range(pool_size)]
        joiner = asyncio.create_task(run.queue.join())

        done, _ = await asyncio.wait([joiner, *workers], return_when=asyncio.FIRST_COMPLETED)

        for task in (joiner, *workers):
            task.cancel()
        await asyncio.gather(joiner, *workers, return_exceptions=True)

        # 工作协程只会因内部错误而提前结束，将其重新抛出
        for task in done:
            if task is not joiner:
                task.result()

    async def _worker(self, run: _RunState) -> None:
        while True:
            node_id = await run.queue.get()
            try:
                await self._run_node(run, node_id)
            finally:
                run.queue.task_done()

    # ------------------------------------------------------------------
    # Node execution
    # 节点执行
    # ------------------------------------------------------------------

    async def _run_node(self, run: _RunState, node_id: str) -> None:
        """
        Dispatch one READY node, then record its outcome and release its targets.
        调度单个 READY 节点，记录结果并释放其下游。
        """
        node = run.nodes[node_id]

        async with run.lock:
            if run.halted:
                logger.debug("[DAGExecutor] Not starting %s: run halted after failure", node_id)
                return
            self._sm.transition(node, NodeStatus.RUNNING)
        self._emit("node_running", {"node_id": node_id})

        error = await self._call_work(node)

        async with run.lock:
            if error is not None:
                node.error = error
                self._sm.transition(node, NodeStatus.FAILED)
                if not run.halted:
                    run.halted = True
                    logger.warning("[DAGExecutor] Node %s failed, halting dispatch: %r", node_id, error)
                else:
                    logger.warning("[DAGExecutor] Node %s failed: %r", node_id, error)
                self._emit("node_failed", {"node_id": node_id, "error": error})
                return

            self._sm.transition(node, NodeStatus.DONE)
            self._emit("node_done", {"node_id": node_id})
            released = self._release_targets(run, node)

        for target_id in released:
            run.queue.put_nowait(target_id)

    def _release_targets(self, run: _RunState, node: ExecutionNode) -> list[str]:
        """
        Decrement the fan-in counter of each target. Must hold run.lock.
        Returns the targets whose counter reached zero on this call.

        递减每个下游节点的扇入计数（调用方必须持有 run.lock）。
        返回本次调用中计数恰好归零的下游节点。
        """
        released: list[str] = []
        for target_id in sorted(node.targets):
            target = run.nodes[target_id]
            target.remaining -= 1
            if target.remaining == 0:
                self._sm.transition(target, NodeStatus.READY)
                released.append(target_id)
            else:
                logger.debug("[DAGExecutor] %s waiting on %d more dependencies", target_id, target.remaining)
        return released

    @staticmethod
    async def _call_work(node: ExecutionNode) -> BaseException | None:
        """
        Invoke the node's work. Returns the error on failure, None on success.
        调用节点 work：失败返回错误对象，成功返回 None。

        A raised exception and a returned Exception instance both count as
        failure. Sync functions run in a worker thread so blocking work does
        not stall other nodes.
        抛出异常或返回 Exception 实例均视为失败；同步函数在线程中运行，阻塞不会影响其他节点。
        """
        try:
            if inspect.iscoroutinefunction(node.work):
                outcome = await node.work(node.identifier)
            else:
                outcome = await asyncio.to_thread(node.work, node.identifier)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
        except Exception as exc:
            return exc
        if isinstance(outcome, BaseException):
            return outcome
        return None

    # ------------------------------------------------------------------
    # Result compilation
    # 结果汇总
    # ------------------------------------------------------------------

    @staticmethod
    def _build_result(run: _RunState) -> RunResult:
        completed: set[str] = set()
        failures: dict[str, NodeExecutionFailure] = {}
        unreached: set[str] = set()
        for node_id, node in run.nodes.items():
            if node.status == NodeStatus.DONE:
                completed.add(node_id)
            elif node.status == NodeStatus.FAILED:
                failures[node_id] = NodeExecutionFailure(node_id, node.error)
            else:
                unreached.add(node_id)

        return RunResult(
            all_succeeded=not failures and not unreached,
            completed=completed,
            failures=failures,
            unreached=unreached,
        )

    # ------------------------------------------------------------------
    # Event helpers
    # 事件辅助方法
    # ------------------------------------------------------------------

    def _emit(self, event: str, data: Any) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, data)
        except Exception:
            # UI 异常不能影响执行流程
            logger.exception("[DAGExecutor] Event handler failed on %s", event)

    def _on_node_transition(self, node_id: str, old: NodeStatus, new: NodeStatus) -> None:
        """
        Callback from state machine, forwarded as a UI event.
        状态机的转移回调 —— 转发为 UI 事件。
        """
        self._emit("node_transition", {
            "node_id": node_id,
            "from": old.value,
            "to": new.value,
        })
