"""
DAG errors - Exception taxonomy for graph building, sorting and execution.
DAG 异常体系 —— 图构建、排序与执行阶段的异常定义。

Structural errors (DuplicateIdentifier, MissingDependency, CycleDetected) are
raised synchronously by the call that detected them and leave the graph
untouched. Execution errors (NodeExecutionFailure) are collected into the
RunResult instead of being raised out of a run.

结构性错误（重复 ID、缺失依赖、环）在检测到的调用中同步抛出，图保持不变；
执行期错误（NodeExecutionFailure）汇总进 RunResult，不会从 run() 中抛出。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from dag.plan import RunResult


class DAGError(Exception):
    """Base class for every error raised by the dag package.
    dag 包所有异常的基类。"""


class DuplicateIdentifier(DAGError):
    """
    Raised by Graph.add when the identifier is already present.
    Graph.add 时 ID 已存在则抛出。
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Node with id '{identifier}' already exists")


class MissingDependency(DAGError):
    """
    Raised when a node references a dependency that is not in the graph.
    节点引用了图中不存在的依赖时抛出。

    `identifier` is the node declaring the dependency, `dependency` the ID
    that could not be found.
    """

    def __init__(self, identifier: str, dependency: str):
        self.identifier = identifier
        self.dependency = dependency
        super().__init__(f"Node '{identifier}' is missing dependency '{dependency}'")


class CycleDetected(DAGError):
    """
    Raised by Graph.sort when a back-edge closes a cycle.
    拓扑排序发现回边（环）时抛出，identifier 为闭合环的节点。
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Detected cycle on '{identifier}'")


class NodeExecutionFailure(DAGError):
    """
    Wraps the error produced by a node's work function.
    包装节点 work 函数产生的错误，仅出现在 RunResult.failures 中。
    """

    def __init__(self, identifier: str, error: BaseException):
        self.identifier = identifier
        self.error = error
        super().__init__(f"Node '{identifier}' failed: {error!r}")


class StalledExecution(DAGError):
    """
    Raised when a run ends with nodes that can never become ready although no
    node failed. Only reachable by compiling a cyclic graph without sorting it.

    运行结束时仍有节点永远无法就绪（且没有任何节点失败）时抛出。
    只有跳过 sort() 直接编译带环图才会出现。
    """

    def __init__(self, stuck: Iterable[str], result: RunResult | None = None):
        self.stuck = frozenset(stuck)
        self.result = result
        super().__init__(f"Execution stalled, stuck nodes: {sorted(self.stuck)}")


class InvalidTransitionError(DAGError):
    """
    Raised when an illegal node state transition is attempted.
    当尝试非法状态转移时抛出此异常。
    """


class PlanAlreadyRun(DAGError):
    """
    Raised when an ExecutionPlan is run a second time. Its counters are
    run-scoped, so the graph must be compiled again.
    ExecutionPlan 的计数器是单次运行状态，重复运行需重新编译。
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Execution plan '{name}' has already been run; compile the graph again")
