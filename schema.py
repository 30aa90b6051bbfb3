"""
Pydantic data models for the DAG runner.
Defines the node, compiled node and status types shared by the dag package.
DAG 运行器的 Pydantic 数据模型。
定义 dag 包各层共用的节点、编译节点与状态类型。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


# Work functions take the node identifier. Success is a normal return;
# failure is a raised exception or a returned Exception instance.
# work 函数接收节点 ID；正常返回即成功，抛出异常或返回 Exception 实例即失败。
WorkFn = Callable[[str], Any]


# ======================================================================
# Graph Models
# 图模型
# ======================================================================

class Node(BaseModel):
    """
    One unit of work in the graph. Immutable once created.
    图中的一个工作单元，创建后不可变。

    Dependencies are held as identifiers only; the Graph owns every Node.
    依赖只以 ID 引用，所有 Node 由 Graph 统一持有。
    """
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(description="Unique, caller-assigned node ID")             # 节点唯一 ID
    work: WorkFn = Field(description="Called with the identifier when the node runs")  # 节点工作函数
    dependencies: frozenset[str] = Field(
        default_factory=frozenset,
        description="IDs of nodes that must complete first",                           # 前置依赖 ID 集合
    )


# ======================================================================
# Execution Models
# 执行模型
# ======================================================================

class NodeStatus(str, Enum):
    """
    Execution lifecycle states, managed by NodeStateMachine.
    执行生命周期状态，由 NodeStateMachine 强制管理合法转移。

    Transition graph:
    转移图：
        PENDING -> READY -> RUNNING -> DONE
                                    -> FAILED
    """
    PENDING = "pending"   # 等待前置依赖完成
    READY = "ready"       # 依赖已满足，等待调度
    RUNNING = "running"   # 正在执行中
    DONE = "done"         # 成功完成（终态）
    FAILED = "failed"     # 执行失败（终态）


class ExecutionNode(BaseModel):
    """
    Compiled form of a Node: fan-in counter plus fan-out targets.
    Node 的编译形态：扇入计数 + 扇出目标。

    `required` and `targets` are fixed at compile time. `remaining` and
    `status` are run-scoped and only mutated by the executor under its lock.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    identifier: str
    work: WorkFn | None = None                                        # 与 Graph 中 Node 共享同一函数
    targets: set[str] = Field(default_factory=set, description="Dependents notified on completion")  # 扇出
    required: int = Field(default=0, description="Number of dependencies")                           # 扇入
    remaining: int = Field(default=0, description="Dependencies not yet completed in this run")      # 剩余计数
    status: NodeStatus = NodeStatus.PENDING
    error: BaseException | None = None                                # 失败时记录的异常

    def add_targets(self, *identifiers: str) -> None:
        """Register dependents to notify when this node completes.
        注册本节点完成后需要通知的下游节点。"""
        self.targets.update(identifiers)

    @property
    def is_root(self) -> bool:
        return self.required == 0

    @property
    def is_terminal(self) -> bool:
        return self.status in (NodeStatus.DONE, NodeStatus.FAILED)
