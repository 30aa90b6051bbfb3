"""
DAG module - Core engine for dependency graph validation and execution.
DAG 模块 —— 依赖图校验与执行的核心引擎。

Components:
  - graph.py:         Graph data structure, insertion checks, topological sort
  - compiler.py:      Graph -> ExecutionPlan (fan-in counters, fan-out targets)
  - plan.py:          ExecutionPlan and RunResult
  - state_machine.py: Execution node lifecycle state machine
  - executor.py:      DAG execution engine (worker pool + fan-in barrier)
  - errors.py:        Exception taxonomy

模块组成：
  - graph.py:         Graph 数据结构、插入校验、拓扑排序
  - compiler.py:      Graph -> ExecutionPlan（扇入计数、扇出目标）
  - plan.py:          执行计划 ExecutionPlan 与运行结果 RunResult
  - state_machine.py: 编译节点生命周期状态机（强制合法状态转移）
  - executor.py:      DAG 执行引擎（工作协程池 + 扇入屏障）
  - errors.py:        异常体系
"""

from dag.errors import (                       # 异常体系
    CycleDetected,
    DAGError,
    DuplicateIdentifier,
    InvalidTransitionError,
    MissingDependency,
    NodeExecutionFailure,
    PlanAlreadyRun,
    StalledExecution,
)
from dag.graph import Graph                    # 依赖图
from dag.plan import ExecutionPlan, RunResult  # 执行计划与结果
from dag.state_machine import NodeStateMachine  # 节点状态机
from dag.executor import DAGExecutor           # DAG 执行引擎

__all__ = [
    "CycleDetected",
    "DAGError",
    "DAGExecutor",
    "DuplicateIdentifier",
    "ExecutionPlan",
    "Graph",
    "InvalidTransitionError",
    "MissingDependency",
    "NodeExecutionFailure",
    "NodeStateMachine",
    "PlanAlreadyRun",
    "RunResult",
    "StalledExecution",
]
