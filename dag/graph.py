"""
Graph - Named dependency graph of work nodes.
Graph —— 由工作节点组成的具名依赖图。

The Graph holds:
  - name:  label carried through to the compiled plan
  - nodes: dict of identifier -> Node (the single owner of every Node)

Graph 包含：
  - name:  图名称，会传递到编译后的执行计划
  - nodes: identifier -> Node 字典（所有 Node 的唯一持有者）

Key operations:
  - add():     insert a node, dependencies must already be present
  - sort():    depth-first topological sort with cycle detection
  - compile(): build the fan-in/fan-out ExecutionPlan

核心操作：
  - add():     插入节点，其依赖必须已存在于图中
  - sort():    深度优先拓扑排序，并检测环
  - compile(): 编译为扇入/扇出执行计划 ExecutionPlan
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Iterator, Mapping

from dag.compiler import compile_graph
from dag.errors import CycleDetected, DuplicateIdentifier, MissingDependency
from schema import Node, WorkFn

if TYPE_CHECKING:
    from dag.plan import ExecutionPlan

logger = logging.getLogger(__name__)


class Graph:
    """
    Dependency graph built incrementally in dependencies-first order.
    按「依赖优先」顺序增量构建的依赖图。

    Nodes reference their dependencies by identifier only, so the structure
    can describe a dependency cycle without ever holding an ownership cycle.
    节点只通过 ID 引用依赖，图结构可以描述依赖环，但不会形成对象持有环。
    """

    def __init__(self, name: str):
        self.name = name
        self._nodes: dict[str, Node] = {}

    @classmethod
    def from_nodes(cls, name: str, nodes: Iterable[Node], validate: bool = True) -> Graph:
        """
        Build a graph from nodes.
        从节点序列构建图。

        With `validate=True` every node goes through add_node() in the given
        order. With `validate=False` nodes are stored as-is, which allows
        graphs that add() would reject (used to exercise sort() and the
        executor's stall detection).
        """
        graph = cls(name)
        for node in nodes:
            if validate:
                graph.add_node(node)
            else:
                graph._nodes[node.identifier] = node
        return graph

    # ------------------------------------------------------------------
    # Construction
    # 构建
    # ------------------------------------------------------------------

    def add(self, identifier: str, dependencies: Iterable[str], work: WorkFn) -> str:
        """
        Create a Node and insert it. See add_node().
        创建 Node 并插入图中，见 add_node()。
        """
        return self.add_node(Node(identifier=identifier, work=work, dependencies=frozenset(dependencies)))

    def add_node(self, node: Node) -> str:
        """
        Insert a node and return its identifier.
        插入节点并返回其 ID。

        Checked in order, before anything is stored:
          1. identifier not present      -> else DuplicateIdentifier
          2. every dependency present    -> else MissingDependency

        按顺序校验，全部通过后才写入：
          1. ID 不存在，否则抛出 DuplicateIdentifier
          2. 所有依赖均已存在，否则抛出 MissingDependency
        """
        if node.identifier in self._nodes:
            raise DuplicateIdentifier(node.identifier)

        for dep_id in sorted(node.dependencies):
            if dep_id not in self._nodes:
                raise MissingDependency(node.identifier, dep_id)

        self._nodes[node.identifier] = node
        logger.debug("[DAG] Node added: %s (deps=%s)", node.identifier, sorted(node.dependencies))
        return node.identifier

    # ------------------------------------------------------------------
    # Queries
    # 查询
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, Node]:
        """Read-only view of identifier -> Node."""
        return MappingProxyType(self._nodes)

    def get(self, identifier: str) -> Node | None:
        return self._nodes.get(identifier)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    # ------------------------------------------------------------------
    # Graph algorithms
    # 图算法
    # ------------------------------------------------------------------

    def sort(self) -> list[str]:
        """
        Depth-first topological sort. Returns identifiers with every
        dependency placed before the nodes that declare it.

        深度优先拓扑排序（后序），保证每个依赖都排在声明它的节点之前。

        `visited` spans the whole sort; `on_stack` marks the ancestors on the
        current DFS path, so meeting one of them again is a back-edge. The
        traversal keeps its own stack of (node, dependency iterator) frames
        instead of recursing, so deep chains do not hit the recursion limit.

        `visited` 在整个排序过程中共享；`on_stack` 标记当前 DFS 路径上的祖先，
        再次遇到即为回边（环）。使用显式栈代替递归，避免深链触发递归深度限制。

        Raises:
            MissingDependency: a dependency is not in the graph.
            CycleDetected:     a dependency is an ancestor on the current path.
        """
        visited: set[str] = set()
        results: list[str] = []

        for root_id in self._nodes:
            if root_id in visited:
                continue

            on_stack: set[str] = {root_id}
            visited.add(root_id)
            stack = [(root_id, iter(self._nodes[root_id].dependencies))]

            while stack:
                node_id, deps = stack[-1]
                descended = False
                for dep_id in deps:
                    if dep_id not in visited:
                        if dep_id not in self._nodes:
                            raise MissingDependency(node_id, dep_id)
                        visited.add(dep_id)
                        on_stack.add(dep_id)
                        stack.append((dep_id, iter(self._nodes[dep_id].dependencies)))
                        descended = True
                        break
                    if dep_id in on_stack:
                        logger.warning("[DAG] Cycle detected on %s in graph %s", dep_id, self.name)
                        raise CycleDetected(dep_id)

                if not descended:
                    # 所有依赖处理完毕：后序写入结果并出栈
                    stack.pop()
                    on_stack.discard(node_id)
                    results.append(node_id)

        return results

    def compile(self) -> ExecutionPlan:
        """
        Compile into a fresh ExecutionPlan. No cycle check is performed here;
        call sort() first to get CycleDetected instead of a stalled run.

        编译为新的 ExecutionPlan。此处不做环检测；
        先调用 sort() 可以得到明确的 CycleDetected，而不是运行时停滞。
        """
        return compile_graph(self)

    # ------------------------------------------------------------------
    # Display helpers
    # 展示辅助方法
    # ------------------------------------------------------------------

    def summary(self) -> str:
        """
        One-line summary for logging, e.g. Graph[my-graph: 5 nodes, 2 roots, 3 edges]
        生成单行摘要，用于日志输出。
        """
        roots = sum(1 for n in self._nodes.values() if not n.dependencies)
        edges = sum(len(n.dependencies) for n in self._nodes.values())
        return f"Graph[{self.name}: {len(self._nodes)} nodes, {roots} roots, {edges} edges]"
