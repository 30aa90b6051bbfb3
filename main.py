"""
DAG Runner - Demo CLI entry point.
DAG 运行器 —— 演示命令行入口。

Builds the sample graph (a -> b -> c -> d, plus a standalone e), validates it
with a topological sort, compiles it and runs it, displaying each phase with
a rich console UI: graph overview, sorted order, live node events and the
final run report.
构建示例图（a -> b -> c -> d，以及独立节点 e），通过拓扑排序校验，
编译并运行，使用 Rich 控制台 UI 展示每个阶段：图概览、排序结果、节点实时事件、最终运行报告。

Usage / 用法:
    python main.py [-v] [--fail NODE] [--workers N]
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

import config
from dag import DAGError, Graph, RunResult, StalledExecution

console = Console()
logger = logging.getLogger("main")

# Status -> Rich style mapping
# 节点状态 -> Rich 样式映射
_STATUS_STYLES = {
    "ready": "yellow",         # 就绪：黄色
    "running": "bold yellow",  # 运行中：粗体黄色
    "done": "green",           # 已完成：绿色
    "failed": "red",           # 失败：红色
    "unreached": "dim strike", # 未执行：删除线
}


# ======================================================================
# Sample graph
# 示例图
# ======================================================================

def make_work(fail_on: set[str]):
    """
    Build the demo work function: sleeps DEMO_NODE_DELAY seconds and fails
    for identifiers listed in `fail_on`.
    构建演示用 work 函数：休眠 DEMO_NODE_DELAY 秒，`fail_on` 中的节点会失败。
    """
    def work(identifier: str) -> None:
        logger.info("Running node %s", identifier)
        time.sleep(config.DEMO_NODE_DELAY)
        if identifier in fail_on:
            raise RuntimeError(f"node {identifier} was asked to fail")

    return work


def build_sample_graph(fail_on: set[str] | None = None) -> Graph:
    """
    The five-node sample graph: a <- b <- c <- d, and e with no dependencies.
    五节点示例图：a <- b <- c <- d，以及无依赖的 e。
    """
    work = make_work(fail_on or set())
    graph = Graph("my-graph")
    graph.add("a", set(), work)
    graph.add("b", {"a"}, work)
    graph.add("c", {"b"}, work)
    graph.add("d", {"c"}, work)
    graph.add("e", set(), work)
    return graph


# ======================================================================
# Display helpers
# 展示辅助方法
# ======================================================================

def _build_graph_tree(graph: Graph) -> Tree:
    """
    Rich Tree listing each node with the dependencies it waits on.
    构建 Rich Tree，列出每个节点及其等待的依赖。
    """
    tree = Tree(f"[bold]{graph.summary()}[/bold]")
    for node_id in graph:
        deps = sorted(graph.nodes[node_id].dependencies)
        label = f"[cyan]{node_id}[/cyan]"
        if deps:
            label += f" [dim]after {', '.join(deps)}[/dim]"
        tree.add(label)
    return tree


def _build_result_table(result: RunResult) -> Table:
    """
    Rich Table with the final status of every node.
    构建最终运行报告表格。
    """
    table = Table(title=result.summary())
    table.add_column("Node", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    rows: list[tuple[str, str, str]] = []
    rows += [(nid, "done", "") for nid in result.completed]
    rows += [(nid, "failed", str(f.error)) for nid, f in result.failures.items()]
    rows += [(nid, "unreached", "blocked by failure") for nid in result.unreached]

    for node_id, status, detail in sorted(rows):
        style = _STATUS_STYLES.get(status, "white")
        table.add_row(node_id, f"[{style}]{status}[/{style}]", detail)
    return table


# ======================================================================
# UI Event Handler
# UI 事件处理器
# ======================================================================

def _status_line(node_id: str, status: str, detail: str = "") -> str:
    """Format one live status line, coloured by _STATUS_STYLES."""
    style = _STATUS_STYLES.get(status, "white")
    line = f"  [{style}]{status:<8}[/{style}] {node_id}"
    if detail:
        line += f" [dim]{detail}[/dim]"
    return line


def on_event(event: str, data: Any) -> None:
    """
    Handle events from the DAGExecutor and display them.
    处理来自 DAGExecutor 的事件并在控制台展示。
    """
    if event == "run_start":
        console.print(f"\n[bold cyan]>>> Running {data['plan']} (roots: {', '.join(data['roots'])})[/bold cyan]")

    elif event == "node_running":
        console.print(_status_line(data["node_id"], "running"))

    elif event == "node_done":
        console.print(_status_line(data["node_id"], "done"))

    elif event == "node_failed":
        console.print(_status_line(data["node_id"], "failed", str(data["error"])))

    elif event == "node_transition":
        # 依赖全部完成后进入就绪状态
        if data["to"] == "ready":
            console.print(_status_line(data["node_id"], "ready"))
        logger.debug("%s: %s -> %s", data["node_id"], data["from"], data["to"])


# ======================================================================
# Entry point
# 程序入口
# ======================================================================

def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging with rich handler.
    配置 Rich 日志处理器。
    """
    level = logging.DEBUG if verbose else config.LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def _option_value(args: list[str], name: str) -> str | None:
    """Return the value following `name` in args, if present."""
    if name in args:
        idx = args.index(name)
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


def run_demo(fail_on: set[str], max_workers: int | None = None) -> int:
    """
    Build, sort, compile and run the sample graph. Returns the exit code.
    构建、排序、编译并运行示例图，返回进程退出码。
    """
    try:
        graph = build_sample_graph(fail_on)
        order = graph.sort()
    except DAGError as exc:
        console.print(f"[red]Invalid graph: {exc}[/red]")
        return 2

    console.print(Panel(_build_graph_tree(graph), title="[bold blue]Graph[/bold blue]", border_style="blue"))
    console.print(f"[bold]Topological order:[/bold] {' -> '.join(order)}")

    plan = graph.compile()
    try:
        result = plan.run(max_workers=max_workers, on_event=on_event)
    except ValueError as exc:
        console.print(f"[red]Invalid option: {exc}[/red]")
        return 2
    except StalledExecution as exc:
        console.print(f"[red]{exc}[/red]")
        return 3

    console.print()
    console.print(_build_result_table(result))
    return 0 if result.all_succeeded else 1


def main() -> None:
    """
    程序入口：解析命令行参数。
    - -v / --verbose：启用调试日志
    - --fail NODE：让指定节点失败（可重复）
    - --workers N：工作协程数量
    """
    args = sys.argv[1:]
    verbose = "--verbose" in args or "-v" in args
    setup_logging(verbose)

    fail_on = {args[i + 1] for i, a in enumerate(args[:-1]) if a == "--fail"}
    workers = _option_value(args, "--workers")

    sys.exit(run_demo(fail_on, int(workers) if workers else None))


if __name__ == "__main__":
    main()
