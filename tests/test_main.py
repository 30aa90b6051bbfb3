"""
演示驱动测试: 示例图结构、正常运行与注入失败时的退出码。
"""

from __future__ import annotations

import pytest
from rich.console import Console

import config
import main


@pytest.fixture(autouse=True)
def _fast_demo(monkeypatch):
    monkeypatch.setattr(config, "DEMO_NODE_DELAY", 0.0)


class TestDemoDriver:

    def test_sample_graph_shape(self):
        graph = main.build_sample_graph()

        assert list(graph) == ["a", "b", "c", "d", "e"]
        assert graph.get("d").dependencies == frozenset({"c"})
        assert graph.get("e").dependencies == frozenset()

        order = graph.sort()
        idx = {nid: i for i, nid in enumerate(order)}
        assert idx["a"] < idx["b"] < idx["c"] < idx["d"]

    def test_run_demo_succeeds(self):
        assert main.run_demo(set()) == 0

    def test_run_demo_reports_failure(self):
        assert main.run_demo({"b"}, max_workers=2) == 1

    def test_failing_work_raises(self):
        work = main.make_work({"x"})
        assert work("y") is None
        with pytest.raises(RuntimeError):
            work("x")

    def test_option_value(self):
        assert main._option_value(["--workers", "3"], "--workers") == "3"
        assert main._option_value(["--workers"], "--workers") is None
        assert main._option_value([], "--workers") is None

    def test_run_demo_rejects_bad_worker_count(self):
        assert main.run_demo(set(), max_workers=-1) == 2


class TestLiveEvents:

    @pytest.fixture
    def recorded(self, monkeypatch):
        console = Console(record=True, width=120)
        monkeypatch.setattr(main, "console", console)
        return console

    def test_status_line_uses_status_style(self):
        assert main._status_line("c", "running") == "  [bold yellow]running [/bold yellow] c"
        assert main._status_line("b", "failed", "boom").endswith("[dim]boom[/dim]")

    def test_every_status_style_is_rendered(self, recorded):
        main.run_demo({"b"}, max_workers=1)

        text = recorded.export_text()
        for status in main._STATUS_STYLES:
            assert status in text, f"{status} 未在输出中出现"

    def test_only_ready_transitions_are_printed(self, recorded):
        main.on_event("node_transition", {"node_id": "b", "from": "pending", "to": "ready"})
        main.on_event("node_transition", {"node_id": "b", "from": "ready", "to": "running"})

        lines = recorded.export_text().splitlines()
        assert [line.split() for line in lines] == [["ready", "b"]]
