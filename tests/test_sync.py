import pytest
from pydantic import ValidationError

from commandgraph import ConstantCommand, ExecutableGraph


def test_execute_sync():
    a = ConstantCommand(1, label="a")
    graph = ExecutableGraph()
    graph.place(a)

    result = graph.execute_sync()

    assert result.value(a) == 1


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("COMMANDGRAPH_MAX_CONCURRENCY", "2")

    assert ExecutableGraph().config.max_concurrency == 2
    assert ExecutableGraph(max_concurrency=4).config.max_concurrency == 4


def test_invalid_settings():
    with pytest.raises(ValidationError):
        ExecutableGraph(max_concurrency=0)

    with pytest.raises(ValidationError):
        ExecutableGraph(log_indent=-1)
