"""Tests for the built-in node behaviours."""

import pytest

from nodeflow.core.context import ExecutionContext
from nodeflow.core.exceptions import NodeExecutionError
from nodeflow.integrations.advisors import (
    ChatCompletionAdvisor, MovingAverageAdvisor, extract_prices, parse_advice
)
from nodeflow.integrations.http import HttpResponse
from nodeflow.models.core import LogLevel, NodeStatus
from nodeflow.nodes.script import run_python
from nodeflow.nodes import (
    DatabaseQueryBehavior,
    HttpRequestBehavior,
    ScriptBehavior,
    StorageBehavior,
    StrategyBehavior,
    TimerBehavior,
)

from conftest import FIXED_TIME, FakeQueryRunner, FakeRecordSink, FakeTransport


def context(config=None, inputs=None, node_id="n1"):
    return ExecutionContext(node_id=node_id, inputs=list(inputs or []), config=dict(config or {}))


def messages(ctx):
    return [entry.message for entry in ctx.logs]


class TestTimerBehavior:

    async def test_emits_trigger_timestamp(self):
        ctx = context({"cron": "0 9 * * 1-5"})

        result = await TimerBehavior(clock=lambda: FIXED_TIME).execute(ctx)

        assert result.ok
        assert result.output == {"timestamp": "2024-01-15T09:30:00+00:00", "trigger": "cron"}
        assert messages(ctx) == ["Timer triggered at 2024-01-15T09:30:00+00:00"]
        assert ctx.logs[0].level == LogLevel.SUCCESS


class TestDatabaseQueryBehavior:

    async def test_fetches_rows(self):
        runner = FakeQueryRunner(rows=[{"close": 1.0}, {"close": 2.0}, {"close": 3.0}])
        ctx = context({"query": "SELECT close FROM prices"})

        result = await DatabaseQueryBehavior(runner).execute(ctx)

        assert result.output["rows"] == 3
        assert result.output["data"][0] == {"close": 1.0}
        assert messages(ctx) == ["Connecting to Localhost...", "Executed query. Fetched 3 rows."]
        assert runner.queries == ["SELECT close FROM prices"]

    async def test_connection_string_changes_target_log(self):
        ctx = context({"query": "SELECT 1", "connectionString": "sqlite:///:memory:"})
        await DatabaseQueryBehavior(FakeQueryRunner()).execute(ctx)
        assert messages(ctx)[0] == "Connecting to Database..."

    async def test_empty_query_fails_without_logs(self):
        ctx = context({"query": "   "})

        result = await DatabaseQueryBehavior(FakeQueryRunner()).execute(ctx)

        assert result.status == NodeStatus.ERROR
        assert result.error == "No query configured"
        assert ctx.logs == []

    async def test_runner_errors_propagate(self):
        runner = FakeQueryRunner(error=RuntimeError("connection refused"))
        with pytest.raises(RuntimeError, match="connection refused"):
            await DatabaseQueryBehavior(runner).execute(context({"query": "SELECT 1"}))


class TestHttpRequestBehavior:

    async def test_get_request(self):
        transport = FakeTransport()
        ctx = context({"method": "get", "url": "https://api.example.com/prices", "headers": '{"X-Key": "k"}'})

        result = await HttpRequestBehavior(transport).execute(ctx)

        assert result.output == {"status": 200, "body": {"ok": True}}
        assert messages(ctx) == [
            "Sending GET request to https://api.example.com/prices...",
            "Response: 200 OK",
        ]
        assert transport.requests[0]["headers"] == {"X-Key": "k"}
        assert transport.requests[0]["body"] is None

    async def test_post_without_body_sends_inputs(self):
        transport = FakeTransport()
        ctx = context({"method": "POST", "url": "https://hooks.example.com"}, inputs=[{"signal": "BUY"}])

        await HttpRequestBehavior(transport).execute(ctx)

        assert transport.requests[0]["body"] == [{"signal": "BUY"}]

    async def test_configured_json_body(self):
        transport = FakeTransport()
        ctx = context({"method": "PUT", "url": "https://hooks.example.com", "body": '{"a": 1}'}, inputs=[1])

        await HttpRequestBehavior(transport).execute(ctx)

        assert transport.requests[0]["body"] == {"a": 1}

    async def test_error_status_fails_node(self):
        transport = FakeTransport({
            "https://api.example.com/down": HttpResponse(status=503, reason="Service Unavailable", body=""),
        })
        ctx = context({"url": "https://api.example.com/down"})

        result = await HttpRequestBehavior(transport).execute(ctx)

        assert not result.ok
        assert result.error == "HTTP 503 Service Unavailable"
        assert messages(ctx) == ["Sending GET request to https://api.example.com/down..."]

    async def test_missing_url(self):
        result = await HttpRequestBehavior(FakeTransport()).execute(context({}))
        assert result.error == "No URL configured"

    async def test_invalid_method_is_a_configuration_error(self):
        with pytest.raises(NodeExecutionError, match="Invalid HTTP Request configuration"):
            await HttpRequestBehavior(FakeTransport()).execute(context({"method": "PATCH", "url": "https://x"}))


class TestScriptBehavior:

    async def test_forwards_inputs_without_code(self):
        ctx = context({}, inputs=[{"a": 1}, {"a": 2}])

        result = await ScriptBehavior().execute(ctx)

        assert result.output == {"processed": True, "count": 2, "source": "javascript", "data": [{"a": 1}, {"a": 2}]}
        assert messages(ctx) == [
            "Compiling javascript code...",
            "Processing 2 input records...",
            "Execution complete.",
        ]

    async def test_empty_inputs_give_empty_data(self):
        result = await ScriptBehavior().execute(context({}))
        assert result.output["data"] == []
        assert result.output["count"] == 0

    async def test_javascript_code_warns_and_forwards(self):
        ctx = context({"language": "JavaScript", "code": "return inputs.map(x => x * 2);"}, inputs=[1, 2])

        result = await ScriptBehavior().execute(ctx)

        assert result.output["data"] == [1, 2]
        assert [entry.level for entry in ctx.logs] == [
            LogLevel.INFO, LogLevel.INFO, LogLevel.WARN, LogLevel.SUCCESS,
        ]

    async def test_python_code_runs(self):
        code = "def main(inputs):\n    return [value * 2 for value in inputs if value > 1]\n"
        ctx = context({"language": "python", "code": code}, inputs=[1, 2, 3])

        result = await ScriptBehavior().execute(ctx)

        assert result.output["data"] == [4, 6]
        assert result.output["count"] == 2
        assert result.output["source"] == "python"

    async def test_python_without_main(self):
        ctx = context({"language": "python", "code": "x = 1"})
        with pytest.raises(NodeExecutionError, match="must define main"):
            await ScriptBehavior().execute(ctx)

    async def test_python_has_no_imports(self):
        code = "def main(inputs):\n    import os\n    return os.listdir('.')\n"
        with pytest.raises(ImportError):
            await ScriptBehavior().execute(context({"language": "python", "code": code}))

    async def test_python_loops_and_augmented_assignment(self):
        code = (
            "def main(inputs):\n"
            "    total = 0\n"
            "    for key, value in sorted(inputs[0].items()):\n"
            "        total += value\n"
            "    return [{'total': total}]\n"
        )
        result = await ScriptBehavior().execute(context({"language": "python", "code": code}, inputs=[{"a": 1, "b": 2}]))
        assert result.output["data"] == [{"total": 3}]

    @pytest.mark.parametrize("code", [
        "def main(inputs):\n"
        "    return [c.__name__ for c in ().__class__.__base__.__subclasses__()]\n",
        "def main(inputs):\n    return inputs.__class__\n",
        "def main(inputs):\n    return [_secret for _secret in inputs]\n",
    ])
    async def test_python_rejects_private_access(self, code):
        with pytest.raises(NodeExecutionError):
            await ScriptBehavior().execute(context({"language": "python", "code": code}))

    def test_runaway_script_stopped_at_deadline(self):
        code = "def main(inputs):\n    while True:\n        pass\n"
        with pytest.raises(NodeExecutionError, match="exceeded 0.1s"):
            run_python(code, [], timeout=0.1)


class TestStrategyBehavior:

    async def test_local_crossover(self):
        inputs = [{"close": 1.0}, {"close": 2.0}, {"close": 3.0}, {"close": 4.0}]
        ctx = context({"fast_ma": 2, "slow_ma": 4, "userPrompt": "Analyze {{inputs}}"}, inputs=inputs)
        behavior = StrategyBehavior(MovingAverageAdvisor(), ChatCompletionAdvisor(FakeTransport()))

        result = await behavior.execute(ctx)

        assert result.output["signal"] == "BUY"
        assert result.output["confidence"] == 0.9
        assert messages(ctx) == [
            "Initializing DeepSeek client (default)...",
            "Context injected: 4 records.",
            "Sending request to DeepSeek API...",
            "Received response from model.",
        ]

    async def test_without_data_stays_flat(self):
        ctx = context({})
        behavior = StrategyBehavior(MovingAverageAdvisor(), ChatCompletionAdvisor(FakeTransport()))

        result = await behavior.execute(ctx)

        assert result.output["signal"] == "SELL"
        assert result.output["confidence"] == 0.5
        assert len(ctx.logs) == 3

    async def test_remote_model(self):
        url = "https://api.deepseek.com/v1/chat/completions"
        transport = FakeTransport({
            url: HttpResponse(200, "OK", {"choices": [{"message": {"content": "SELL, confidence 80%"}}]}),
        })
        ctx = context(
            {"apiKey": "sk-test", "model": "deepseek-chat", "userPrompt": "Data: {{inputs}}"},
            inputs=[{"close": 10.0}],
        )
        behavior = StrategyBehavior(MovingAverageAdvisor(), ChatCompletionAdvisor(transport))

        result = await behavior.execute(ctx)

        assert result.output["signal"] == "SELL"
        assert result.output["confidence"] == 0.8
        assert messages(ctx)[2:] == ["Sending request to DeepSeek API...", "Received response from model."]
        sent = transport.requests[0]
        assert sent["url"] == url
        assert sent["headers"]["Authorization"] == "Bearer sk-test"
        assert '{"close": 10.0}' in sent["body"]["messages"][-1]["content"]

    async def test_remote_error_raises(self):
        url = "https://api.deepseek.com/v1/chat/completions"
        transport = FakeTransport({url: HttpResponse(401, "Unauthorized", {})})
        behavior = StrategyBehavior(MovingAverageAdvisor(), ChatCompletionAdvisor(transport))

        with pytest.raises(NodeExecutionError, match="401"):
            await behavior.execute(context({"apiKey": "bad"}))


class TestAdvisorHelpers:

    def test_extract_prices(self):
        inputs = [1, True, {"price": 2}, {"rows": 1, "data": [{"close": 3}, {"equity": 4.5}]}, "x"]
        assert extract_prices(inputs) == [1.0, 2.0, 3.0, 4.5]

    def test_parse_advice_defaults_confidence(self):
        advice = parse_advice("I would buy here.")
        assert advice.signal == "BUY"
        assert advice.confidence == 0.5

    def test_parse_advice_without_signal(self):
        with pytest.raises(NodeExecutionError):
            parse_advice("Hold.")


class TestStorageBehavior:

    async def test_writes_inputs(self):
        sink = FakeRecordSink()
        ctx = context({"dbType": "PostgreSQL", "table": "trades"}, inputs=[{"signal": "BUY"}, {"signal": "SELL"}])

        result = await StorageBehavior(sink).execute(ctx)

        assert result.output == {"saved": True, "records": 2}
        assert sink.writes == [{"table": "trades", "records": [{"signal": "BUY"}, {"signal": "SELL"}]}]
        assert messages(ctx) == [
            "Opening connection to PostgreSQL...",
            "Writing 2 records to table 'trades'...",
            "Write confirmed.",
        ]

    async def test_invalid_table_name(self):
        with pytest.raises(NodeExecutionError, match="Invalid Storage configuration"):
            await StorageBehavior(FakeRecordSink()).execute(context({"table": "trades; DROP TABLE x"}))
