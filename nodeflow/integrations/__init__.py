"""External collaborators reached by node behaviours."""

from .http import HttpResponse, HttpTransport, AiohttpTransport
from .sql import QueryRunner, RecordSink, SqlQueryRunner, SqlRecordSink
from .advisors import Advice, StrategyAdvisor, MovingAverageAdvisor, ChatCompletionAdvisor

__all__ = [
    "HttpResponse",
    "HttpTransport",
    "AiohttpTransport",
    "QueryRunner",
    "RecordSink",
    "SqlQueryRunner",
    "SqlRecordSink",
    "Advice",
    "StrategyAdvisor",
    "MovingAverageAdvisor",
    "ChatCompletionAdvisor",
]
