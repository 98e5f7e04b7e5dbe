"""LiteLLMResolver 单元测试

Mock litellm.acompletion()，验证 XML 解析、未找到/未知 ID 返回 None、
连接错误抛 ProxyUnreachableError、其他错误抛 ProviderError，以及 health_check()。
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from todoagent.provider.client import (
    LiteLLMResolver,
    format_candidates,
    parse_completion_xml,
)
from todoagent.provider.exceptions import ProviderError, ProxyUnreachableError
from todoagent.provider.models import TaskCandidate

TASK_ID = "01JTASK000000000000000000A"


@pytest.fixture
def resolver() -> LiteLLMResolver:
    return LiteLLMResolver(
        proxy_base_url="http://localhost:4000/",
        proxy_api_key="sk-test",
        model_alias="main",
        timeout_s=30,
    )


@pytest.fixture
def candidates() -> list[TaskCandidate]:
    return [
        TaskCandidate(id=TASK_ID, name="Finish taxes", tags=["TODO", "one-off"]),
        TaskCandidate(id="01JTASK000000000000000000B", name="Call mom"),
    ]


def _response(content: str):
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = content
    response.choices = [choice]
    return response


def _xml(task_id: str, name: str, found: str) -> str:
    return (
        "Sure!\n<response>\n"
        f"  <taskId>{task_id}</taskId>\n"
        f"  <taskName>{name}</taskName>\n"
        f"  <isFound>{found}</isFound>\n"
        "</response>"
    )


class TestParseCompletionXml:
    def test_parses_fields(self):
        parsed = parse_completion_xml(_xml(TASK_ID, "Finish taxes", "true"))
        assert parsed == {"taskId": TASK_ID, "taskName": "Finish taxes", "isFound": "true"}

    def test_null_values(self):
        parsed = parse_completion_xml(_xml("null", "null", "false"))
        assert parsed == {"taskId": "", "taskName": "", "isFound": "false"}

    def test_quoted_flag(self):
        assert parse_completion_xml(_xml(TASK_ID, "x", "'True'"))["isFound"] == "true"

    def test_missing_flag_is_unparseable(self):
        assert parse_completion_xml("<taskId>abc</taskId>") is None
        assert parse_completion_xml("no xml here") is None


class TestFormatCandidates:
    def test_includes_ids_and_tags(self, candidates):
        text = format_candidates(candidates)
        assert f"ID: {TASK_ID}" in text
        assert "Tags: TODO, one-off" in text
        assert "Tags: none" in text
        assert "Description: Call mom" in text


class TestResolve:
    async def test_found(self, resolver, candidates):
        mock = AsyncMock(return_value=_response(_xml(TASK_ID, "Finish taxes", "true")))
        with patch("todoagent.provider.client.acompletion", mock):
            result = await resolver.resolve("I did my taxes", candidates)

        assert result.task_id == TASK_ID
        assert result.task_name == "Finish taxes"
        assert result.confidence == 1.0
        assert result.resolver == "litellm"

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "main"
        assert kwargs["api_base"] == "http://localhost:4000"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["temperature"] == 0
        prompt = kwargs["messages"][0]["content"]
        assert "I did my taxes" in prompt
        assert TASK_ID in prompt

    async def test_not_found(self, resolver, candidates):
        mock = AsyncMock(return_value=_response(_xml("null", "null", "false")))
        with patch("todoagent.provider.client.acompletion", mock):
            assert await resolver.resolve("walk the dog", candidates) is None

    async def test_unknown_task_id(self, resolver, candidates):
        mock = AsyncMock(return_value=_response(_xml("01JOTHER", "Other", "true")))
        with patch("todoagent.provider.client.acompletion", mock):
            assert await resolver.resolve("other", candidates) is None

    async def test_unparseable_content(self, resolver, candidates):
        mock = AsyncMock(return_value=_response("I think it's the taxes one"))
        with patch("todoagent.provider.client.acompletion", mock):
            assert await resolver.resolve("taxes", candidates) is None

    async def test_no_candidates_skips_call(self, resolver):
        mock = AsyncMock()
        with patch("todoagent.provider.client.acompletion", mock):
            assert await resolver.resolve("taxes", []) is None
        mock.assert_not_called()

    async def test_connection_error_raises_proxy_unreachable(self, resolver, candidates):
        mock = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("todoagent.provider.client.acompletion", mock):
            with pytest.raises(ProxyUnreachableError) as exc_info:
                await resolver.resolve("taxes", candidates)
        assert exc_info.value.proxy_url == "http://localhost:4000"

    async def test_other_error_raises_provider_error(self, resolver, candidates):
        mock = AsyncMock(side_effect=ValueError("model not found"))
        with patch("todoagent.provider.client.acompletion", mock):
            with pytest.raises(ProviderError) as exc_info:
                await resolver.resolve("taxes", candidates)
        assert not isinstance(exc_info.value, ProxyUnreachableError)
        assert exc_info.value.recoverable is True


class TestHealthCheck:
    async def test_healthy(self, resolver):
        response = MagicMock(status_code=200)
        with patch("httpx.AsyncClient.get", AsyncMock(return_value=response)) as mock_get:
            assert await resolver.health_check() is True
        assert mock_get.call_args.args[0] == "http://localhost:4000/health/liveliness"

    async def test_unhealthy_status(self, resolver):
        response = MagicMock(status_code=503)
        with patch("httpx.AsyncClient.get", AsyncMock(return_value=response)):
            assert await resolver.health_check() is False

    async def test_connection_failure(self, resolver):
        with patch(
            "httpx.AsyncClient.get",
            AsyncMock(side_effect=httpx.ConnectError("refused")),
        ):
            assert await resolver.health_check() is False
