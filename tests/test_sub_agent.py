"""
Tests for sub-agent delegation
"""

import json

import pytest

from agent.agent_registry import SUB_AGENT_ROLES, get_role, list_roles, sub_agent_tools
from agent.errors import AgentError, ErrorKind, external_service_error
from agent.sub_agent import AgentState, SubAgent
from agent.tools import DELEGATE_TOOL
from tests.conftest import FakeGateway, text_response, tool_use_response


class TestRoles:
    """Role definitions."""

    def test_every_role_tool_is_registered(self, registry):
        for role in SUB_AGENT_ROLES.values():
            for name in role.tools:
                assert name in registry, f"{role.key}: {name}"

    def test_delegation_never_offered(self):
        for key in SUB_AGENT_ROLES:
            assert DELEGATE_TOOL not in sub_agent_tools(key)

    def test_unknown_role(self):
        with pytest.raises(AgentError) as exc_info:
            get_role("legal")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_list_roles(self):
        keys = {r["key"] for r in list_roles()}
        assert keys == {"seo", "copywriting", "design", "technical"}


class TestToolRestriction:
    """Sub-agents only see their role's tools."""

    @pytest.mark.asyncio
    async def test_catalog_excludes_other_tools(self, broker, make_ctx, registry):
        """Test a tool from the main catalog outside the role is absent from the sub-agent catalog."""
        gateway = FakeGateway([text_response("Meta description updated")])
        ctx = make_ctx(gateway, broker)
        agent = SubAgent(get_role("seo"), ctx)

        assert "create_post" in registry
        catalog_names = {s.name for s in agent.catalog()}
        assert "create_post" not in catalog_names
        assert DELEGATE_TOOL not in catalog_names

        result = await agent.run("Improve the meta description", {"post_id": 42})

        offered = set(gateway.calls[0]["tools"])
        assert offered == set(sub_agent_tools("seo"))
        assert "create_post" not in offered
        assert result["success"] is True
        assert result["agent"] == "seo"
        assert result["message"] == "Meta description updated"

    @pytest.mark.asyncio
    async def test_out_of_role_call_rejected(self, broker, make_ctx, content):
        gateway = FakeGateway(
            [
                tool_use_response(("toolu_1", "create_post", {"title": "x", "content": "y"})),
                text_response("Could not create"),
            ]
        )
        agent = SubAgent(get_role("seo"), make_ctx(gateway, broker))

        result = await agent.run("Create a post")

        tool_result = gateway.calls[1]["messages"][-1]["content"][0]
        assert tool_result["is_error"] is True
        assert content.calls == []
        assert result["toolsExecuted"] == ["create_post"]

    @pytest.mark.asyncio
    async def test_task_message_carries_context(self, broker, make_ctx):
        gateway = FakeGateway([text_response("ok")])
        agent = SubAgent(get_role("design"), make_ctx(gateway, broker))

        await agent.run("Pick colors", {"brand": "bakery"})

        first = gateway.calls[0]["messages"][0]["content"]
        assert first.startswith("Task: Pick colors")
        assert json.loads(first.split("Context: ", 1)[1]) == {"brand": "bakery"}
        assert gateway.calls[0]["system_prompt"] == get_role("design").prompt


class TestDelegationTool:
    """delegate_to_subagent handler."""

    @pytest.mark.asyncio
    async def test_delegate_runs_sub_agent(self, broker, make_ctx, registry):
        gateway = FakeGateway([text_response("Headline rewritten")])
        ctx = make_ctx(gateway, broker)

        outcome = await registry.dispatch(
            DELEGATE_TOOL, {"agent": "copywriting", "task": "Rewrite the headline"}, ctx
        )

        assert outcome.value["success"] is True
        assert outcome.value["agentName"] == "Copywriting Agent"
        assert outcome.value["message"] == "Headline rewritten"

    @pytest.mark.asyncio
    async def test_nested_delegation_refused(self, broker, make_ctx, registry):
        ctx = make_ctx(FakeGateway(), broker, depth=1)

        with pytest.raises(AgentError) as exc_info:
            await registry.dispatch(DELEGATE_TOOL, {"agent": "seo", "task": "x"}, ctx)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_unknown_agent_enum(self, broker, make_ctx, registry):
        ctx = make_ctx(FakeGateway(), broker)

        with pytest.raises(AgentError) as exc_info:
            await registry.dispatch(DELEGATE_TOOL, {"agent": "legal", "task": "x"}, ctx)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_gateway_failure_becomes_result(self, broker, make_ctx):
        gateway = FakeGateway()
        gateway.error = external_service_error("provider down")
        agent = SubAgent(get_role("technical"), make_ctx(gateway, broker))

        result = await agent.run("Validate blocks")

        assert result["success"] is False
        assert result["error"] == "provider down"
        assert agent.state == AgentState.FAILED

    @pytest.mark.asyncio
    async def test_sub_agent_context_depth(self, broker, make_ctx):
        ctx = make_ctx(FakeGateway(), broker)
        agent = SubAgent(get_role("seo"), ctx)
        assert agent.ctx.depth == 1
        assert ctx.depth == 0
        assert agent.state == AgentState.SLEEPING
