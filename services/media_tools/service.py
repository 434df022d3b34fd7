from __future__ import annotations

from services.media_tools.orchestrator import ToolOrchestrator, ToolResponse
from services.media_tools.schemas import TOOLS, TOOLS_BY_NAME, PurchasePlanInput
from shared.config import MediaGateConfig
from shared.materialize import ContentMaterializer
from shared.nevermined import NeverminedPayments
from shared.payments import AccessBroker


def build_orchestrator(config: MediaGateConfig, payments=None) -> ToolOrchestrator:
    if payments is None:
        payments = NeverminedPayments.connect(config.api_key, config.environment)
    broker = AccessBroker(
        payments,
        insecure_proxy_scheme=config.insecure_proxy_scheme,
        grant_cache=config.grant_cache,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )
    materializer = ContentMaterializer(limit_bytes=config.inline_limit_bytes, timeout=config.request_timeout)
    return ToolOrchestrator(broker, materializer, plan_did=config.plan_did, agent_did=config.agent_did)


class MediaToolsService:
    def __init__(self, orchestrator: ToolOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def invoke(self, name: str, arguments: dict) -> ToolResponse:
        tool = TOOLS_BY_NAME.get(name)
        if tool is None:
            raise ValueError(f"unknown tool: {name}")
        parsed = tool.input_model.model_validate(arguments)
        if isinstance(parsed, PurchasePlanInput):
            return await self.orchestrator.purchase_plan(parsed.planDid)
        return await self.orchestrator.run(parsed.to_request())

    async def list_tools(self, payload, emit_event, req_id):
        return {"tools": [t.spec() for t in TOOLS]}

    async def call_tool(self, payload, emit_event, req_id):
        response = await self.invoke(payload["name"], payload.get("arguments") or {})
        return response.to_dict()

    def ops(self):
        return {"tools.list": self.list_tools, "tools.call": self.call_tool}
