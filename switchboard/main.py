"""Process wiring.

Builds components in dependency order:
  Settings -> ModelClient -> ModelLimitsRegistry -> tools -> agents

The limits registry is created once here and shared read-only by every
agent. Each concurrent user session calls
components["orchestrator"].run_agent(...) with its own history and
callbacks; nothing else is shared between sessions.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from switchboard.agents import build_orchestrator
from switchboard.api.client import ModelClient
from switchboard.api.limits import ModelLimitsRegistry
from switchboard.api.tools import ToolDispatcher
from switchboard.api.web_tools import register_web_tools
from switchboard.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


async def create_components(
    settings: Settings,
    *,
    travel_tools: ToolDispatcher | None = None,
    email_tools: ToolDispatcher | None = None,
) -> dict[str, Any]:
    """Initialize all components. Pair with shutdown()."""
    client = ModelClient(settings)
    await client.start()

    limits = ModelLimitsRegistry()

    # Tools get their own client: no model API credentials on it.
    tools_http = httpx.AsyncClient(
        timeout=httpx.Timeout(connect=10, read=30, write=10, pool=10),
    )
    search_tools = ToolDispatcher()
    register_web_tools(search_tools, settings, tools_http)

    orchestrator = build_orchestrator(
        client,
        settings,
        limits,
        travel_tools=travel_tools,
        email_tools=email_tools,
        search_tools=search_tools,
    )

    logger.info(
        "Switchboard ready: model=%s summary_model=%s max_steps=%d",
        settings.model, settings.summary_model, settings.max_steps,
    )
    if not settings.tavily_api_key:
        logger.warning("TAVILY_API_KEY not set -- search agent cannot search")

    return {
        "settings": settings,
        "client": client,
        "limits": limits,
        "tools_http": tools_http,
        "orchestrator": orchestrator,
    }


async def shutdown(components: dict[str, Any]) -> None:
    """Close HTTP clients created by create_components()."""
    await components["tools_http"].aclose()
    await components["client"].close()
    logger.info("Switchboard shut down")
