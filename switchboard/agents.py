"""Agent wiring: the orchestrator and its specialized sub-agents.

The orchestrator owns no tools of its own; it reaches the travel,
email and search agents through delegation tools. Concrete travel and
email tools talk to third-party services and are supplied by the caller
as ToolDispatchers.
"""

from __future__ import annotations

from switchboard.api.client import ModelClient
from switchboard.api.delegation import SubAgent
from switchboard.api.limits import ModelLimitsRegistry
from switchboard.api.runner import AgentRunner
from switchboard.api.tools import ToolDispatcher
from switchboard.config import Settings

ORCHESTRATOR_PROMPT = """\
You are an intelligent orchestrator agent that coordinates a team of \
specialized AI agents to answer user queries.

Your team consists of:

1. **Travel Agent** (delegate_to_travel_agent)
   - Searching for flights between cities (needs IATA codes and dates)
   - Finding hotels in a destination (needs city code and dates)
   - Recommending restaurants in a city
   - General travel planning advice

2. **Email Agent** (delegate_to_email_agent)
   - Reading, searching and summarizing emails
   - Sending and replying to emails

3. **Search Agent** (delegate_to_search_agent)
   - Current information, news, facts and general knowledge from the web

## How to use your team

- Analyze the user's query and determine which agent(s) are needed.
- Delegate sub-tasks with all necessary details. Call several agents for \
queries that span domains.
- Synthesize the results into one clear, well-structured response.
- Do not answer from memory when an agent can provide more accurate or \
up-to-date information.
- If one agent returns an error, mention it and provide what you can from \
the others.
"""

TRAVEL_PROMPT = """\
You are a professional travel planning assistant.

Help users plan trips by searching flights between cities, finding hotels, \
recommending restaurants and giving travel advice.

- Use IATA codes for airports (e.g., TUN for Tunis, CDG for Paris).
- Explain prices clearly with currency.
- Suggest alternatives if requested dates aren't available.
- Consider stated preferences and dietary restrictions for restaurants.
- Use the available tools whenever a request needs them.
"""

EMAIL_PROMPT = """\
You are an email assistant. You help users read, send, reply, search, \
and summarize emails.

- If a recipient name is given without an address, search for it first.
- Keep generated email content professional and concise.
- If something is unclear, say what is missing instead of guessing.
"""

SEARCH_PROMPT = """\
You are a helpful research assistant with access to a web search tool.

- Use "search" for public news, facts and current events.
- If you don't know something, search for it.
- Be direct, cite the sources you used, and stay focused on the question.
"""


def build_orchestrator(
    client: ModelClient,
    settings: Settings,
    limits: ModelLimitsRegistry,
    *,
    travel_tools: ToolDispatcher | None = None,
    email_tools: ToolDispatcher | None = None,
    search_tools: ToolDispatcher | None = None,
) -> AgentRunner:
    """Build the orchestrator with travel, email and search sub-agents."""

    def _runner(name: str, prompt: str, tools: ToolDispatcher | None) -> AgentRunner:
        return AgentRunner(
            name, prompt, client, settings, limits, dispatcher=tools
        )

    sub_agents = [
        SubAgent(
            tool_name="delegate_to_travel_agent",
            label="travel",
            description=(
                "Delegate travel-related tasks to the Travel Agent. Use this for: "
                "searching flights, finding hotels, recommending restaurants, "
                "and general travel planning."
            ),
            runner=_runner("travel", TRAVEL_PROMPT, travel_tools),
        ),
        SubAgent(
            tool_name="delegate_to_email_agent",
            label="email",
            description=(
                "Delegate email-related tasks to the Email Agent. Use this for: "
                "reading emails, searching emails, sending/replying to emails, "
                "and summarizing email threads."
            ),
            runner=_runner("email", EMAIL_PROMPT, email_tools),
        ),
        SubAgent(
            tool_name="delegate_to_search_agent",
            label="search",
            description=(
                "Delegate web search tasks to the Search Agent. Use this for: "
                "finding current news, facts, general knowledge, and any "
                "information that benefits from a web search."
            ),
            runner=_runner("search", SEARCH_PROMPT, search_tools),
        ),
    ]

    return AgentRunner(
        "orchestrator",
        ORCHESTRATOR_PROMPT,
        client,
        settings,
        limits,
        sub_agents=sub_agents,
    )
