"""Portfolio Analysis Workflow — three agents in sequential orchestration."""
from .workflow import (
    REQUEST_PREFIX,
    WORKFLOW_NAME,
    create_advisor_agent,
    create_portfolio_workflow,
    create_research_agent,
    create_risk_agent,
    portfolio_request,
)

__all__ = [
    "REQUEST_PREFIX",
    "WORKFLOW_NAME",
    "create_advisor_agent",
    "create_portfolio_workflow",
    "create_research_agent",
    "create_risk_agent",
    "portfolio_request",
]
