"""Configuration management."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

# Drug Dealer, Unmet Needs and Pharma Tactics automations
DEFAULT_WORKFLOWS = (
    "wDKvuLQED4xTE5cO:Drug Dealer,"
    "8sboTwR84NFx1ebJ:Unmet Needs,"
    "wnCh8wRVCTCJq9oO:Pharma Tactics"
)


@dataclass
class StoreConfig:
    """Hosted relational store configuration."""
    url: str        # project URL, e.g. https://<ref>.supabase.co
    api_key: str    # anon key
    timeout: float = 30.0


@dataclass
class WorkflowDefinition:
    """A workflow automation whose executions are tracked."""
    id: str
    name: str


@dataclass
class ProxyConfig:
    """Workflow-automation relay configuration."""
    url: str        # relay endpoint accepting {path, method}
    api_key: str    # bearer token for the relay (not the upstream key)
    workflows: List[WorkflowDefinition] = field(default_factory=list)
    timeout: float = 30.0


@dataclass
class PollingConfig:
    """Poll intervals, in seconds."""
    medications_seconds: float = 30.0
    unmet_needs_seconds: float = 30.0
    tactics_seconds: float = 30.0
    workflow_seconds: float = 10.0


@dataclass
class LLMConfig:
    """LLM API configuration (area classification)."""
    provider: str         # "openai" or "generic_http"
    api_key: Optional[str]
    model: str
    base_url: Optional[str]
    max_tokens: int = 10
    temperature: float = 0.1

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class AppConfig:
    """Complete application configuration."""
    db_path: str
    user_email: Optional[str]
    store: StoreConfig
    proxy: ProxyConfig
    polling: PollingConfig
    llm: LLMConfig


DEFAULT_DB_PATH = "medistream_state.db"


def get_db_path() -> str:
    """Local state path; needs none of the remote settings."""
    return os.getenv("MEDISTREAM_DB_PATH", DEFAULT_DB_PATH)


def _parse_list_env(key: str, default: List[str]) -> List[str]:
    """Parse comma-separated list from environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_workflows(items: List[str]) -> List[WorkflowDefinition]:
    """Parse ``id:Name`` pairs; a bare id is its own name."""
    workflows = []
    for item in items:
        workflow_id, _, name = item.partition(":")
        workflow_id = workflow_id.strip()
        if workflow_id:
            workflows.append(WorkflowDefinition(id=workflow_id, name=name.strip() or workflow_id))
    return workflows


def _float_env(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}")


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.

    Raises:
        ValueError: If required configuration values are missing or malformed.
    """
    store_url = (os.getenv("SUPABASE_URL") or "").rstrip("/")
    store_key = os.getenv("SUPABASE_ANON_KEY")

    missing = []
    if not store_url:
        missing.append("SUPABASE_URL")
    if not store_key:
        missing.append("SUPABASE_ANON_KEY")
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    timeout = _float_env("HTTP_TIMEOUT_SECONDS", 30.0)

    proxy_url = os.getenv("WORKFLOW_PROXY_URL") or f"{store_url}/functions/v1/n8n-proxy"
    workflows = _parse_workflows(_parse_list_env("WORKFLOWS", DEFAULT_WORKFLOWS.split(",")))

    polling = PollingConfig(
        medications_seconds=_float_env("MEDICATIONS_POLL_SECONDS", 30.0),
        unmet_needs_seconds=_float_env("UNMET_NEEDS_POLL_SECONDS", 30.0),
        tactics_seconds=_float_env("TACTICS_POLL_SECONDS", 30.0),
        workflow_seconds=_float_env("WORKFLOW_POLL_SECONDS", 10.0),
    )
    for name, seconds in vars(polling).items():
        if seconds <= 0:
            raise ValueError(f"Poll interval {name} must be positive, got {seconds}")

    return AppConfig(
        db_path=get_db_path(),
        user_email=os.getenv("MEDISTREAM_USER_EMAIL") or None,
        store=StoreConfig(
            url=store_url,
            api_key=store_key,
            timeout=timeout,
        ),
        proxy=ProxyConfig(
            url=proxy_url,
            api_key=os.getenv("WORKFLOW_PROXY_KEY") or store_key,
            workflows=workflows,
            timeout=timeout,
        ),
        polling=polling,
        llm=LLMConfig(
            provider=os.getenv("LLM_PROVIDER", "openai"),
            api_key=os.getenv("LLM_API_KEY") or None,
            model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            base_url=os.getenv("LLM_BASE_URL") or None,
        ),
    )
