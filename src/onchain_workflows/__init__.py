"""On-chain workflow automation.

Describe recurring on-chain automations in memory, authorise each job for a
delegated executor, and store them as portable documents:
- typed workflows, jobs, steps and triggers with fluent builders
- minimal per-job policy scopes for session credentials
- lossless serialization through a text wire format
- validation, storage adapters and concurrent execution
"""

__version__ = "0.1.0"

from onchain_workflows.chains import ChainConfig, ChainId, ChainRegistry
from onchain_workflows.core.config import WorkflowConfig

__all__ = ["__version__", "ChainConfig", "ChainId", "ChainRegistry", "WorkflowConfig"]
