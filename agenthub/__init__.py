"""AgentHub - multi-agent chat backend.

Persona agents answer through a shared tool-calling engine with per-
conversation sessions, long-term summaries and model failover.
"""

__version__ = "0.1.0"
