"""HTTP transport for AgentHub."""
