"""AgentLink-AI.

This package wires an agent runtime to the outside world: it turns
provider-tagged model configuration into a uniform generation client, and it
keeps a cached set of live connections to MCP tool servers.

Core subpackages
----------------

- ``agentlink_ai.model_provider``:

  - ``ModelProviderFactory`` converts one ``ProviderConfig`` (Gemini, Vertex
    AI, OpenAI-compatible chat or responses) into a ``GenerationClient``
    backed by a Pydantic AI model.
  - Connectivity probes that issue one minimal real request.

- ``agentlink_ai.mcp_client``:

  - ``ToolConnectionManager`` owns the enabled ``ToolServerConfig`` set and a
    cache of ``ToolConnection`` handles (Pydantic AI MCP toolsets).
  - Connection tests and tool catalog discovery over short-lived MCP sessions.

- ``agentlink_ai.core``:

  - Settings, logging configuration, the injected HTTP transport provider and
    the async reader/writer lock shared by the manager.

Typical workflow
----------------

1. Build a ``TransportProvider`` (proxy aware) once at startup.
2. ``await manager.load_configs(configs)`` then ``await manager.initialize(lifetime)``.
3. ``factory.build_client(provider_config)`` for the generation client.
4. Hand ``client.model`` and ``[c.toolset for c in connections]`` to the
   agent runtime.

Every outbound HTTP call goes through the injected transport so a single
proxy policy applies to model traffic, credential refreshes and MCP servers.
"""
