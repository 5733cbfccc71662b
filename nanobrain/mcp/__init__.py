#!/usr/bin/env python3
"""
nanobrain MCP Tool Server

Exposes the memory store, credit-weighted search, outcome feedback and
lifecycle maintenance as Model Context Protocol tools so an agent can use
its long-lived memory over stdio.

The MCP SDK is an optional extra: pip install 'nanobrain[mcp]'.
"""
