"""
MCP tool layer.
"""
