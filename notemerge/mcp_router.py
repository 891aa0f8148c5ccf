"""Shared router that MCP tool modules register their routes on."""

from __future__ import annotations

from fastapi import APIRouter

mcp_router = APIRouter()
