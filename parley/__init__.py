"""
Parley - Streaming LLM and tool orchestration core for a voice assistant

This is the root package for Parley, containing shared utilities and the
assistant engine that talks to hosted language models.

Core modules:
- utils: Environment parsing helpers shared across the package
- assistant: Streaming exchange engine, tool routing and capability gating
"""

__version__ = "0.4.2"
