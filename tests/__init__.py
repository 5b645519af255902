"""
Test suite for toolflow.

Demonstrates testing patterns for Pydantic-based architectures:
- Domain logic tests (not validation tests)
- Fakes for tools and completion models instead of live providers
- Business rule enforcement
- Integration tests for the HTTP surface
"""
