"""
Integration tests - components wired together through AgentPlatform.

Test files:
- test_link_expansion_flow.py: link fetch, summary and chat over mocked HTTP
"""
