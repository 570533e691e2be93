"""
Bot front-ends: Slack Socket Mode and an interactive console.
"""
