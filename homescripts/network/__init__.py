"""
Network automation.
"""
