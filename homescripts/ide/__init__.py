"""
IDE settings sync.
"""
