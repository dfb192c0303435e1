"""
Package updates and installed-application listing.
"""
