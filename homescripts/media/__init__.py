"""
Media server backup/cleanup and media conversion.
"""
