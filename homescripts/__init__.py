"""
Home Scripts

Personal automation scripts: IDE settings sync, media-server backup and
cleanup, package updates, installed-application listing, dynamic DNS and
media conversion.
"""
__version__ = "1.4.0"
