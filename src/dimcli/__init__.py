"""
dim-cli - command line tools suite for the DIM ecosystem.

The core discovers command plugins, composes their options with the
global flags, gates execution behind the data store bootstrap and
dispatches one command per process.
"""

__version__ = "1.0.0"
