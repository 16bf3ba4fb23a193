"""
Default command plugin directory.

Every ``*.py`` module placed here (except ``_``-prefixed ones) is picked up
as a command plugin and must export a ``Command`` class. Point
``DIMCLI_PLUGIN_DIR`` at another directory to load plugins from elsewhere.
"""
