"""Command line interface modules.

This package provides the command-line tools for:
- Starting the relay server
- Mapping command-line options onto the server configuration
- Logging setup and error reporting
"""
