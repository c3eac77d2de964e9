"""Live encoder configurator.

Configures encoder devices through their versioned shadow documents and
registers the resulting SRT streams with downstream delivery platforms.
"""

__version__ = "0.1.0"
