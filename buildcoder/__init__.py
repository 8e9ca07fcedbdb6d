# buildcoder/__init__.py
"""BuildCoder - command line front end of the build agent."""

__version__ = "0.1.0"
