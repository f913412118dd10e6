"""
breakwater - gated, deadline-bounded connection bootstrap.

- breakwater.core: errors, logging, configuration, contexts, connection factory
- breakwater.execution: FailureGate and BootstrapOrchestrator
- breakwater.ops: post-connection setup work
- breakwater.cli: Typer entry point
"""

__version__ = "0.1.0"

from breakwater.core import *  # noqa
