"""
qaflow
======
Phased QA-automation workflows.

The engine (qaflow.engine) sequences declarative agent tasks, fans them out,
evaluates quality gates and pauses for human review. The processes
(qaflow.processes) are the concrete QA workflows built on top of it.
"""

__version__ = "0.1.0"
