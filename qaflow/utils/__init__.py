"""
Utility Functions
=================
Schema validation and file-exchange helpers shared by the engine.
"""
