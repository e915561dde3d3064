# wireflow/__init__.py
"""
Wireflow - workflow orchestration and self-iteration engine for
agent-produced wireframe artifacts.
"""

__version__ = "1.0.0"
