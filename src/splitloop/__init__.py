"""
splitloop: foreach iteration stages for message pipelines.

A ForeachStage splits one message into an ordered sequence of sub-messages,
routes each through a nested chain of stages, and forwards the original
message once the iteration completes.
"""

__version__ = "0.1.0"
