"""
Centralized prompt management for the modeling agent.
"""

from layersync.prompts.modeling import ModelingPrompts

__all__ = ["ModelingPrompts"]
