"""
Prompts for the desired-state modeling agent.
"""

import json

from layersync.domain.ports.desired_state_generator import DesiredStatePrompt


class ModelingPrompts:
    """Prompts for generating the desired conceptual/logical/physical state."""

    @staticmethod
    def system_prompt() -> str:
        return " ".join(
            [
                "You are an expert enterprise data-modeling assistant.",
                "Create conceptual, logical, and physical data models from plain-language instructions.",
                "Respect naming rules: entities are singular nouns, logical/physical attribute names use snake_case.",
                "Ensure relationships include clear cardinalities.",
                "Only return JSON that conforms to the provided schema without additional commentary.",
            ]
        )

    @staticmethod
    def user_payload(prompt: DesiredStatePrompt) -> dict:
        return {
            "businessDescription": prompt.business_description,
            "instructions": prompt.instructions,
            "targetDatabase": prompt.target_database or "generic",
            "allowDrop": prompt.allow_drop,
            "existingModels": prompt.serialized_context,
        }

    @staticmethod
    def user_prompt(prompt: DesiredStatePrompt) -> str:
        """
        Build the user message: instructions followed by the request as JSON.

        Args:
            prompt: Business description, instructions and serialized family

        Returns:
            Formatted user message
        """
        return "\n\n".join(
            [
                "Business context and modeling request are provided below in JSON.",
                "Generate the final desired state for conceptual, logical, and physical models.",
                "Include thoughtfully chosen assumptions if details are missing.",
                json.dumps(ModelingPrompts.user_payload(prompt), indent=2),
            ]
        )
