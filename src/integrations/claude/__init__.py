"""Claude integration module for icebreaker generation."""

from src.integrations.claude.icebreaker_client import IcebreakerClient, IcebreakerGenerationError

__all__ = ["IcebreakerClient", "IcebreakerGenerationError"]
