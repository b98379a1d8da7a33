"""Water rate calculation engine — pure Python, no UI."""

from ratemodel.orchestrator import calculate_all
from ratemodel.projection import project
from ratemodel.recommend import recommend

__all__ = ["calculate_all", "project", "recommend"]
