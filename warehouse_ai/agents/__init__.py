from .base import BaseAgent, Run
from .location import LocationAgent
from .summarizer import SummarizerAgent

__all__ = ["BaseAgent", "Run", "LocationAgent", "SummarizerAgent"]
