"""Agents package — the Analyze, Translate and Edit stage agents."""

from agents.base_agent import BaseAgent
from agents.analyzer_agent import AnalyzerAgent
from agents.translator_agent import TranslatorAgent
from agents.editor_agent import EditorAgent

__all__ = [
    "BaseAgent",
    "AnalyzerAgent",
    "TranslatorAgent",
    "EditorAgent",
]
