#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base class for processing agents.
Scanner and Tagger inherit from this.
"""

from abc import ABC, abstractmethod
from typing import Any

from orchestrator.log import get_logger


class BaseAgent(ABC):
    """
    Abstract base class for processing agents.

    Agents are responsible for specific tasks in a run:
    - Scanner: Discover audio files and read their tags
    - Tagger: Look up, correct, decorate and rename one file
    """

    def __init__(self, config):
        """
        Initialize agent with configuration.

        Args:
            config: ConfigManager instance
        """
        self.config = config
        self.logger = get_logger()

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name identifier"""
        pass

    @abstractmethod
    def process(self, item: Any, **kwargs) -> Any:
        """
        Process a single item (file path).

        Returns:
            Agent-specific result
        """
        pass

    def log(self, message: str) -> None:
        """Log a message with agent name prefix"""
        self.logger.info(f"[{self.name}] {message}")

    def log_error(self, message: str) -> None:
        """Log an error message"""
        self.logger.error(f"[{self.name}] ERROR: {message}")

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return self.config.get(key, default)
