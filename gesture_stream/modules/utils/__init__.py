"""Configuration, logging and performance utilities."""
from .config import Config
from .logger import setup_logging, DetectionLogger
from .performance_monitor import PerformanceMonitor

__all__ = ["Config", "setup_logging", "DetectionLogger", "PerformanceMonitor"]
