"""
avd-rollout - Azure Virtual Desktop host pool image rollout

Detects a freshly published session host image, deploys a host pool for it
and restarts every session host so it picks up the new image.
"""

__version__ = "1.0.0"
__author__ = "Platform Engineering"

from .config_loader import ConfigLoader
from .validator import ConfigValidator
from .image_watcher import ImageWatcher
from .parameter_builder import ParameterBuilder
from .deployer import DeploymentExecutor
from .desktop_config import DesktopConfigurator
from .restart import RollingRestartOrchestrator
from .pipeline import RolloutPipeline
from .session import AzureSession

__all__ = [
    "ConfigLoader",
    "ConfigValidator",
    "ImageWatcher",
    "ParameterBuilder",
    "DeploymentExecutor",
    "DesktopConfigurator",
    "RollingRestartOrchestrator",
    "RolloutPipeline",
    "AzureSession",
]
