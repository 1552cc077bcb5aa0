"""
observatory-deploy - release cutover tooling for the observatory GitHub App
"""

__version__ = "0.1.0"

from .bare_metal import BareMetalDeployer
from .container import ContainerDeployer
from .errors import DeployError

__all__ = ["BareMetalDeployer", "ContainerDeployer", "DeployError"]
