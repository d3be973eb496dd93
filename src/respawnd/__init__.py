"""respawnd: a tiny init for a fixed set of long-running daemons."""
from .config import ProcessSpec
from .config import SupervisorSettings
from .supervisor import Supervisor

__all__ = ["ProcessSpec", "Supervisor", "SupervisorSettings"]
