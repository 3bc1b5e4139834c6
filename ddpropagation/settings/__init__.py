from .propagation import PropagationEnvConfig
from .propagation import PropagatorConfig


__all__ = ["PropagationEnvConfig", "PropagatorConfig"]
