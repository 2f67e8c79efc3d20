from .config import DispatchConfig, get_dispatch_config

__all__ = ["DispatchConfig", "get_dispatch_config"]
