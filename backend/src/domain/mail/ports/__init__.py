from .forward_port import ForwardPort

__all__ = ["ForwardPort"]
