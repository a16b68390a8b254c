from .init import ColoredFormatter, init

__all__ = ["init", "ColoredFormatter"]
