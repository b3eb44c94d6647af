from .engine import ReplaceEngine
from .patterns import build_replacers, compile_pattern
from .rewrite import RewriteResult, ValueRewriter

__all__ = [
    "ReplaceEngine",
    "RewriteResult",
    "ValueRewriter",
    "build_replacers",
    "compile_pattern",
]
