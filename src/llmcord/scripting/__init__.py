from .capabilities import ModelCapability, build_capabilities, join_values
from .engine import ScriptEngine, ScriptState
from .loader import CompiledScript, compile_script
from .source import extract_code_block

__all__ = [
    "CompiledScript",
    "ModelCapability",
    "ScriptEngine",
    "ScriptState",
    "build_capabilities",
    "compile_script",
    "extract_code_block",
    "join_values",
]
