from .base import HandlerContext
from .execute import handle_execute_command, handle_execute_message_command
from .prompt import handle_prompt_command

__all__ = [
    "HandlerContext",
    "handle_execute_command",
    "handle_execute_message_command",
    "handle_prompt_command",
]
