"""
REPL Command Handlers
Map REPL command lines onto SessionController actions.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from cardswap.session import SessionController, SessionState, Slot


@dataclass
class CommandResult:
    """Result of a command execution."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    continue_repl: bool = True


class CommandHandler:
    """Handle REPL commands for a card-swap session."""

    def __init__(self, controller: SessionController):
        self.controller = controller
        self._commands: Dict[str, Callable] = {
            "key": self.cmd_key,
            "select-key": self.cmd_select_key,
            "clear-key": self.cmd_clear_key,
            "reference": self.cmd_reference,
            "character": self.cmd_character,
            "drop": self.cmd_drop,
            "remove": self.cmd_remove,
            "name": self.cmd_name,
            "pose": self.cmd_pose,
            "generate": self.cmd_generate,
            "refine": self.cmd_refine,
            "download": self.cmd_download,
            "status": self.cmd_status,
            "cost": self.cmd_cost,
            "help": self.cmd_help,
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
        }

    @property
    def state(self) -> SessionState:
        return self.controller.state

    def parse_command(self, line: str) -> tuple[str, str]:
        """Parse a command line into command and arguments."""
        line = line.strip()
        if not line:
            return "", ""

        parts = line.split(maxsplit=1)
        cmd = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ""
        return cmd, args

    async def execute(self, line: str) -> CommandResult:
        """Execute a command line."""
        cmd, args = self.parse_command(line)

        if not cmd:
            return CommandResult(True, "")

        if cmd not in self._commands:
            return CommandResult(
                False,
                f"Unknown command: {cmd}. Type 'help' for available commands."
            )

        handler = self._commands[cmd]
        return await handler(args)

    def _result(self, state: SessionState, ok_message: str, data: Optional[Dict[str, Any]] = None) -> CommandResult:
        """Turn the post-action state into a result; the error overlay wins."""
        if state.error is not None:
            return CommandResult(False, state.error.message, {"error": state.error.to_dict()})
        return CommandResult(True, ok_message, data)

    # --- Credential Commands ---

    async def cmd_key(self, args: str) -> CommandResult:
        state = self.controller.submit_manual_key(args)
        return self._result(state, "API key stored.")

    async def cmd_select_key(self, args: str) -> CommandResult:
        state = await self.controller.select_host_key()
        return self._result(state, "Host key selected.")

    async def cmd_clear_key(self, args: str) -> CommandResult:
        self.controller.clear_credential()
        return CommandResult(True, "API key cleared.")

    # --- Input Commands ---

    async def _load(self, slot: Slot, path: str, dropped: bool = False) -> CommandResult:
        if not path:
            return CommandResult(False, f"Usage: {slot.value} <path>")

        path = path.strip().strip('"')
        if dropped:
            file_path = Path(path).expanduser()
            mime_type = mimetypes.guess_type(file_path.name)[0]
            try:
                data = file_path.read_bytes()
            except OSError as e:
                return CommandResult(False, f"Cannot read {file_path}: {e}")
            before = self.state
            state = self.controller.load_image(slot, data, mime_type, file_path.name, dropped=True)
            if state is before:
                return CommandResult(False, f"Ignored drop: {file_path.name} is not an image ({mime_type}).")
        else:
            state = self.controller.load_image_file(slot, path)

        asset = state.image(slot)
        if state.error is not None or asset is None:
            return self._result(state, "")
        msg = f"{slot.value.title()} loaded: {asset.width}x{asset.height} {asset.mime_type}"
        if slot == Slot.REFERENCE:
            msg += f"\n  Aspect ratio: {state.aspect_ratio.value}"
        return CommandResult(True, msg, asset.describe())

    async def cmd_reference(self, args: str) -> CommandResult:
        return await self._load(Slot.REFERENCE, args)

    async def cmd_character(self, args: str) -> CommandResult:
        return await self._load(Slot.CHARACTER, args)

    async def cmd_drop(self, args: str) -> CommandResult:
        parts = args.split(maxsplit=1)
        if len(parts) != 2 or parts[0] not in (Slot.REFERENCE.value, Slot.CHARACTER.value):
            return CommandResult(False, "Usage: drop <reference|character> <path>")
        return await self._load(Slot(parts[0]), parts[1], dropped=True)

    async def cmd_remove(self, args: str) -> CommandResult:
        slot = args.strip().lower()
        if slot not in (Slot.REFERENCE.value, Slot.CHARACTER.value):
            return CommandResult(False, "Usage: remove <reference|character>")
        self.controller.remove_image(slot)
        return CommandResult(True, f"{slot.title()} removed.")

    async def cmd_name(self, args: str) -> CommandResult:
        self.controller.update_inputs(character_name=args.strip())
        return CommandResult(True, f"Character name: {args.strip() or '(blank)'}")

    async def cmd_pose(self, args: str) -> CommandResult:
        self.controller.update_inputs(user_instructions=args.strip())
        return CommandResult(True, f"Pose/effect: {args.strip() or '(default)'}")

    # --- Generation Commands ---

    async def cmd_generate(self, args: str) -> CommandResult:
        if self.state.busy:
            return CommandResult(False, "A request is already in progress.")
        state = await self.controller.generate()
        return self._result(state, "Card generated. Use 'refine <instruction>' or 'download'.")

    async def cmd_refine(self, args: str) -> CommandResult:
        if self.state.busy:
            return CommandResult(False, "A request is already in progress.")
        state = await self.controller.refine(args)
        return self._result(state, "Card refined.")

    async def cmd_download(self, args: str) -> CommandResult:
        try:
            path = self.controller.save_generated_image(args.strip() or None)
        except OSError as e:
            return CommandResult(False, f"Cannot save image: {e}")
        if path is None:
            return CommandResult(False, "No generated image yet.")
        return CommandResult(True, f"Saved: {path}", {"path": str(path)})

    # --- Other Commands ---

    async def cmd_status(self, args: str) -> CommandResult:
        return CommandResult(True, "", self.state.to_dict())

    async def cmd_cost(self, args: str) -> CommandResult:
        display = self.controller.cost_display()
        if display is None:
            return CommandResult(True, "Cost display is disabled for this variant.")
        return CommandResult(True, display)

    async def cmd_help(self, args: str) -> CommandResult:
        return CommandResult(True, "")

    async def cmd_quit(self, args: str) -> CommandResult:
        return CommandResult(True, "Goodbye.", continue_repl=False)
