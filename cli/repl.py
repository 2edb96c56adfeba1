"""
CardSwap Interactive REPL
=========================

Terminal front-end for one card-swap session.

Usage:
  python3 -m cardswap repl
"""

import json
from typing import Optional

from cardswap.config import CardSwapConfig, get_config
from cardswap.session import SessionController, SessionState

from .commands import CommandHandler
from .ui import SessionUI, create_ui

BUSY_COMMANDS = {"generate": "Generating card...", "refine": "Refining card..."}


class CardSwapREPL:
    """Interactive REPL for a card-swap session."""

    def __init__(
        self,
        config: Optional[CardSwapConfig] = None,
        controller: Optional[SessionController] = None,
        ui: Optional[SessionUI] = None,
    ):
        self.config = config or get_config()
        self.controller = controller or SessionController(self.config)
        self.handler = CommandHandler(self.controller)
        self.ui = ui or create_ui()
        self.running = False
        self.controller.subscribe(self._on_state)

    def _on_state(self, state: SessionState):
        if not state.busy:
            self.ui.stop_spinner()

    async def initialize(self):
        """Discover a credential before the first prompt."""
        state = await self.controller.initialize()
        if not state.credential_present:
            self.ui.print_warning("No API key found. Enter one with: key <API key>")

    async def run(self):
        """Run the interactive REPL."""
        self.running = True
        self.ui.print_banner(self.config.variant, self.controller.cost_display())

        while self.running:
            try:
                line = self.ui.prompt(self.controller.state)
                cmd, _ = self.handler.parse_command(line)

                if cmd in BUSY_COMMANDS:
                    self.ui.start_spinner(BUSY_COMMANDS[cmd])
                try:
                    result = await self.handler.execute(line)
                finally:
                    self.ui.stop_spinner()

                if cmd == "help":
                    self.ui.print_help()
                elif cmd == "status":
                    self.ui.print_state(self.controller.state)
                elif result.message:
                    if result.success:
                        self.ui.print_success(result.message)
                    else:
                        self.ui.print_error(result.message)
                        if result.data and result.data.get("error", {}).get("detail"):
                            self.ui.print(json.dumps(result.data["error"], ensure_ascii=False), style="dim")

                if not result.continue_repl:
                    self.running = False

            except KeyboardInterrupt:
                self.ui.print("\nUse 'quit' to exit.")
            except EOFError:
                self.running = False
