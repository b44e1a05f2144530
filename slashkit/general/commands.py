"""General commands: ping, help, shutdown."""

import math
import time

import structlog

from ..commands.base import BaseCommand
from ..decorators import availability, command, cooldown, owner_only
from ..interaction import Interaction

logger = structlog.get_logger("slashkit.commands")


def latency_label(ms: float) -> str:
    if ms < 100:
        return "Excellent"
    if ms < 200:
        return "Good"
    if ms < 500:
        return "Fair"
    return "Poor"


@command("ping", "Check the bot latency and response time")
@cooldown(3000)
@availability(integration_types=[0, 1], dm_permission=True)
class PingCommand(BaseCommand):

    async def execute(self, interaction: Interaction) -> None:
        started = time.monotonic()
        await interaction.reply("Pinging...")
        round_trip = (time.monotonic() - started) * 1000

        lines = [
            "Pong!",
            f"Round trip: {round_trip:.0f}ms ({latency_label(round_trip)})",
        ]
        # Gateway heartbeat latency, in seconds, when a live client is wired in
        gateway_latency = getattr(self.ctx.services.get("client"), "latency", None)
        if isinstance(gateway_latency, (int, float)) and not math.isnan(gateway_latency):
            lines.append(f"Gateway: {gateway_latency * 1000:.0f}ms")
        await interaction.edit_reply("\n".join(lines))


@command("help", "Display all available commands and bot information")
@cooldown(5000)
@availability(integration_types=[0, 1], dm_permission=True)
class HelpCommand(BaseCommand):

    async def execute(self, interaction: Interaction) -> None:
        commands = self.ctx.router.commands
        body = "\n".join(c.get_help_line() for c in commands) or "No commands available"
        await interaction.reply(
            f"**Commands**\n{body}\n\nTotal commands: {len(commands)}",
            ephemeral=True,
        )


@command("shutdown", "Shut the bot down gracefully")
@owner_only()
class ShutdownCommand(BaseCommand):
    """Owner-only. Replies first, then asks the bot to stop."""

    async def execute(self, interaction: Interaction) -> None:
        await interaction.reply("Shutting down...", ephemeral=True)
        logger.warning("shutdown_requested", user=interaction.user_id)
        if self.ctx.request_shutdown is not None:
            await self.ctx.request_shutdown()
