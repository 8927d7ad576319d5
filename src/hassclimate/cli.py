"""Command-line interface for hassclimate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import orjson

from .const import DEFAULT_PORT, HubEvent
from .exceptions import HassClimateError
from .hub import ClimateHub
from .models import ClimateState
from .reconciler import parse_include_filter

_LOGGER = logging.getLogger(__name__)

TOKEN_ENV = "HASS_TOKEN"


def _fmt_temp(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}"


def _print_state(state: ClimateState) -> None:
    """Display one entity on a single line."""
    print(
        f"{state.entity_id} '{state.name}'  mode={state.hvac_mode} "
        f"act={state.action or '-'} cur={_fmt_temp(state.current_temperature)}  "
        f"tgt={state.target_summary}  fan={state.fan_mode or '-'}  "
        f"lim={state.min_temp_or_default:g}..{state.max_temp_or_default:g}  "
        f"step={state.step:g} {state.temperature_unit}"
    )


def _print_help() -> None:
    """Display available commands."""
    print("Commands:")
    print("  list                        Show known climate entities")
    print("  mode <eid> <mode>           Set HVAC mode (off|heat|cool|auto|...)")
    print("  temp <eid> <value>          Set single setpoint")
    print("  range <eid> <heat> <cool>   Set heat/cool setpoints")
    print("  fan <eid> <mode>            Set fan mode")
    print("  on <eid>                    Turn entity on")
    print("  off <eid>                   Turn entity off")
    print("  raw <json>                  Send raw JSON message")
    print("  ping                        Send ping")
    print("  quit                        Disconnect and exit")


def _parse_temp(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        print(f"Invalid temperature: {text}")
        return None


async def _handle_command(hub: ClimateHub, cmd: str, parts: list[str]) -> bool:
    """Handle a single interactive command.

    Returns False to quit.
    """
    name = parts[0].lower()
    if name in ("quit", "exit", "q"):
        return False

    if name == "list":
        climates = hub.climates
        if not climates:
            print("No climate entities known yet.")
        for _, state in sorted(climates.items()):
            _print_state(state)

    elif name == "mode" and len(parts) >= 3:
        print(f"Setting {parts[1]} mode to {parts[2]}")
        await hub.set_mode(parts[1], parts[2])

    elif name == "temp" and len(parts) >= 3:
        temp = _parse_temp(parts[2])
        if temp is not None:
            print(f"Setting {parts[1]} setpoint to {temp:g}")
            await hub.set_single_setpoint(parts[1], temp)

    elif name == "range" and len(parts) >= 4:
        heat = _parse_temp(parts[2])
        cool = _parse_temp(parts[3])
        if heat is not None and cool is not None:
            print(f"Setting {parts[1]} heat={heat:g}, cool={cool:g}")
            await hub.set_heat_cool_range(parts[1], heat, cool)

    elif name == "fan" and len(parts) >= 3:
        print(f"Setting {parts[1]} fan mode to {parts[2]}")
        await hub.set_fan_mode(parts[1], parts[2])

    elif name == "on" and len(parts) >= 2:
        print(f"Turning {parts[1]} on")
        await hub.turn_on(parts[1])

    elif name == "off" and len(parts) >= 2:
        print(f"Turning {parts[1]} off")
        await hub.turn_off(parts[1])

    elif name == "raw" and len(parts) >= 2:
        raw_json = cmd.strip()[4:].strip()
        try:
            msg = orjson.loads(raw_json)
        except orjson.JSONDecodeError as exc:
            print(f"Invalid JSON: {exc}")
        else:
            if isinstance(msg, dict):
                print(f"Sending: {orjson.dumps(msg).decode()}")
                await hub.connection.send_command(msg)
            else:
                print("Raw messages must be JSON objects")

    elif name == "ping":
        print("Sending ping")
        await hub.connection.send_command({"type": "ping"})

    elif name in ("help", "?"):
        _print_help()

    else:
        print("Unknown command. Type 'help' for available commands.")

    return True


def _register_printers(hub: ClimateHub) -> None:
    """Print every hub notification as it arrives."""
    hub.add_event_callback(
        HubEvent.CONNECTED, lambda: print("[OK] Authenticated with the hub.")
    )
    hub.add_event_callback(HubEvent.DISCONNECTED, lambda: print("[INF] Disconnected."))
    hub.add_event_callback(HubEvent.ERROR, lambda msg: print(f"[ERR] {msg}"))

    def on_added(entity_id: str, state: ClimateState) -> None:
        print(
            f"[ADD] {entity_id}  name='{state.name}'  mode={state.hvac_mode} "
            f"act={state.action or '-'} cur={_fmt_temp(state.current_temperature)} "
            f"tgt={state.target_summary}"
        )

    def on_changed(entity_id: str, state: ClimateState) -> None:
        print(
            f"[CHG] {entity_id}  mode={state.hvac_mode} act={state.action or '-'} "
            f"cur={_fmt_temp(state.current_temperature)} tgt={state.target_summary}"
        )

    hub.add_event_callback(HubEvent.ENTITY_ADDED, on_added)
    hub.add_event_callback(HubEvent.ENTITY_CHANGED, on_changed)
    hub.add_event_callback(HubEvent.ENTITY_REMOVED, lambda eid: print(f"[DEL] {eid}"))


async def _do_monitor(hub: ClimateHub) -> None:
    """Run monitoring mode with interactive command loop."""
    _register_printers(hub)
    print(f"\n=== MONITORING {hub.connection.url} ===")

    try:
        async with hub:
            print("Waiting for climates... type 'list' or 'help'.\n")
            loop = asyncio.get_running_loop()
            while True:
                try:
                    line = await loop.run_in_executor(None, sys.stdin.readline)
                except EOFError:
                    break
                if not line:
                    break
                cmd = line.strip()
                if not cmd:
                    continue
                try:
                    if not await _handle_command(hub, cmd, cmd.split()):
                        break
                except HassClimateError as exc:
                    print(f"Error: {exc}")

    except KeyboardInterrupt:
        pass

    print("\nDisconnected.")


def main() -> None:
    """Entry point for the hassclimate CLI."""
    parser = argparse.ArgumentParser(description="Climate Hub Monitor CLI")
    parser.add_argument("host", help="Hub host name or IP address")
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port (default: {DEFAULT_PORT})",
    )
    parser.add_argument("--tls", action="store_true", help="Connect with wss://")
    parser.add_argument(
        "--insecure", action="store_true", help="Skip TLS certificate verification"
    )
    parser.add_argument(
        "--token",
        default=os.environ.get(TOKEN_ENV),
        help=f"Long-lived access token (default: ${TOKEN_ENV})",
    )
    parser.add_argument(
        "--include",
        default=None,
        help="Comma separated entity ids or names to expose (default: all)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    args = parser.parse_args()

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.token:
        parser.error(f"an access token is required (--token or ${TOKEN_ENV})")

    hub = ClimateHub(
        args.host,
        args.token,
        args.port,
        use_tls=args.tls,
        verify_ssl=not args.insecure,
        include=parse_include_filter(args.include),
    )
    asyncio.run(_do_monitor(hub))
