"""Entry point for hosting a Dice Train game."""

import argparse
import asyncio
import logging

from .config import DEFAULT_ROUNDS, MAX_PLAYERS, MIN_PLAYERS, AiSpeed, LobbyConfig
from .core.orchestrator import TurnOrchestrator
from .errors import DiceTrainError
from .game.machine import GameStateMachine
from .lobby.manager import LobbyEvent, LobbyManager
from .network.websocket_transport import WebSocketTransport
from .sync.game_sync import HostGameSync

logger = logging.getLogger("dicetrain")


async def run_host(args: argparse.Namespace) -> int:
    """Host a lobby, wait for the seats to fill, play the game, report standings."""
    transport = WebSocketTransport(
        host=args.host,
        port=args.port,
        ssl_cert=args.ssl_cert,
        ssl_key=args.ssl_key,
    )
    lobby = LobbyManager(transport)
    config = LobbyConfig(
        name=f"{args.name}'s Lobby",
        host_name=args.name,
        max_players=args.players,
        round_count=args.rounds,
        password=args.password,
        ai_speed=AiSpeed(args.ai_speed),
    )

    try:
        state = await lobby.create_lobby(config)
    except DiceTrainError as e:
        logger.error("Could not create lobby: %s", e)
        return 1

    print(f"Lobby code: {state.code}")
    print(f"Players connect to {transport.url}")

    for _ in range(args.bots):
        lobby.add_ai_player()

    roster_full = asyncio.Event()

    def on_update(lobby_state) -> None:
        if len(lobby_state.players) >= args.players:
            roster_full.set()

    lobby.events.subscribe(LobbyEvent.UPDATED, on_update)
    on_update(lobby.state)
    if not roster_full.is_set():
        print(f"Waiting for {args.players - len(lobby.state.players)} more player(s)...")
    await roster_full.wait()

    machine = GameStateMachine()
    sync = HostGameSync(transport, machine)
    orchestrator = TurnOrchestrator(
        sync,
        machine,
        ai_speed=config.ai_speed,
        autopilot={state.code},  # the host seat plays itself
    )
    lobby.events.subscribe(LobbyEvent.GAME_STARTED, orchestrator.begin)
    if lobby.start_game() is None:
        logger.error("Lobby could not start the game")
        await lobby.close_lobby()
        return 1

    try:
        standings = await orchestrator.wait_until_finished()
    finally:
        await orchestrator.stop()

    lobby.finish_game()
    print("Final standings:")
    for standing in standings or []:
        print(
            f"  {standing.rank}. {standing.name}: {standing.total_distance} miles, "
            f"{standing.gold} gold, {standing.train_cars} cars"
        )
    await lobby.close_lobby("Game over")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Dice Train game host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Host a four seat game with three AI opponents
  python -m dicetrain --bots 3

  # Wait for two remote players, password protected
  python -m dicetrain --players 3 --bots 0 --password secret

  # Run with SSL (WSS)
  python -m dicetrain --port 8443 --ssl-cert cert.pem --ssl-key key.pem
""",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host address to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port number to listen on (default: 8000)",
    )
    parser.add_argument(
        "--ssl-cert",
        dest="ssl_cert",
        help="Path to SSL certificate file (enables WSS)",
    )
    parser.add_argument(
        "--ssl-key",
        dest="ssl_key",
        help="Path to SSL private key file",
    )
    parser.add_argument("--name", default="Host", help="Host player name (default: Host)")
    parser.add_argument(
        "--players",
        type=int,
        default=4,
        help=f"Seats to fill before starting, {MIN_PLAYERS}-{MAX_PLAYERS} (default: 4)",
    )
    parser.add_argument(
        "--bots",
        type=int,
        default=3,
        help="AI players to add (default: 3)",
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=DEFAULT_ROUNDS,
        help=f"Number of rounds (default: {DEFAULT_ROUNDS})",
    )
    parser.add_argument("--password", help="Password remote players must give to join")
    parser.add_argument(
        "--ai-speed",
        dest="ai_speed",
        choices=[speed.value for speed in AiSpeed],
        default=AiSpeed.NORMAL.value,
        help="Pause between AI moves (default: normal)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    # Validate SSL arguments
    if (args.ssl_cert and not args.ssl_key) or (args.ssl_key and not args.ssl_cert):
        parser.error("Both --ssl-cert and --ssl-key must be provided together")
    if not MIN_PLAYERS <= args.players <= MAX_PLAYERS:
        parser.error(f"--players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    if not 0 <= args.bots < args.players:
        parser.error("--bots must leave a seat for the host")
    if args.rounds < 1:
        parser.error("--rounds must be at least 1")

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    raise SystemExit(asyncio.run(run_host(args)))


if __name__ == "__main__":
    main()
