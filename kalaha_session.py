"""Game session: players, undo log and the turn state machine."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Deque, Iterator, List, Optional, Tuple
import logging
import random

from kalaha_engine import Board, InvalidOperation, Move, SowResult, pretty_print
from kalaha_rules import ComputerStrength, Rules, Settings, recursion_depth
from kalaha_solver import search_best_move
from kalaha_telemetry import (
    GameOverEvent,
    MoveAppliedEvent,
    TelemetrySink,
    emit_dataclass_event,
)

logger = logging.getLogger(__name__)


class Species(Enum):
    HUMAN = "human"
    COMPUTER = "computer"


class Position(IntEnum):
    SOUTH = 0
    NORTH = 1


DEFAULT_NAMES = ("Player 1", "Player 2")


@dataclass
class Player:
    id: int
    position: Position
    name: str
    species: Species = Species.HUMAN
    strength: ComputerStrength = ComputerStrength.MEDIUM

    def is_computer(self) -> bool:
        return self.species == Species.COMPUTER

    @property
    def display_name(self) -> str:
        if self.is_computer():
            return f"Computer ({self.strength.name.capitalize()})"
        return self.name


class PlayerRegistry:
    """Exactly two player slots, indexed by player id."""

    MAX_PLAYERS = 2

    def __init__(self) -> None:
        self._players: List[Player] = []

    def create(
        self,
        name: str,
        species: Species = Species.HUMAN,
        strength: ComputerStrength = ComputerStrength.MEDIUM,
    ) -> Player:
        if len(self._players) >= self.MAX_PLAYERS:
            raise InvalidOperation("PlayerRegistry.create: only two players are allowed")
        player_id = len(self._players)
        player = Player(
            id=player_id,
            position=Position(player_id),
            name=name,
            species=species,
            strength=strength,
        )
        self._players.append(player)
        return player

    def opponent(self, player: Player) -> Player:
        return self[1 - player.id]

    def reset(self) -> None:
        self._players = []

    def __getitem__(self, player_id: int) -> Player:
        if player_id < 0 or player_id >= len(self._players):
            raise InvalidOperation(f"PlayerRegistry: no player with id {player_id}")
        return self._players[player_id]

    def __len__(self) -> int:
        return len(self._players)

    def __iter__(self) -> Iterator[Player]:
        return iter(self._players)


@dataclass
class UndoEntry:
    # Backward move that restores the board, and the player who moved.
    move: Move
    player: int


class UndoLog:
    def __init__(self) -> None:
        self._entries: Deque[UndoEntry] = deque()

    def push_normal(self, move: Move, player: int) -> None:
        self._entries.appendleft(UndoEntry(move.backward(), player))

    def push_follow_up(self, move: Move, player: int) -> None:
        """Merge ``move`` into the newest entry so one undo reverts both."""
        if not self._entries:
            raise InvalidOperation("UndoLog.push_follow_up: log is empty")
        front = self._entries[0]
        if front.player != player:
            raise InvalidOperation(
                f"UndoLog.push_follow_up: newest entry belongs to player {front.player}, not {player}"
            )
        front.move.prepend(move.backward())

    def has_entries(self) -> bool:
        return bool(self._entries)

    def front_player(self) -> Optional[int]:
        return self._entries[0].player if self._entries else None

    def pop_next(self) -> UndoEntry:
        if not self._entries:
            raise InvalidOperation("UndoLog.pop_next: log is empty")
        return self._entries.popleft()

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class GameStatus(Enum):
    ENDED = "ended"
    STARTED_NEW = "started_new"
    CONTINUED = "continued"
    RUNNING = "running"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class GameResult:
    # None on a draw.
    winner: Optional[int]
    store_south: int
    store_north: int

    @property
    def is_draw(self) -> bool:
        return self.winner is None


@dataclass(frozen=True)
class TurnDecision:
    # Player to move next; None once the game is over.
    player: Optional[Player]
    computer_to_move: bool
    extra_turn: bool
    game_over: bool
    collection: Optional[Move] = None
    result: Optional[GameResult] = None


@dataclass(frozen=True)
class UndoStep:
    move: Move
    player: Player
    continue_undo: bool


class GameSession:
    """Drives one game of Kalaha between two players.

    A turn is split at the points where a renderer may want to show the
    returned Move before going on: ``play_house`` sows,
    ``check_rules_after_move`` applies a capture and
    ``decide_who_is_next`` settles the turn. ``play_turn`` runs all three.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rules: Optional[Rules] = None,
        rng: Optional[random.Random] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
        alpha_beta: bool = False,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.rules = rules if rules is not None else Rules()
        self.rng = rng if rng is not None else random.Random()
        self.telemetry_sink = telemetry_sink
        self.alpha_beta = alpha_beta

        self.players = PlayerRegistry()
        for name in DEFAULT_NAMES:
            self.players.create(name)
        self.board = Board(self.settings.houses_per_player, self.settings.seeds_per_house)
        self.undo_log = UndoLog()
        self.status = GameStatus.ENDED

        self._player_who_is_first = 0
        self._current = 0
        self._may_move_again = True
        self._pending_sow: Optional[SowResult] = None
        self._pending_decision = False
        self._result: Optional[GameResult] = None

    # --- players ---

    @property
    def current_player(self) -> Player:
        return self.players[self._current]

    @property
    def player_who_is_first(self) -> Player:
        return self.players[self._player_who_is_first]

    def toggle_player_who_is_first(self) -> None:
        self._player_who_is_first = 1 - self._player_who_is_first

    def set_player_who_is_first(self, player_id: int) -> None:
        self._player_who_is_first = self.players[player_id].id

    def set_player_to_human(self, player_id: int) -> None:
        self.players[player_id].species = Species.HUMAN

    def set_player_to_computer(self, player_id: int, strength: ComputerStrength) -> None:
        player = self.players[player_id]
        player.species = Species.COMPUTER
        player.strength = ComputerStrength(strength)

    def player_name(self, player_id: int) -> str:
        return self.players[player_id].name

    def set_player_name(self, player_id: int, name: str) -> None:
        self.players[player_id].name = name

    # --- lifecycle ---

    def start_new_game(self) -> None:
        self.settings.validate()
        self.board.size_board(self.settings.houses_per_player, self.settings.seeds_per_house)
        self.undo_log.clear()
        self._current = self._player_who_is_first
        self._may_move_again = True
        self._pending_sow = None
        self._pending_decision = False
        self._result = None
        self.status = GameStatus.STARTED_NEW
        logger.info(
            "New game: %d houses, %d seeds, %s vs %s, %s starts",
            self.settings.houses_per_player,
            self.settings.seeds_per_house,
            self.players[0].display_name,
            self.players[1].display_name,
            self.current_player.display_name,
        )

    def start_or_continue(self) -> TurnDecision:
        if self.status not in (GameStatus.STARTED_NEW, GameStatus.CONTINUED):
            raise InvalidOperation(f"start_or_continue: game is {self.status.value}")
        logger.info("Game %s", "started" if self.status == GameStatus.STARTED_NEW else "continued")
        self.status = GameStatus.RUNNING
        if self._is_over():
            return self._finalize_result()
        return self._decision_for_current(extra_turn=False)

    def end_the_game(self) -> None:
        if self.status != GameStatus.ENDED:
            self.status = GameStatus.INTERRUPTED

    def continue_game(self) -> None:
        if self.status != GameStatus.INTERRUPTED:
            raise InvalidOperation(f"continue_game: game is {self.status.value}")
        self.status = GameStatus.CONTINUED

    def game_is_over(self) -> bool:
        return self.status == GameStatus.ENDED and self._result is not None

    def result(self) -> Optional[GameResult]:
        return self._result

    # --- turns ---

    def whose_turn(self) -> TurnDecision:
        self._require_running("whose_turn")
        return self._decision_for_current(extra_turn=False)

    def play_house(self, house: int) -> Move:
        self._require_running("play_house")
        if self._pending_sow is not None or self._pending_decision:
            raise InvalidOperation("play_house: previous move has not been settled")
        player = self._current
        if not self.board.is_selectable_house(player, house):
            raise InvalidOperation(f"play_house: house {house} of player {player} is not selectable")

        sow = self.board.sow(player, house, self.rules)
        if sow.move is None:
            raise InvalidOperation("play_house: sow did not record a move")
        self.undo_log.push_normal(sow.move, player)
        self._pending_sow = sow
        self._emit_move("sow", player, house, sow.move)
        logger.debug("%s plays house %d\n%s", self.current_player.display_name, house + 1, sow.move)
        return sow.move

    def check_rules_after_move(self) -> Optional[Move]:
        """Apply the extra-turn and capture rules to the last sow; return the capture Move if any."""
        sow = self._pending_sow
        if sow is None:
            raise InvalidOperation("check_rules_after_move: no move to check")
        player = self._current
        self._pending_sow = None
        self._pending_decision = True

        self._may_move_again = (
            self.rules.play_again_when_last_seed_in_own_store
            and self.board.player_has_non_empty_house(player)
            and sow.last_in_own_store
        )
        if self._may_move_again or not sow.last_in_empty_own_house:
            return None

        opposite_count = self.board.opposite_house(player, sow.last_house).seed_count
        permission = self.rules.decide_capture(opposite_count)
        if not permission.may_capture:
            return None
        move = self.board.capture_houses(player, sow.last_house, permission.may_capture_opponent_house)
        if move is None:
            raise InvalidOperation("check_rules_after_move: capture did not record a move")
        self.undo_log.push_follow_up(move, player)
        self._emit_move("capture", player, sow.last_house, move)
        logger.debug("%s captures\n%s", self.current_player.display_name, move)
        return move

    def decide_who_is_next(self) -> TurnDecision:
        if self._pending_sow is not None:
            self.check_rules_after_move()
        if not self._pending_decision:
            raise InvalidOperation("decide_who_is_next: no move to settle")
        self._pending_decision = False

        if self._is_over():
            return self._finalize_result()
        extra_turn = self._may_move_again
        if not extra_turn:
            self._current = 1 - self._current
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Next: %s\n%s", self.current_player.display_name, pretty_print(self.board))
        return self._decision_for_current(extra_turn=extra_turn)

    def play_turn(self, house: int) -> Tuple[Move, Optional[Move], TurnDecision]:
        sow_move = self.play_house(house)
        capture_move = self.check_rules_after_move()
        return sow_move, capture_move, self.decide_who_is_next()

    def compute_computer_move(self, interrupt_check: Optional[Callable[[], bool]] = None) -> int:
        self._require_running("compute_computer_move")
        player = self.current_player
        depth = recursion_depth(player.strength, self.board.houses_per_player)
        result = search_best_move(
            self.board,
            player.id,
            depth,
            self.rules,
            rng=self.rng,
            alpha_beta=self.alpha_beta,
            interrupt_check=interrupt_check,
            telemetry_sink=self.telemetry_sink,
        )
        logger.info(
            "%s chooses house %d (score %+d, %d nodes, %d ms)",
            player.display_name,
            result.best_move + 1,
            result.score,
            result.nodes,
            result.elapsed_ms,
        )
        return result.best_move

    # --- undo ---

    def undo_last_move(self) -> UndoStep:
        entry = self.undo_log.pop_next()
        self.board.apply_move(entry.move)
        self._current = entry.player
        self._may_move_again = True
        self._pending_sow = None
        self._pending_decision = False
        if self.status == GameStatus.ENDED:
            self.status = GameStatus.RUNNING
            self._result = None

        player = self.current_player
        continue_undo = player.is_computer() and self.undo_log.has_entries()
        self._emit_move("undo", player.id, None, entry.move)
        logger.debug("Undo, %s to move\n%s", player.display_name, entry.move)
        return UndoStep(move=entry.move, player=player, continue_undo=continue_undo)

    # --- internals ---

    def _require_running(self, operation: str) -> None:
        if self.status != GameStatus.RUNNING:
            raise InvalidOperation(f"{operation}: game is {self.status.value}")

    def _is_over(self) -> bool:
        return self.board.player_has_only_empty_houses(0) or self.board.player_has_only_empty_houses(1)

    def _decision_for_current(self, extra_turn: bool) -> TurnDecision:
        player = self.current_player
        return TurnDecision(
            player=player,
            computer_to_move=player.is_computer(),
            extra_turn=extra_turn,
            game_over=False,
        )

    def _finalize_result(self) -> TurnDecision:
        self.status = GameStatus.ENDED
        collection: Optional[Move] = None
        if self.rules.collect_remaining_seeds_at_end:
            player = self._current
            move = self.board.collect_remaining_seeds(player, 1 - player)
            if len(move) > 0:
                collection = move
                if self.undo_log.front_player() == player:
                    self.undo_log.push_follow_up(move, player)
                else:
                    self.undo_log.push_normal(move, player)
                self._emit_move("collect", player, None, move)
                logger.debug("Remaining seeds collected\n%s", move)

        south = self.board.store_of(Position.SOUTH).seed_count
        north = self.board.store_of(Position.NORTH).seed_count
        if south > north:
            winner: Optional[int] = Position.SOUTH
        elif north > south:
            winner = Position.NORTH
        else:
            winner = None
        self._result = GameResult(
            winner=None if winner is None else int(winner),
            store_south=south,
            store_north=north,
        )
        emit_dataclass_event(
            self.telemetry_sink,
            "game_over",
            GameOverEvent(winner=self._result.winner, store_south=south, store_north=north),
        )
        if winner is None:
            logger.info("Game over: draw %d:%d", south, north)
        else:
            logger.info("Game over: %s wins %d:%d", self.players[winner].display_name, south, north)
        return TurnDecision(
            player=None,
            computer_to_move=False,
            extra_turn=False,
            game_over=True,
            collection=collection,
            result=self._result,
        )

    def _emit_move(self, kind: str, player: int, house: Optional[int], move: Move) -> None:
        emit_dataclass_event(
            self.telemetry_sink,
            "move_applied",
            MoveAppliedEvent(
                kind=kind,
                player=player,
                house=house,
                movements=len(move),
                seeds=move.seeds_moved(),
            ),
        )
