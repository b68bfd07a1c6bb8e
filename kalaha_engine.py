"""Board model and sowing rules for Kalaha."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from kalaha_rules import Rules


class KalahaError(Exception):
    """Base class for engine contract violations."""


class InvalidOperation(KalahaError, RuntimeError):
    pass


class IndexOutOfRange(KalahaError, IndexError):
    pass


class InvalidArgument(KalahaError, ValueError):
    pass


class Pit:
    __slots__ = ("_seeds",)

    def __init__(self, seeds: int = 0) -> None:
        if seeds < 0:
            raise InvalidArgument(f"Pit: negative seed count {seeds}")
        self._seeds = seeds

    @property
    def seed_count(self) -> int:
        return self._seeds

    def add_seed(self) -> None:
        self._seeds += 1

    def add_seeds(self, count: int) -> None:
        if count < 0:
            raise InvalidArgument(f"Pit.add_seeds: negative count {count}")
        self._seeds += count

    def remove_seed(self) -> None:
        if self._seeds <= 0:
            raise InvalidOperation("Pit.remove_seed: trying to remove a seed from an empty pit")
        self._seeds -= 1

    def remove_seeds(self, count: int) -> None:
        if count < 0:
            raise InvalidArgument(f"Pit.remove_seeds: negative count {count}")
        if self._seeds < count:
            raise InvalidOperation(
                f"Pit.remove_seeds: pit holds {self._seeds} seeds, cannot remove {count}"
            )
        self._seeds -= count

    def remove_all(self) -> None:
        self._seeds = 0

    def is_empty(self) -> bool:
        return self._seeds == 0

    def contains_a_seed(self) -> bool:
        return self._seeds > 0

    def __repr__(self) -> str:
        return f"Pit({self._seeds})"


@dataclass(frozen=True)
class SeedMovement:
    from_index: int
    to_index: int
    count: int

    def reversed(self) -> "SeedMovement":
        return SeedMovement(self.to_index, self.from_index, self.count)

    def __str__(self) -> str:
        suffix = "" if self.count == 1 else "s"
        return f"{self.from_index} --> {self.to_index}: {self.count} seed{suffix}"


class Move:
    """Ordered seed movements that make up one logical action on the board.

    Replaying the movements in order reproduces the board mutation. The
    backward move (each movement reversed, list order reversed) undoes it.
    """

    def __init__(self, movements: Optional[Sequence[SeedMovement]] = None) -> None:
        self._movements: List[SeedMovement] = list(movements) if movements else []

    def add(self, movement: SeedMovement) -> None:
        self._movements.append(movement)

    def add_to_front(self, movement: SeedMovement) -> None:
        self._movements.insert(0, movement)

    def prepend(self, other: "Move") -> None:
        """Put all movements of ``other`` in front of this move, keeping their order."""
        self._movements[0:0] = other.movements

    def backward(self) -> "Move":
        return Move([movement.reversed() for movement in reversed(self._movements)])

    @property
    def movements(self) -> Tuple[SeedMovement, ...]:
        return tuple(self._movements)

    def seeds_moved(self) -> int:
        return sum(movement.count for movement in self._movements)

    def __len__(self) -> int:
        return len(self._movements)

    def __iter__(self) -> Iterator[SeedMovement]:
        return iter(self._movements)

    def __getitem__(self, position: int) -> SeedMovement:
        return self._movements[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Move):
            return NotImplemented
        return self._movements == other._movements

    def __repr__(self) -> str:
        return f"Move({self._movements!r})"

    def __str__(self) -> str:
        lines = ["Move:"]
        lines.extend(f"    {movement}" for movement in self._movements)
        return "\n".join(lines)


@dataclass(frozen=True)
class SowResult:
    move: Optional[Move]
    last_in_own_store: bool
    last_in_empty_own_house: bool
    # House index (0-based, mover's side) of the empty own house; -1 otherwise.
    last_house: int
    last_pit: int
    seeds_sown: int
    clockwise: bool


class Board:
    """All pits of both players in one flat ring.

    Layout for ``H`` houses per player::

        [0, H)          player 0 houses
        H               player 0 store
        [H+1, 2H+1)     player 1 houses
        2H+1            player 1 store

    Players are addressed by their id (0 or 1).
    """

    __slots__ = ("_houses", "_initial_seeds", "_pits")

    def __init__(self, houses_per_player: int = 6, initial_seeds: int = 4) -> None:
        self._houses = 0
        self._initial_seeds = 0
        self._pits: List[Pit] = []
        self.size_board(houses_per_player, initial_seeds)

    @classmethod
    def from_counts(cls, houses_per_player: int, counts: Sequence[int]) -> "Board":
        board = cls(houses_per_player, 0)
        if len(counts) != board.num_pits:
            raise InvalidArgument(
                f"Board.from_counts: expected {board.num_pits} counts, got {len(counts)}"
            )
        board._pits = [Pit(n) for n in counts]
        return board

    def size_board(self, houses_per_player: int, initial_seeds: int) -> None:
        if houses_per_player < 1:
            raise InvalidArgument(f"Board.size_board: houses_per_player must be >= 1, got {houses_per_player}")
        if initial_seeds < 0:
            raise InvalidArgument(f"Board.size_board: initial_seeds must be >= 0, got {initial_seeds}")
        self._houses = houses_per_player
        self._initial_seeds = initial_seeds
        total = 2 * (houses_per_player + 1)
        self._pits = [
            Pit(0) if index in (houses_per_player, total - 1) else Pit(initial_seeds)
            for index in range(total)
        ]

    def clone(self) -> "Board":
        copy = Board.__new__(Board)
        copy._houses = self._houses
        copy._initial_seeds = self._initial_seeds
        copy._pits = [Pit(pit.seed_count) for pit in self._pits]
        return copy

    @property
    def houses_per_player(self) -> int:
        return self._houses

    @property
    def initial_seeds(self) -> int:
        return self._initial_seeds

    @property
    def num_pits(self) -> int:
        return len(self._pits)

    def counts(self) -> Tuple[int, ...]:
        return tuple(pit.seed_count for pit in self._pits)

    def total_seeds(self) -> int:
        return sum(pit.seed_count for pit in self._pits)

    def pit(self, raw_index: int) -> Pit:
        if raw_index < 0 or raw_index >= len(self._pits):
            raise IndexOutOfRange(f"Board.pit: raw index out of range: {raw_index}")
        return self._pits[raw_index]

    # --- index mapping ---

    def _check_house(self, index: int) -> None:
        if index < 0 or index >= self._houses:
            raise IndexOutOfRange(f"Board: house index out of range: {index}")

    def house_index(self, player: int, index: int) -> int:
        self._check_house(index)
        return index + player * (self._houses + 1)

    def store_index(self, player: int) -> int:
        return self._houses + player * (self._houses + 1)

    def opponent_store_index(self, player: int) -> int:
        return self.store_index(1 - player)

    def opposite_house_index(self, player: int, index: int) -> int:
        self._check_house(index)
        return 2 * self._houses - (index + player * (self._houses + 1))

    def house_of(self, player: int, index: int) -> Pit:
        return self._pits[self.house_index(player, index)]

    def store_of(self, player: int) -> Pit:
        return self._pits[self.store_index(player)]

    def store_of_opponent(self, player: int) -> Pit:
        return self._pits[self.opponent_store_index(player)]

    def opposite_house(self, player: int, index: int) -> Pit:
        return self._pits[self.opposite_house_index(player, index)]

    def owns_house(self, player: int, raw_index: int) -> bool:
        if raw_index < 0 or raw_index >= len(self._pits):
            raise IndexOutOfRange(f"Board.owns_house: raw index out of range: {raw_index}")
        first = player * (self._houses + 1)
        return first <= raw_index < first + self._houses

    # --- queries ---

    def player_has_non_empty_house(self, player: int) -> bool:
        first = player * (self._houses + 1)
        for raw in range(first, first + self._houses):
            if self._pits[raw].seed_count > 0:
                return True
        return False

    def player_has_only_empty_houses(self, player: int) -> bool:
        return not self.player_has_non_empty_house(player)

    def seed_sum_of_player(self, player: int) -> int:
        first = player * (self._houses + 1)
        return sum(self._pits[raw].seed_count for raw in range(first, first + self._houses))

    def is_selectable_house(self, player: int, index: int) -> bool:
        if index < 0 or index >= self._houses:
            return False
        return self._pits[index + player * (self._houses + 1)].seed_count > 0

    # --- mutations ---

    def sow(self, player: int, house: int, rules: "Rules", record_move: bool = True) -> SowResult:
        if house < 0 or house >= self._houses:
            raise InvalidArgument(f"Board.sow: house index out of range: {house}")

        total = len(self._pits)
        source = house + player * (self._houses + 1)
        opponent_store = self.opponent_store_index(player)
        seeds = self._pits[source].seed_count
        clockwise = rules.sowing_is_clockwise(seeds)
        move = Move() if record_move else None

        self._pits[source].remove_all()

        skipped = 0
        step = 0
        while step < seeds + skipped:
            if clockwise:
                target = (source - step - 1) % total
            else:
                target = (source + step + 1) % total
            step += 1
            if target == opponent_store:
                skipped += 1
                continue
            self._pits[target].add_seed()
            if move is not None:
                move.add(SeedMovement(source, target, 1))

        last_pit = (source - step) % total if clockwise else (source + step) % total
        in_own_store = last_pit == self.store_index(player)
        in_empty_house = False
        last_house = -1
        if not in_own_store and self._pits[last_pit].seed_count == 1 and self.owns_house(player, last_pit):
            in_empty_house = True
            last_house = last_pit % (self._houses + 1)

        return SowResult(
            move=move,
            last_in_own_store=in_own_store,
            last_in_empty_own_house=in_empty_house,
            last_house=last_house,
            last_pit=last_pit,
            seeds_sown=seeds,
            clockwise=clockwise,
        )

    def capture_houses(
        self,
        player: int,
        own_house: int,
        also_capture_opponent_house: bool,
        record_move: bool = True,
    ) -> Optional[Move]:
        own_index = self.house_index(player, own_house)
        store_index = self.store_index(player)
        own_pit = self._pits[own_index]
        store = self._pits[store_index]
        if own_pit.seed_count != 1:
            raise InvalidOperation(
                f"Board.capture_houses: house {own_house} holds {own_pit.seed_count} seeds, expected 1"
            )
        move = Move() if record_move else None

        if also_capture_opponent_house:
            opposite_index = self.opposite_house_index(player, own_house)
            opposite = self._pits[opposite_index]
            captured = opposite.seed_count
            if move is not None:
                move.add(SeedMovement(opposite_index, store_index, captured))
            store.add_seeds(captured)
            opposite.remove_all()

        if move is not None:
            move.add(SeedMovement(own_index, store_index, 1))
        own_pit.remove_seed()
        store.add_seed()
        return move

    def collect_remaining_seeds(self, first_player: int, second_player: int) -> Move:
        move = Move()
        for player in (first_player, second_player):
            store_index = self.store_index(player)
            for house in range(self._houses):
                raw = self.house_index(player, house)
                count = self._pits[raw].seed_count
                if count > 0:
                    move.add(SeedMovement(raw, store_index, count))
                    self._pits[store_index].add_seeds(count)
                    self._pits[raw].remove_all()
        return move

    def apply_move(self, move: Move) -> None:
        for movement in move:
            self.pit(movement.from_index).remove_seeds(movement.count)
            self.pit(movement.to_index).add_seeds(movement.count)


def board_key(board: Board) -> str:
    counts = ",".join(str(n) for n in board.counts())
    return f"{board.houses_per_player}|{counts}"


def key_to_board(key: str) -> Optional[Board]:
    parts = key.strip().split("|")
    if len(parts) != 2:
        return None
    try:
        houses = int(parts[0])
        counts = [int(x) for x in parts[1].split(",")]
    except ValueError:
        return None
    if houses < 1 or len(counts) != 2 * (houses + 1) or any(n < 0 for n in counts):
        return None
    return Board.from_counts(houses, counts)


def pretty_print(board: Board, south: int = 0) -> str:
    """
    Text dump of the board as seen from the southern player.

    North houses run right-to-left on the top row, south houses
    left-to-right on the bottom row; north's store is on the left and
    south's store on the right, both on the middle line.
    """
    north = 1 - south
    houses = board.houses_per_player
    digits = max(2, len(str(max(board.counts()))))

    def cell(n: int) -> str:
        return f"{n:>{digits}}"

    north_row = " ".join(cell(board.house_of(north, i).seed_count) for i in reversed(range(houses)))
    south_row = " ".join(cell(board.house_of(south, i).seed_count) for i in range(houses))
    store_width = digits + 1
    indent = " " * (store_width + 1)
    middle = (
        f"{board.store_of(north).seed_count:>{store_width}}"
        + " " * (len(north_row) + 2)
        + f"{board.store_of(south).seed_count:<{store_width}}"
    )
    numbers = " ".join(f"{i + 1:>{digits}}" for i in range(houses))

    lines = [
        f"{indent}{north_row}",
        middle,
        f"{indent}{south_row}",
        f"{indent}{numbers}",
    ]
    return "\n".join(lines)
