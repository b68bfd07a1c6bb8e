"""Minimax search that picks the computer player's house."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import logging
import random
import time

from kalaha_engine import (
    Board,
    InvalidArgument,
    InvalidOperation,
    board_key,
    pretty_print,
)
from kalaha_rules import Rules
from kalaha_telemetry import (
    NodeBatchEvent,
    SearchEndEvent,
    SearchStartEvent,
    TelemetrySink,
    emit_dataclass_event,
)

logger = logging.getLogger(__name__)

INF = 10**9
INTERRUPT_POLL_MASK = 0xFF
TELEMETRY_NODE_MASK = 0x3FF
TELEMETRY_EMIT_INTERVAL_MS = 120


class SearchInterrupted(Exception):
    """Raised inside the search when the caller asks it to stop."""


@dataclass(frozen=True)
class SearchResult:
    best_move: int
    score: int
    # Per-house value at the root, None for houses that were not searched.
    # With alpha-beta, values below the maximum are upper bounds.
    root_scores: Tuple[Optional[int], ...]
    candidates: Tuple[int, ...]
    max_depth: int
    nodes: int
    elapsed_ms: int
    complete: bool


@dataclass
class _TelemetryStats:
    sink: TelemetrySink
    solve_start: float
    last_emit: float


@dataclass
class _SearchContext:
    rules: Rules
    max_depth: int
    alpha_beta: bool = False
    interrupt_check: Optional[Callable[[], bool]] = None
    telemetry: Optional[_TelemetryStats] = None
    nodes: int = 0
    cutoffs: int = 0
    max_ply: int = 0


def terminal_score(board: Board, player: int, rules: Rules) -> int:
    """Store difference from ``player``'s side, counting house seeds when the end collection rule is on."""
    opponent = 1 - player
    score = board.store_of(player).seed_count - board.store_of(opponent).seed_count
    if rules.collect_remaining_seeds_at_end:
        score += board.seed_sum_of_player(player) - board.seed_sum_of_player(opponent)
    return score


def cutoff_score(board: Board, player: int) -> int:
    return board.store_of(player).seed_count - board.store_of(1 - player).seed_count


def _is_terminal(board: Board, player: int) -> bool:
    return board.player_has_only_empty_houses(player) or board.player_has_only_empty_houses(1 - player)


def expand(board: Board, player: int, house: int, rules: Rules) -> Tuple[Board, bool]:
    """Play ``house`` on a copy of ``board``.

    Returns the copy and whether ``player`` moves again. The capture
    decision reads the opposite house on the board before the sow.
    """
    child = board.clone()
    result = child.sow(player, house, rules, record_move=False)
    if rules.play_again_when_last_seed_in_own_store and result.last_in_own_store:
        return child, True
    if result.last_in_empty_own_house:
        opposite_count = board.opposite_house(player, result.last_house).seed_count
        permission = rules.decide_capture(opposite_count)
        if permission.may_capture:
            child.capture_houses(
                player,
                result.last_house,
                permission.may_capture_opponent_house,
                record_move=False,
            )
    return child, False


def _check_interrupt(context: _SearchContext) -> None:
    if (
        context.interrupt_check is not None
        and (context.nodes & INTERRUPT_POLL_MASK) == 0
        and context.interrupt_check()
    ):
        raise SearchInterrupted()


def _telemetry_maybe_emit_batch(context: _SearchContext, force: bool = False) -> None:
    stats = context.telemetry
    if stats is None:
        return
    if not force and (context.nodes & TELEMETRY_NODE_MASK) != 0:
        return
    now = time.perf_counter()
    if not force and (now - stats.last_emit) * 1000 < TELEMETRY_EMIT_INTERVAL_MS:
        return

    elapsed_ms = max(1, int((now - stats.solve_start) * 1000))
    emit_dataclass_event(
        stats.sink,
        "node_batch",
        NodeBatchEvent(
            nodes_total=context.nodes,
            nps_estimate=int(context.nodes * 1000 / elapsed_ms),
            cutoffs=context.cutoffs,
            max_ply=context.max_ply,
            elapsed_ms=elapsed_ms,
        ),
    )
    stats.last_emit = now


def _visit(context: _SearchContext, depth: int) -> None:
    context.nodes += 1
    if depth > context.max_ply:
        context.max_ply = depth
    _check_interrupt(context)
    _telemetry_maybe_emit_batch(context)


def _maximize(
    board: Board,
    player: int,
    depth: int,
    context: _SearchContext,
    root_scores: Optional[List[Optional[int]]],
    alpha: int,
    beta: int,
) -> int:
    _visit(context, depth)
    if _is_terminal(board, player):
        return terminal_score(board, player, context.rules)
    at_root = root_scores is not None and depth == 1
    # The root always expands so every house gets a score.
    if depth >= context.max_depth and not at_root:
        return cutoff_score(board, player)

    opponent = 1 - player
    best = -INF
    for house in range(board.houses_per_player):
        if board.house_of(player, house).is_empty():
            continue
        child, again = expand(board, player, house, context.rules)
        child_alpha = alpha
        if at_root and context.alpha_beta:
            # Keep every root value that can tie the maximum exact.
            child_alpha = max(alpha, best - 1)
        if again:
            value = _maximize(child, player, depth + 1, context, None, child_alpha, beta)
        else:
            value = _minimize(child, opponent, depth + 1, context, child_alpha, beta)
        if at_root:
            root_scores[house] = value
        if value >= best:
            best = value
        if context.alpha_beta and not at_root:
            alpha = max(alpha, best)
            if alpha >= beta:
                context.cutoffs += 1
                break
    return best


def _minimize(
    board: Board,
    player: int,
    depth: int,
    context: _SearchContext,
    alpha: int,
    beta: int,
) -> int:
    # Scores are always taken from the side of the maximizing player, the opponent of ``player``.
    _visit(context, depth)
    opponent = 1 - player
    if _is_terminal(board, player):
        return terminal_score(board, opponent, context.rules)
    if depth >= context.max_depth:
        return cutoff_score(board, opponent)

    best = INF
    for house in range(board.houses_per_player):
        if board.house_of(player, house).is_empty():
            continue
        child, again = expand(board, player, house, context.rules)
        if again:
            value = _minimize(child, player, depth + 1, context, alpha, beta)
        else:
            value = _maximize(child, opponent, depth + 1, context, None, alpha, beta)
        if value < best:
            best = value
        if context.alpha_beta:
            beta = min(beta, best)
            if alpha >= beta:
                context.cutoffs += 1
                break
    return best


def maximize(
    board: Board,
    player: int,
    depth: int,
    max_depth: int,
    rules: Rules,
    root_scores: Optional[List[Optional[int]]] = None,
) -> int:
    context = _SearchContext(rules=rules, max_depth=max_depth)
    return _maximize(board, player, depth, context, root_scores, -INF, INF)


def minimize(board: Board, player: int, depth: int, max_depth: int, rules: Rules) -> int:
    context = _SearchContext(rules=rules, max_depth=max_depth)
    return _minimize(board, player, depth, context, -INF, INF)


def search_best_move(
    board: Board,
    player: int,
    max_depth: int,
    rules: Rules,
    rng: Optional[random.Random] = None,
    alpha_beta: bool = False,
    interrupt_check: Optional[Callable[[], bool]] = None,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> SearchResult:
    if max_depth < 1:
        raise InvalidArgument(f"search_best_move: max_depth must be >= 1, got {max_depth}")
    houses = board.houses_per_player
    selectable = [house for house in range(houses) if board.is_selectable_house(player, house)]
    if not selectable:
        raise InvalidOperation(f"search_best_move: player {player} has no selectable house")
    if rng is None:
        rng = random.Random()

    start = time.perf_counter()
    telemetry: Optional[_TelemetryStats] = None
    if telemetry_sink is not None:
        telemetry = _TelemetryStats(sink=telemetry_sink, solve_start=start, last_emit=start)
        emit_dataclass_event(
            telemetry_sink,
            "search_start",
            SearchStartEvent(
                board_key=board_key(board),
                player=player,
                max_depth=max_depth,
                alpha_beta=alpha_beta,
            ),
        )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Searching for player %d, max depth %d:\n%s", player, max_depth, pretty_print(board))

    root_scores: List[Optional[int]] = [None] * houses
    context = _SearchContext(
        rules=rules,
        max_depth=max_depth,
        alpha_beta=alpha_beta,
        interrupt_check=interrupt_check,
        telemetry=telemetry,
    )
    complete = True
    reason = "complete"
    try:
        score = _maximize(board, player, 1, context, root_scores, -INF, INF)
    except SearchInterrupted:
        complete = False
        reason = "interrupted"
        searched = [value for value in root_scores if value is not None]
        score = max(searched) if searched else cutoff_score(board, player)

    candidates = [house for house in selectable if root_scores[house] == score]
    if not candidates:
        if _is_terminal(board, player):
            reason = "terminal"
        elif complete:
            logger.warning(
                "No house matched the maximum score %d for player %d; choosing among all selectable houses",
                score,
                player,
            )
        candidates = selectable
    best_move = rng.choice(candidates)

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    result = SearchResult(
        best_move=best_move,
        score=score,
        root_scores=tuple(root_scores),
        candidates=tuple(candidates),
        max_depth=max_depth,
        nodes=context.nodes,
        elapsed_ms=elapsed_ms,
        complete=complete,
    )
    if telemetry is not None:
        _telemetry_maybe_emit_batch(context, force=True)
        emit_dataclass_event(
            telemetry.sink,
            "search_end",
            SearchEndEvent(
                best_move=result.best_move,
                score=result.score,
                candidates=list(result.candidates),
                nodes=result.nodes,
                elapsed_ms=result.elapsed_ms,
                reason=reason,
            ),
        )
    logger.debug(
        "Search done: house %d score %d candidates %s nodes %d (%d ms)",
        best_move,
        score,
        list(candidates),
        context.nodes,
        elapsed_ms,
    )
    return result


def compute_computer_move(
    board: Board,
    player: int,
    max_depth: int,
    rules: Rules,
    rng: Optional[random.Random] = None,
    **kwargs,
) -> int:
    """Return the house index the computer plays. ``board`` is not modified."""
    return search_best_move(board, player, max_depth, rules, rng=rng, **kwargs).best_move
