"""Deterministic benchmark harness for the Kalaha computer-move search."""

from __future__ import annotations

import argparse
import math
import platform
import random
import statistics
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from kalaha_engine import Board, board_key, key_to_board
from kalaha_rules import MAX_HOUSES, MIN_HOUSES, ComputerStrength, Rules, recursion_depth
from kalaha_solver import expand, search_best_move

# A benchmark position: the board and the player to move.
Position = Tuple[Board, int]


def _is_terminal(board: Board) -> bool:
    return board.player_has_only_empty_houses(0) or board.player_has_only_empty_houses(1)


def _generate_positions(
    *,
    positions: int,
    max_plies: int,
    houses: int,
    seeds: int,
    seed: int,
    rules: Rules,
) -> List[Position]:
    rng = random.Random(seed)
    out: List[Position] = []
    while len(out) < positions:
        board = Board(houses, seeds)
        player = rng.getrandbits(1)
        plies = rng.randint(0, max_plies)
        for _ in range(plies):
            if _is_terminal(board):
                break
            legal = [house for house in range(houses) if board.is_selectable_house(player, house)]
            board, again = expand(board, player, rng.choice(legal), rules)
            if not again:
                player = 1 - player
        if not _is_terminal(board):
            out.append((board, player))
    return out


def _load_positions(path: Path, limit: int) -> List[Position]:
    loaded: List[Position] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line:
                continue
            player_raw, _, key = line.partition(" ")
            board = key_to_board(key)
            if board is None or player_raw not in {"0", "1"}:
                raise ValueError(f"invalid position at line {line_no}: {line!r}")
            if _is_terminal(board):
                continue
            loaded.append((board, int(player_raw)))
            if len(loaded) >= limit:
                break
    return loaded


def _save_positions(path: Path, positions: Sequence[Position]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for board, player in positions:
            handle.write(f"{player} {board_key(board)}\n")


def _percentile(values: Sequence[float], percentile: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return float(ordered[0])
    rank = (len(ordered) - 1) * percentile
    lo = math.floor(rank)
    hi = math.ceil(rank)
    if lo == hi:
        return float(ordered[lo])
    frac = rank - lo
    return float(ordered[lo] * (1.0 - frac) + ordered[hi] * frac)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Deterministic Kalaha search benchmark")
    parser.add_argument("--positions", type=int, default=20, help="number of positions (default: 20)")
    parser.add_argument("--max-plies", type=int, default=24, help="max random plies from start (default: 24)")
    parser.add_argument("--houses", type=int, default=6, help="houses per player (default: 6)")
    parser.add_argument("--seeds", type=int, default=4, help="initial seeds per house (default: 4)")
    parser.add_argument("--seed", type=int, default=12345, help="random seed for positions and tie-breaks")
    parser.add_argument("--depth", type=int, default=None, help="fixed search depth")
    parser.add_argument(
        "--strength",
        choices=["easy", "medium", "hard"],
        default=None,
        help="take the depth from the difficulty table (default: medium)",
    )
    parser.add_argument("--alpha-beta", action="store_true", help="enable alpha-beta pruning")
    parser.add_argument("--repeat", type=int, default=1, help="benchmark repeats for p50/p95 summaries")
    parser.add_argument(
        "--save-positions",
        type=Path,
        default=None,
        help="write sampled benchmark positions to file",
    )
    parser.add_argument(
        "--load-positions",
        type=Path,
        default=None,
        help="load benchmark positions from file",
    )
    args = parser.parse_args(argv)

    if args.positions <= 0:
        print("--positions must be > 0")
        return 2
    if args.max_plies < 0:
        print("--max-plies must be >= 0")
        return 2
    if args.houses < MIN_HOUSES or args.houses > MAX_HOUSES:
        print(f"--houses must be {MIN_HOUSES}..{MAX_HOUSES}")
        return 2
    if args.seeds <= 0:
        print("--seeds must be > 0")
        return 2
    if args.repeat <= 0:
        print("--repeat must be > 0")
        return 2
    if args.depth is not None and args.depth <= 0:
        print("--depth must be > 0")
        return 2
    if args.depth is not None and args.strength is not None:
        print("--depth and --strength are mutually exclusive")
        return 2
    if args.load_positions is not None and not args.load_positions.exists():
        print(f"--load-positions not found: {args.load_positions}")
        return 2

    rules = Rules()
    if args.load_positions is not None:
        try:
            positions = _load_positions(args.load_positions, args.positions)
        except ValueError as exc:
            print(f"failed to load positions: {exc}")
            return 2
        if len(positions) < args.positions:
            print(
                f"--load-positions provided only {len(positions)} usable non-terminal positions; "
                f"need {args.positions}"
            )
            return 2
    else:
        positions = _generate_positions(
            positions=args.positions,
            max_plies=args.max_plies,
            houses=args.houses,
            seeds=args.seeds,
            seed=args.seed,
            rules=rules,
        )
    if args.save_positions is not None:
        _save_positions(args.save_positions, positions)

    strength = ComputerStrength[(args.strength or "medium").upper()]

    def depth_for(board: Board) -> int:
        if args.depth is not None:
            return args.depth
        return recursion_depth(strength, board.houses_per_player)

    mode = f"depth={args.depth}" if args.depth is not None else f"strength={strength.name.lower()}"
    print(
        f"python={sys.version.split()[0]} platform={platform.platform()} "
        f"{mode} alpha_beta={args.alpha_beta} repeats={args.repeat}"
    )
    print(
        "rep idx player depth nodes solver_ms wall_ms best score candidates "
        f"(positions={len(positions)} seed={args.seed})"
    )

    repeat_summaries: List[Dict[str, float]] = []
    for rep in range(1, args.repeat + 1):
        rng = random.Random(args.seed)
        total_nodes = 0
        total_solver_ms = 0
        wall_start_ns = time.perf_counter_ns()

        for idx, (board, player) in enumerate(positions, start=1):
            depth = depth_for(board)
            start_ns = time.perf_counter_ns()
            result = search_best_move(board, player, depth, rules, rng=rng, alpha_beta=args.alpha_beta)
            wall_ms = (time.perf_counter_ns() - start_ns) // 1_000_000
            total_nodes += result.nodes
            total_solver_ms += result.elapsed_ms
            candidates = ",".join(str(house + 1) for house in result.candidates)
            print(
                f"{rep:>3d} {idx:03d} {player:>6d} {depth:>5d} {result.nodes:>9d} "
                f"{result.elapsed_ms:>9d} {int(wall_ms):>7d} {result.best_move + 1:>4d} "
                f"{result.score:>+5d} {candidates}"
            )

        total_wall_ms = max(1, (time.perf_counter_ns() - wall_start_ns) // 1_000_000)
        nps_wall = int(total_nodes * 1000 / total_wall_ms)
        avg_solver_ms = total_solver_ms / len(positions)
        avg_nodes = total_nodes / len(positions)
        repeat_summaries.append(
            {
                "total_nodes": float(total_nodes),
                "total_wall_ms": float(total_wall_ms),
                "nps_wall": float(nps_wall),
                "avg_solver_ms": float(avg_solver_ms),
                "avg_nodes": float(avg_nodes),
            }
        )
        print(
            "summary "
            f"rep={rep} positions={len(positions)} total_nodes={total_nodes} "
            f"total_solver_ms={total_solver_ms} total_wall_ms={total_wall_ms} "
            f"nps_wall={nps_wall} avg_solver_ms={avg_solver_ms:.1f} avg_nodes={avg_nodes:.1f}"
        )

    if args.repeat > 1:
        def _print_dist(name: str, key: str, as_int: bool = False) -> None:
            values = [summary[key] for summary in repeat_summaries]
            p50 = _percentile(values, 0.50)
            p95 = _percentile(values, 0.95)
            mean = statistics.fmean(values)
            if as_int:
                print(
                    f"dist {name} min={int(min(values))} p50={int(round(p50))} "
                    f"p95={int(round(p95))} max={int(max(values))} mean={int(round(mean))}"
                )
            else:
                print(
                    f"dist {name} min={min(values):.2f} p50={p50:.2f} "
                    f"p95={p95:.2f} max={max(values):.2f} mean={mean:.2f}"
                )

        _print_dist("nps_wall", "nps_wall", as_int=True)
        _print_dist("avg_nodes", "avg_nodes")
        _print_dist("avg_solver_ms", "avg_solver_ms")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
