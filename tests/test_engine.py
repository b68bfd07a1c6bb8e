import random
import unittest

from kalaha_engine import (
    Board,
    IndexOutOfRange,
    InvalidArgument,
    InvalidOperation,
    Move,
    Pit,
    SeedMovement,
    board_key,
    key_to_board,
    pretty_print,
)
from kalaha_rules import Rules, SowingDirection


def random_board(rng, houses=6, max_seeds=6):
    counts = []
    for index in range(2 * (houses + 1)):
        if index in (houses, 2 * houses + 1):
            counts.append(rng.randint(0, 10))
        else:
            counts.append(rng.randint(0, max_seeds))
    return Board.from_counts(houses, counts)


class TestPit(unittest.TestCase):
    def test_add_and_remove(self):
        pit = Pit(2)
        pit.add_seed()
        pit.add_seeds(3)
        self.assertEqual(pit.seed_count, 6)
        pit.remove_seed()
        pit.remove_seeds(2)
        self.assertEqual(pit.seed_count, 3)
        self.assertTrue(pit.contains_a_seed())
        pit.remove_all()
        self.assertTrue(pit.is_empty())

    def test_remove_from_empty_pit_raises(self):
        with self.assertRaises(InvalidOperation):
            Pit().remove_seed()

    def test_remove_more_than_held_raises(self):
        pit = Pit(2)
        with self.assertRaises(InvalidOperation):
            pit.remove_seeds(3)
        self.assertEqual(pit.seed_count, 2)


class TestMove(unittest.TestCase):
    def test_backward_reverses_order_and_direction(self):
        move = Move([SeedMovement(0, 1, 1), SeedMovement(0, 2, 1), SeedMovement(5, 6, 3)])
        backward = move.backward()
        self.assertEqual(
            backward.movements,
            (SeedMovement(6, 5, 3), SeedMovement(2, 0, 1), SeedMovement(1, 0, 1)),
        )
        self.assertEqual(backward.backward(), move)

    def test_prepend_keeps_block_order(self):
        move = Move([SeedMovement(3, 4, 1)])
        move.prepend(Move([SeedMovement(0, 1, 1), SeedMovement(1, 2, 1)]))
        self.assertEqual([m.from_index for m in move], [0, 1, 3])
        move.add_to_front(SeedMovement(9, 9, 2))
        self.assertEqual(move[0], SeedMovement(9, 9, 2))
        self.assertEqual(len(move), 4)
        self.assertEqual(move.seeds_moved(), 5)

    def test_str(self):
        move = Move([SeedMovement(2, 3, 1), SeedMovement(10, 6, 5)])
        self.assertEqual(str(move), "Move:\n    2 --> 3: 1 seed\n    10 --> 6: 5 seeds")


class TestBoard(unittest.TestCase):
    def test_initial_layout(self):
        board = Board(6, 4)
        self.assertEqual(board.num_pits, 14)
        self.assertEqual(board.counts(), (4, 4, 4, 4, 4, 4, 0, 4, 4, 4, 4, 4, 4, 0))
        self.assertEqual(board.total_seeds(), 48)
        self.assertEqual(board.store_index(0), 6)
        self.assertEqual(board.store_index(1), 13)
        self.assertEqual(board.opponent_store_index(0), 13)

    def test_opposite_house_mapping(self):
        board = Board(6, 4)
        self.assertEqual(board.opposite_house_index(0, 0), 12)
        self.assertEqual(board.opposite_house_index(0, 5), 7)
        self.assertEqual(board.opposite_house_index(1, 0), 5)
        self.assertEqual(board.opposite_house_index(1, 5), 0)

    def test_house_index_out_of_range(self):
        board = Board(6, 4)
        with self.assertRaises(IndexOutOfRange):
            board.house_of(0, 6)
        with self.assertRaises(IndexError):
            board.opposite_house(1, -1)
        with self.assertRaises(IndexOutOfRange):
            board.pit(14)

    def test_is_selectable_house_never_raises(self):
        board = Board.from_counts(3, [0, 2, 0, 0, 1, 0, 0, 0])
        self.assertFalse(board.is_selectable_house(0, 0))
        self.assertTrue(board.is_selectable_house(0, 1))
        self.assertFalse(board.is_selectable_house(0, 3))
        self.assertFalse(board.is_selectable_house(0, -1))
        self.assertTrue(board.is_selectable_house(1, 0))

    def test_from_counts_rejects_wrong_length(self):
        with self.assertRaises(InvalidArgument):
            Board.from_counts(3, [1, 2, 3])

    def test_clone_is_independent(self):
        board = Board(4, 3)
        copy = board.clone()
        copy.sow(0, 0, Rules())
        self.assertEqual(board.counts(), Board(4, 3).counts())
        self.assertNotEqual(copy.counts(), board.counts())

    def test_sow_counterclockwise_example(self):
        board = Board(6, 4)
        result = board.sow(0, 2, Rules())
        self.assertEqual(board.counts(), (4, 4, 0, 5, 5, 5, 1, 4, 4, 4, 4, 4, 4, 0))
        self.assertTrue(result.last_in_own_store)
        self.assertFalse(result.last_in_empty_own_house)
        self.assertEqual(result.last_pit, 6)
        self.assertEqual([(m.from_index, m.to_index, m.count) for m in result.move], [
            (2, 3, 1), (2, 4, 1), (2, 5, 1), (2, 6, 1),
        ])

    def test_sow_for_north_player(self):
        board = Board(6, 4)
        result = board.sow(1, 4, Rules())
        self.assertEqual(board.counts(), (5, 5, 4, 4, 4, 4, 0, 4, 4, 4, 4, 0, 5, 1))
        self.assertFalse(result.last_in_own_store)
        self.assertFalse(result.last_in_empty_own_house)
        self.assertEqual(result.last_pit, 1)

    def test_sow_skips_opponent_store(self):
        counts = [0] * 14
        counts[0] = 13
        board = Board.from_counts(6, counts)
        result = board.sow(0, 0, Rules())
        self.assertEqual(board.counts(), (1,) * 13 + (0,))
        self.assertEqual(board.total_seeds(), 13)
        self.assertTrue(result.last_in_empty_own_house)
        self.assertEqual(result.last_house, 0)

    def test_sow_skips_opponent_store_on_every_lap(self):
        counts = [0] * 14
        counts[3] = 40
        board = Board.from_counts(6, counts)
        result = board.sow(0, 3, Rules())
        self.assertEqual(board.store_of_opponent(0).seed_count, 0)
        self.assertEqual(board.total_seeds(), 40)
        self.assertEqual(len(result.move), 40)
        self.assertNotIn(13, [m.to_index for m in result.move])

    def test_sow_clockwise(self):
        board = Board(6, 4)
        rules = Rules(direction_of_sowing=SowingDirection.CLOCKWISE)
        result = board.sow(1, 2, rules)
        self.assertEqual(board.counts(), (4, 4, 4, 4, 5, 5, 0, 5, 5, 0, 4, 4, 4, 0))
        self.assertTrue(result.clockwise)
        self.assertEqual(result.last_pit, 4)

    def test_cross_kalah_parity(self):
        rules = Rules(direction_of_sowing=SowingDirection.CROSS_KALAH)

        odd = [0] * 14
        odd[2] = 3
        board = Board.from_counts(6, odd)
        result = board.sow(0, 2, rules)
        self.assertTrue(result.clockwise)
        self.assertEqual(board.counts(), (1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0))

        even = [0] * 14
        even[2] = 2
        board = Board.from_counts(6, even)
        result = board.sow(0, 2, rules)
        self.assertFalse(result.clockwise)
        self.assertEqual(board.counts(), (0, 0, 0, 1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0))

    def test_sow_invalid_house(self):
        with self.assertRaises(InvalidArgument):
            Board(6, 4).sow(0, 6, Rules())

    def test_capture_houses(self):
        board = Board.from_counts(6, [0, 0, 1, 0, 0, 0, 2, 0, 0, 0, 5, 0, 0, 0])
        move = board.capture_houses(0, 2, True)
        self.assertEqual(move.movements, (SeedMovement(10, 6, 5), SeedMovement(2, 6, 1)))
        self.assertEqual(board.store_of(0).seed_count, 8)
        self.assertTrue(board.house_of(0, 2).is_empty())
        self.assertTrue(board.opposite_house(0, 2).is_empty())

    def test_capture_own_seed_only(self):
        board = Board.from_counts(3, [0, 1, 0, 0, 4, 4, 4, 0])
        move = board.capture_houses(0, 1, False)
        self.assertEqual(move.movements, (SeedMovement(1, 3, 1),))
        self.assertEqual(board.counts(), (0, 0, 0, 1, 4, 4, 4, 0))

    def test_capture_requires_single_seed(self):
        board = Board(6, 4)
        with self.assertRaises(InvalidOperation):
            board.capture_houses(0, 0, True)

    def test_collect_remaining_seeds(self):
        board = Board.from_counts(3, [1, 0, 2, 3, 0, 4, 0, 1])
        move = board.collect_remaining_seeds(0, 1)
        self.assertEqual(
            move.movements,
            (SeedMovement(0, 3, 1), SeedMovement(2, 3, 2), SeedMovement(5, 7, 4)),
        )
        self.assertEqual(board.counts(), (0, 0, 0, 6, 0, 0, 0, 5))

    def test_conservation_over_random_play(self):
        rng = random.Random(7)
        for direction in SowingDirection:
            rules = Rules(direction_of_sowing=direction)
            board = Board(5, 4)
            total = board.total_seeds()
            player = 0
            for _ in range(500):
                if board.player_has_only_empty_houses(player):
                    break
                house = rng.choice([h for h in range(5) if board.is_selectable_house(player, h)])
                result = board.sow(player, house, rules)
                if result.last_in_empty_own_house:
                    board.capture_houses(player, result.last_house, rng.random() < 0.5)
                self.assertEqual(board.total_seeds(), total)
                player = 1 - player
            board.collect_remaining_seeds(0, 1)
            self.assertEqual(board.total_seeds(), total)
            self.assertEqual(board.seed_sum_of_player(0) + board.seed_sum_of_player(1), 0)

    def test_move_round_trip(self):
        rng = random.Random(11)
        rules = Rules(direction_of_sowing=SowingDirection.CROSS_KALAH)
        for _ in range(50):
            board = random_board(rng)
            player = rng.randint(0, 1)
            houses = [h for h in range(6) if board.is_selectable_house(player, h)]
            if not houses:
                continue
            before = board.counts()
            result = board.sow(player, rng.choice(houses), rules)
            board.apply_move(result.move.backward())
            self.assertEqual(board.counts(), before)

            board.apply_move(result.move)
            if result.last_in_empty_own_house:
                after_sow = board.counts()
                capture = board.capture_houses(player, result.last_house, True)
                board.apply_move(capture.backward())
                self.assertEqual(board.counts(), after_sow)

    def test_sow_without_recording(self):
        board = Board(4, 3)
        result = board.sow(0, 1, Rules(), record_move=False)
        self.assertIsNone(result.move)
        self.assertEqual(board.total_seeds(), 24)


class TestBoardText(unittest.TestCase):
    def test_key_round_trip(self):
        board = Board(3, 2)
        key = board_key(board)
        self.assertEqual(key, "3|2,2,2,0,2,2,2,0")
        self.assertEqual(key_to_board(key).counts(), board.counts())

    def test_invalid_keys(self):
        self.assertIsNone(key_to_board("garbage"))
        self.assertIsNone(key_to_board("3|1,2"))
        self.assertIsNone(key_to_board("3|a,b,c,d,e,f,g,h"))
        self.assertIsNone(key_to_board("3|1,1,1,0,1,1,-1,0"))

    def test_pretty_print(self):
        board = Board.from_counts(3, [1, 2, 3, 10, 4, 5, 6, 7])
        lines = pretty_print(board).splitlines()
        self.assertEqual(len(lines), 4)
        self.assertEqual(lines[0].split(), ["6", "5", "4"])
        self.assertEqual(lines[1].split(), ["7", "10"])
        self.assertEqual(lines[2].split(), ["1", "2", "3"])
        self.assertEqual(lines[3].split(), ["1", "2", "3"])

    def test_pretty_print_from_north(self):
        board = Board.from_counts(3, [1, 2, 3, 10, 4, 5, 6, 7])
        lines = pretty_print(board, south=1).splitlines()
        self.assertEqual(lines[0].split(), ["3", "2", "1"])
        self.assertEqual(lines[1].split(), ["10", "7"])
        self.assertEqual(lines[2].split(), ["4", "5", "6"])


if __name__ == "__main__":
    unittest.main()
