"""Unit tests for the board model."""

import pytest

from minesocket.errors import MalformedFrame, Mismatch
from minesocket.messages import ClickDelta, GameOver, GameStatus, SyncGame
from minesocket.game import Game
from support import board_overlay, game_info


def delta(action_seq, game_id=1, cells=(), time=None):
    touch = [value for cell in cells for value in cell]
    return ClickDelta.from_args(action_seq, game_id, {"touchCells": touch, "time": time}, None, None)


def snapshot(game):
    return (
        list(game.overlay.opened),
        list(game.overlay.flagged),
        list(game.overlay.touch_count),
        len(game.history),
    )


@pytest.mark.parametrize("size_x, size_y", [(9, 9), (16, 30), (4, 3), (1, 1)])
def test_coord_to_idx_is_a_bijection_onto_the_grid(make_game, size_x, size_y):
    game = make_game(size_x=size_x, size_y=size_y)
    indexes = [game.coord_to_idx(x, y) for x in range(size_x) for y in range(size_y)]
    assert sorted(indexes) == list(range(size_x * size_y))


def test_neighbor_counts(make_game):
    game = make_game()
    assert len(game.neighbors(4, 4)) == 8
    for corner in [(0, 0), (8, 0), (0, 8), (8, 8)]:
        assert len(game.neighbors(*corner)) == 3
    for edge in [(4, 0), (0, 4), (8, 4), (4, 8)]:
        assert len(game.neighbors(*edge)) == 5


def test_neighbors_do_not_wrap_across_columns(make_game):
    game = make_game(size_x=4, size_y=3)
    assert sorted(game.neighbors(1, 0)) == [(0, 0), (0, 1), (1, 1), (2, 0), (2, 1)]
    assert (0, 2) not in game.neighbors(1, 0)


def test_sync_starts_with_closed_board(make_game):
    game = make_game()
    assert game.id == 1
    assert (game.size_x, game.size_y, game.mines) == (9, 9, 10)
    assert not any(game.overlay.opened)
    assert not any(game.overlay.flagged)
    assert game.action_count == 0
    assert not game.is_active
    assert not game.finished


def test_sync_history_sets_action_count(make_game):
    game = make_game(history=[{"touchCells": [0, 0, 1, 1, 0]}, {"touchCells": []}])
    assert game.action_count == 2


def test_apply_delta_updates_only_touched_cells(make_game):
    game = make_game(flagged=[(5, 5)])
    before = snapshot(game)
    cells = game.apply_delta(delta(0, cells=[(0, 0, 0, 1, 0), (0, 1, 2, 1, 0), (3, 3, 4, 0, 1)]))

    assert len(cells) == 3
    assert game.is_opened(0, 0) and game.touch_count(0, 0) == 0
    assert game.is_opened(0, 1) and game.touch_count(0, 1) == 2
    assert game.is_flagged(3, 3) and not game.is_opened(3, 3)
    touched = {game.coord_to_idx(x, y) for x, y in [(0, 0), (0, 1), (3, 3)]}
    opened, flagged, counts, _ = before
    for idx in range(81):
        if idx in touched:
            continue
        assert game.overlay.opened[idx] == opened[idx]
        assert game.overlay.flagged[idx] == flagged[idx]
        assert game.overlay.touch_count[idx] == counts[idx]
    assert game.action_count == 1


def test_unopened_cells_get_zero_count(make_game):
    game = make_game()
    game.apply_delta(delta(0, cells=[(2, 2, 7, 0, 0)]))
    assert game.touch_count(2, 2) == 0


def test_delta_records_request_time(make_game):
    game = make_game()
    game.apply_delta(delta(0, cells=[(0, 0, 0, 1, 0)], time=1234))
    assert game.info.requests == [1234]
    assert game.history[0].time == 1234


def test_sequence_mismatch_leaves_board_unchanged(make_game):
    game = make_game()
    before = snapshot(game)
    with pytest.raises(Mismatch):
        game.apply_delta(delta(1, cells=[(0, 0, 0, 1, 0)]))
    assert snapshot(game) == before
    assert game.info.requests == []


def test_duplicate_delta_is_rejected(make_game):
    game = make_game()
    game.apply_delta(delta(0, cells=[(0, 0, 1, 1, 0)]))
    with pytest.raises(Mismatch):
        game.apply_delta(delta(0, cells=[(0, 0, 1, 1, 0)]))
    assert game.action_count == 1


def test_game_id_mismatch_leaves_board_unchanged(make_game):
    game = make_game(game_id=1)
    before = snapshot(game)
    with pytest.raises(Mismatch):
        game.apply_delta(delta(0, game_id=2, cells=[(0, 0, 0, 1, 0)]))
    assert snapshot(game) == before


@pytest.mark.parametrize(
    "cell",
    [(9, 0, 0, 1, 0), (0, -1, 0, 1, 0), (1, 1, 0, 1, 1)],
)
def test_invalid_cells_reject_the_whole_delta(make_game, cell):
    game = make_game()
    before = snapshot(game)
    with pytest.raises(MalformedFrame):
        game.apply_delta(delta(0, cells=[(0, 0, 0, 1, 0), cell]))
    assert snapshot(game) == before


def test_touch_cells_must_be_whole_tuples():
    with pytest.raises(MalformedFrame):
        ClickDelta.from_args(0, 1, {"touchCells": [0, 0, 1, 1]})


def test_sync_rejects_wrong_overlay_size():
    with pytest.raises(MalformedFrame):
        Game.from_sync(SyncGame.from_args(game_info(size_x=9, size_y=9), board_overlay(8, 8), []))


def test_game_over_replaces_board_and_freezes_it(make_game):
    game = make_game()
    final = board_overlay(opened=[(0, 0), (1, 1)], counts={(0, 0): 11, (1, 1): 10})
    message = GameOver.from_args(1, None, game_info(state=2), {"name": "me"}, None, final)
    game.apply_game_over(message)

    assert game.finished
    assert game.status is GameStatus.LOST
    assert game.touch_count(0, 0) == 11
    with pytest.raises(Mismatch):
        game.apply_delta(delta(0, cells=[(2, 2, 0, 1, 0)]))


def test_won_game_over(make_game):
    game = make_game()
    message = GameOver.from_args(1, None, game_info(state=3), None, None, board_overlay())
    game.apply_game_over(message)
    assert game.status is GameStatus.WON


def test_game_over_without_terminal_state_is_recorded_as_lost(make_game):
    game = make_game()
    message = GameOver.from_args(1, None, game_info(state=1), None, None, board_overlay())
    game.apply_game_over(message)
    assert game.finished
    assert game.status is GameStatus.LOST


def test_game_over_for_other_game_is_mismatch(make_game):
    game = make_game(game_id=1)
    message = GameOver.from_args(2, None, game_info(game_id=2, state=2), None, None, board_overlay())
    with pytest.raises(Mismatch):
        game.apply_game_over(message)
    assert not game.finished


def test_synced_finished_game_is_frozen():
    game = Game.from_sync(SyncGame.from_args(game_info(state=3), board_overlay(), []))
    assert game.finished
    assert game.status is GameStatus.WON


def test_timer(make_game):
    game = make_game()
    assert game.time_elapsed(5000) is None
    game.start(1000)
    assert game.is_active
    assert game.time_elapsed(3500) == 2500


def test_render(make_game):
    game = make_game(
        size_x=3,
        size_y=2,
        opened=[(0, 0), (1, 0), (2, 0), (2, 1)],
        flagged=[(0, 1)],
        counts={(1, 0): 2, (2, 0): 11, (2, 1): 10},
    )
    assert str(game) == ".2B\nfxb\n"
