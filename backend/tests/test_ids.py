import random

from tictactoe.services.games.ids import ID_ALPHABET, generate_game_id


def test_generated_id_shape():
    code = generate_game_id(lambda c: False, length=6)
    assert len(code) == 6
    assert all(ch in ID_ALPHABET for ch in code)


def test_taken_ids_are_skipped():
    random.seed(7)
    first = generate_game_id(lambda c: False, length=4)
    random.seed(7)
    seen = []

    def taken(code):
        seen.append(code)
        return code == first

    second = generate_game_id(taken, length=4)
    assert second != first
    assert seen[0] == first
