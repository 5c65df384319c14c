import random
import string

ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_game_id(taken, length=6):
    """Generate a short game id that `taken(id)` does not report as in use."""
    while True:
        code = ''.join(random.choices(ID_ALPHABET, k=length))
        if not taken(code):
            return code
