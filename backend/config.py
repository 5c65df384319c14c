import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of browser origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000',
    ).split(',') if o.strip()]
    # Reaper cadence and idle cutoff (seconds)
    REAPER_INTERVAL_SEC = int(os.environ.get('REAPER_INTERVAL_SEC', '60'))
    STALE_GAME_SEC = int(os.environ.get('STALE_GAME_SEC', str(30 * 60)))
    # Length of generated game ids
    GAME_ID_LENGTH = int(os.environ.get('GAME_ID_LENGTH', '6'))
    # Chat messages longer than this are cut
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '500'))
    ENABLE_REAPER_IN_TESTS = False
